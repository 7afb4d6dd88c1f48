"""
Table Extractor Module
Turns the first sheet of a quotation spreadsheet into a row/column-labeled
text block that keeps the header-to-cell correspondence.

Quotation layouts vary, so columns are identified by their header text rather
than by fixed positions. Structural problems degrade to an unlabeled
comma-separated dump instead of failing the extraction.
"""

import re
import logging
from pathlib import Path
from typing import List, Optional, Set, Tuple, Union

import openpyxl
import pandas as pd

from ...models import DocumentFragment, SourceKind, TableMetadata

logger = logging.getLogger(__name__)


class TableExtractor:
    """Builds a labeled text fragment from a spreadsheet grid."""

    SUPPORTED_EXTENSIONS: Set[str] = {'.xlsx', '.xlsm', '.xls', '.csv'}
    DEFAULT_ENCODING: str = 'utf-8'
    FALLBACK_ENCODING: str = 'latin-1'

    # How far down to look for a keyword header row before falling back to row 0
    HEADER_SCAN_ROWS: int = 10

    HEADER_KEYWORDS = re.compile(
        r'part|description|price|qty|quantity|sku|model|brand|amount|total|'
        r'描述|单价|数量|合计|总计|型号|品牌|金额',
        re.IGNORECASE
    )

    def extract(self, grid: pd.DataFrame) -> Tuple[DocumentFragment, TableMetadata]:
        """Convert a decoded sheet grid into a labeled text fragment.

        Args:
            grid: Sheet contents with no header inference (row 0 is data)

        Returns:
            Tuple of (fragment, metadata)
        """
        try:
            rows = self._to_rows(grid)
            return self._build_labeled(rows)
        except Exception as e:
            logger.warning(f"Table structuring failed, using unlabeled dump: {e}")
            return self._dump(grid)

    def extract_file(self, file_path: Union[str, Path]) -> Tuple[DocumentFragment, TableMetadata]:
        """Read the first sheet of a spreadsheet file and extract it.

        Never raises; an unreadable file yields an empty fragment.
        """
        file_path = Path(file_path) if isinstance(file_path, str) else file_path

        try:
            grid = self.read_first_sheet(file_path)
        except Exception as e:
            logger.error(f"Error reading spreadsheet {file_path.name}: {e}")
            text = self._read_raw_dump(file_path)
            metadata = TableMetadata(degraded=True)
            return DocumentFragment(SourceKind.TABLE, text), metadata

        logger.info(f"Read {len(grid)} rows x {len(grid.columns)} columns from {file_path.name}")
        return self.extract(grid)

    def read_first_sheet(self, file_path: Path) -> pd.DataFrame:
        """Read the used range of the first sheet as an unlabeled grid."""
        ext = file_path.suffix.lower()
        if ext not in self.SUPPORTED_EXTENSIONS:
            raise ValueError(f"Unsupported spreadsheet format: {ext}")

        if ext == '.csv':
            params = {'header': None, 'dtype': object, 'on_bad_lines': 'warn'}
            try:
                return pd.read_csv(file_path, encoding=self.DEFAULT_ENCODING, **params)
            except UnicodeDecodeError:
                logger.warning(f"UTF-8 decoding failed for {file_path.name}, trying Latin-1")
                return pd.read_csv(file_path, encoding=self.FALLBACK_ENCODING, **params)

        engine = 'xlrd' if ext == '.xls' else 'openpyxl'
        return pd.read_excel(file_path, sheet_name=0, header=None, dtype=object, engine=engine)

    def _to_rows(self, grid: pd.DataFrame) -> List[List[str]]:
        rows = []
        for values in grid.itertuples(index=False, name=None):
            rows.append([self._cell_to_str(value) for value in values])
        return rows

    @staticmethod
    def _cell_to_str(value) -> str:
        if value is None:
            return ''
        try:
            if pd.isna(value):
                return ''
        except (TypeError, ValueError):
            pass
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, pd.Timestamp):
            return value.strftime('%Y-%m-%d')
        return str(value).strip()

    def _find_header_row(self, rows: List[List[str]]) -> Optional[int]:
        for index, row in enumerate(rows[:self.HEADER_SCAN_ROWS]):
            if any(cell and self.HEADER_KEYWORDS.search(cell) for cell in row):
                return index
        # Permissive: any non-empty first row is treated as a header
        if rows and any(rows[0]):
            return 0
        return None

    def _build_labeled(self, rows: List[List[str]]) -> Tuple[DocumentFragment, TableMetadata]:
        rows = [row for row in rows if any(row)]
        column_count = max((len(row) for row in rows), default=0)

        header_index = self._find_header_row(rows)
        header: Optional[List[str]] = rows[header_index] if header_index is not None else None

        lines = []
        if header_index is not None:
            # Title/supplier rows above the header are kept unlabeled
            for row in rows[:header_index]:
                lines.append(' | '.join(cell for cell in row if cell))
            data_rows = rows[header_index + 1:]
        else:
            data_rows = rows

        for row in data_rows:
            parts = []
            for col, cell in enumerate(row):
                if not cell:
                    continue
                label = header[col] if header and col < len(header) and header[col] else f"Column{col + 1}"
                parts.append(f"{label}: {cell}")
            if parts:
                lines.append(' | '.join(parts))

        metadata = TableMetadata(
            has_header=header is not None,
            header_row=header,
            row_count=len(data_rows),
            column_count=column_count,
        )
        logger.debug(f"Structured table: header={metadata.has_header}, {metadata.row_count} data rows")
        return DocumentFragment(SourceKind.TABLE, '\n'.join(lines)), metadata

    def _dump(self, grid: pd.DataFrame) -> Tuple[DocumentFragment, TableMetadata]:
        try:
            text = grid.to_csv(header=False, index=False)
        except Exception as e:
            logger.error(f"Unlabeled table dump failed: {e}")
            text = ''
        metadata = TableMetadata(
            row_count=len(grid) if hasattr(grid, '__len__') else 0,
            column_count=len(getattr(grid, 'columns', [])),
            degraded=True,
        )
        return DocumentFragment(SourceKind.TABLE, text), metadata

    def _read_raw_dump(self, file_path: Path) -> str:
        """Second attempt at reading a workbook that pandas could not parse."""
        if file_path.suffix.lower() not in {'.xlsx', '.xlsm'}:
            return ''
        try:
            workbook = openpyxl.load_workbook(file_path, read_only=True, data_only=True)
            try:
                sheet = workbook.worksheets[0]
                lines = []
                for values in sheet.iter_rows(values_only=True):
                    cells = [self._cell_to_str(value) for value in values]
                    if any(cells):
                        lines.append(','.join(cells))
                return '\n'.join(lines)
            finally:
                workbook.close()
        except Exception as e:
            logger.error(f"Raw workbook dump failed for {file_path.name}: {e}")
            return ''
