"""
Unit tests for TableExtractor.
Tests header detection, labeled row rendering and degraded dumps.
"""
import os
import shutil
import tempfile
import unittest
from pathlib import Path

import pandas as pd

from quote_ai.data_ingestion.core.table_extractor import TableExtractor
from quote_ai.models import SourceKind


class TestTableExtractor(unittest.TestCase):
    """Test cases for TableExtractor."""

    def setUp(self):
        self.extractor = TableExtractor()
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_header_row_labels_cells(self):
        grid = pd.DataFrame([
            ['Part', 'Description', 'Price', 'Qty'],
            ['X100-AB', 'Server Node', '4999.00', '2'],
        ])
        fragment, metadata = self.extractor.extract(grid)

        self.assertEqual(fragment.source_kind, SourceKind.TABLE)
        self.assertEqual(
            fragment.raw_text,
            'Part: X100-AB | Description: Server Node | Price: 4999.00 | Qty: 2'
        )
        self.assertTrue(metadata.has_header)
        self.assertEqual(metadata.header_row, ['Part', 'Description', 'Price', 'Qty'])
        self.assertEqual(metadata.row_count, 1)
        self.assertEqual(metadata.column_count, 4)
        self.assertFalse(metadata.degraded)

    def test_preamble_rows_above_keyword_header(self):
        grid = pd.DataFrame([
            ['ACME Systems Ltd', None, None],
            ['Quotation Q-2024-17', None, None],
            ['Model', 'Qty', 'Amount'],
            ['DL380 Gen11', 3, 12000.0],
        ])
        fragment, metadata = self.extractor.extract(grid)
        lines = fragment.raw_text.split('\n')

        self.assertEqual(lines[0], 'ACME Systems Ltd')
        self.assertEqual(lines[1], 'Quotation Q-2024-17')
        self.assertEqual(lines[2], 'Model: DL380 Gen11 | Qty: 3 | Amount: 12000')
        self.assertEqual(metadata.header_row, ['Model', 'Qty', 'Amount'])

    def test_blank_rows_and_empty_cells_are_skipped(self):
        grid = pd.DataFrame([
            ['Part', 'Description', 'Price'],
            [None, None, None],
            ['SSD-960', None, '199'],
        ])
        fragment, _ = self.extractor.extract(grid)
        self.assertEqual(fragment.raw_text, 'Part: SSD-960 | Price: 199')

    def test_missing_header_cell_uses_synthetic_label(self):
        grid = pd.DataFrame([
            ['Part', None, 'Price'],
            ['X1-A', 'note', '10'],
        ])
        fragment, _ = self.extractor.extract(grid)
        self.assertEqual(fragment.raw_text, 'Part: X1-A | Column2: note | Price: 10')

    def test_chinese_header_keywords(self):
        grid = pd.DataFrame([
            ['华为服务器报价', None],
            ['型号', '数量'],
            ['2288H V6', '2'],
        ])
        fragment, metadata = self.extractor.extract(grid)
        self.assertIn('型号: 2288H V6 | 数量: 2', fragment.raw_text)
        self.assertEqual(metadata.header_row, ['型号', '数量'])

    def test_structural_failure_degrades_to_dump(self):
        grid = pd.DataFrame([['a', 'b'], ['c', 'd']])
        original = self.extractor._build_labeled

        def broken(rows):
            raise RuntimeError("corrupt range")

        self.extractor._build_labeled = broken
        try:
            fragment, metadata = self.extractor.extract(grid)
        finally:
            self.extractor._build_labeled = original

        self.assertTrue(metadata.degraded)
        self.assertEqual(fragment.raw_text.strip().splitlines(), ['a,b', 'c,d'])

    def test_extract_file_reads_xlsx(self):
        path = Path(self.temp_dir) / 'quote.xlsx'
        pd.DataFrame([['Part', 'Qty'], ['X100-AB', 2]]).to_excel(path, header=False, index=False)

        fragment, metadata = self.extractor.extract_file(path)
        self.assertEqual(fragment.raw_text, 'Part: X100-AB | Qty: 2')
        self.assertTrue(metadata.has_header)

    def test_extract_file_reads_latin1_csv(self):
        path = os.path.join(self.temp_dir, 'quote.csv')
        with open(path, 'wb') as f:
            f.write('Description,Price\nCâble réseau,12\n'.encode('latin-1'))

        fragment, _ = self.extractor.extract_file(path)
        self.assertEqual(fragment.raw_text, 'Description: Câble réseau | Price: 12')

    def test_unreadable_file_returns_empty_degraded_fragment(self):
        path = Path(self.temp_dir) / 'broken.xlsx'
        path.write_bytes(b'not a workbook')

        fragment, metadata = self.extractor.extract_file(path)
        self.assertEqual(fragment.raw_text, '')
        self.assertTrue(metadata.degraded)


if __name__ == '__main__':
    unittest.main()
