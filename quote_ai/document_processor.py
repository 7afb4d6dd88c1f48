"""
Document Processor Module
Main entry point for running one quotation document (or a batch) through
extraction, line merging and the LLM stages.

Spreadsheets are read directly; PDF and Word documents need their text
extracted by the caller and passed in as `extracted_text`. Embedded images of
xlsx/docx archives are OCR'd and merged when the OCR output looks meaningful.
"""

import hashlib
import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Union

from .config import PipelineConfig
from .data_ingestion.core.line_merger import LineMerger, ocr_section_header
from .data_ingestion.core.ocr_extractor import ImageOCRExtractor, OCRQualityAssessor, format_ocr_text
from .data_ingestion.core.table_extractor import TableExtractor
from .data_ingestion.utils.file_utils import ensure_directory, get_file_metadata
from .llm_extraction.orchestrator import LLMOrchestrator
from .models import (
    DocumentFragment,
    ExtractionResult,
    FileMetadata,
    MergedDocument,
    OCRResult,
    SourceKind,
)

logger = logging.getLogger(__name__)


class DocumentProcessingError(Exception):
    """Base class for document-level failures."""


class EmptyDocumentError(DocumentProcessingError):
    """Extraction produced no content to send to the LLM."""


class UnsupportedDocumentError(DocumentProcessingError):
    """The file type cannot be processed (or needs pre-extracted text)."""


class ResultSink(Protocol):
    """Persistence collaborator; responsible for duplicate detection and storage."""

    def save(self, result: ExtractionResult, file_metadata: FileMetadata) -> None:
        ...


class JsonFileSink:
    """Writes each result with its file metadata to `<output_dir>/<file name>.<hash>.json`.

    The content hash keeps results of same-named inputs (e.g. `quote.xlsx`
    from two directories) apart.
    """

    def __init__(self, output_dir: Union[str, Path]):
        self.output_dir = ensure_directory(output_dir)

    def output_path(self, file_metadata: FileMetadata) -> Path:
        return self.output_dir / f"{file_metadata.file_name}.{file_metadata.file_hash[:12]}.json"

    def save(self, result: ExtractionResult, file_metadata: FileMetadata) -> None:
        output_path = self.output_path(file_metadata)
        payload = {
            'file': file_metadata.to_dict(),
            'result': result.to_dict(),
        }
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        logger.info(f"Saved result to {output_path}")


@dataclass
class DocumentOutcome:
    """Per-document result of a batch run."""
    source: str
    result: Optional[ExtractionResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DocumentProcessor:
    """Runs the full pipeline for individual documents."""

    SPREADSHEET_EXTENSIONS = {'.xlsx', '.xlsm', '.xls', '.csv'}
    TEXT_EXTENSIONS = {'.txt'}
    # Text must be supplied by an external extraction step
    PRE_EXTRACTED_EXTENSIONS = {'.pdf', '.doc', '.docx'}
    # Office Open XML archives that may contain embedded images
    ARCHIVE_EXTENSIONS = {'.xlsx', '.xlsm', '.docx'}

    def __init__(
        self,
        orchestrator: LLMOrchestrator,
        config: Optional[PipelineConfig] = None,
        table_extractor: Optional[TableExtractor] = None,
        ocr_extractor: Optional[ImageOCRExtractor] = None,
        quality_assessor: Optional[OCRQualityAssessor] = None,
        line_merger: Optional[LineMerger] = None,
        sink: Optional[ResultSink] = None,
    ):
        self.orchestrator = orchestrator
        self.config = config or orchestrator.config
        self.table_extractor = table_extractor or TableExtractor()
        self.ocr_extractor = ocr_extractor or ImageOCRExtractor(self.config)
        self.quality_assessor = quality_assessor or OCRQualityAssessor(self.config)
        self.line_merger = line_merger or LineMerger()
        self.sink = sink

    def process_file(
        self,
        file_path: Union[str, Path],
        detailed: bool = True,
        extracted_text: Optional[str] = None,
    ) -> ExtractionResult:
        """Process one file end to end.

        Args:
            file_path: Path to the quotation document
            detailed: Run the annotation and formatting stages
            extracted_text: Pre-extracted text (required for PDF/Word files)

        Returns:
            ExtractionResult: The extraction result (also handed to the sink)

        Raises:
            UnsupportedDocumentError: Unknown type, or PDF/Word without text
            EmptyDocumentError: Nothing was extracted
            BasicInfoExtractionError: Stage 1 failed
        """
        file_path = Path(file_path) if isinstance(file_path, str) else file_path
        metadata = get_file_metadata(file_path)
        logger.info(f"Processing file: {metadata.file_name} ({metadata.size_bytes} bytes)")

        document = self.merge(self.build_fragments(file_path, extracted_text))
        result = self._run(document, detailed, metadata.file_name)
        self._emit(result, metadata)
        return result

    def process_text(self, text: str, detailed: bool = True, name: str = "text") -> ExtractionResult:
        """Process already-extracted plain text."""
        metadata = FileMetadata(
            file_name=name,
            file_hash=hashlib.sha256((text or '').encode('utf-8')).hexdigest(),
            size_bytes=len((text or '').encode('utf-8')),
            mime_type='text/plain',
        )
        document = self.merge([DocumentFragment(SourceKind.RAW_TEXT, text or '')])
        result = self._run(document, detailed, name)
        self._emit(result, metadata)
        return result

    def process_many(
        self,
        file_paths: Sequence[Union[str, Path]],
        detailed: bool = True,
        extracted_texts: Optional[Dict[str, str]] = None,
        max_workers: int = 4,
    ) -> List[DocumentOutcome]:
        """Process several files concurrently; one failure never affects the others.

        Args:
            file_paths: Documents to process
            detailed: Run the annotation and formatting stages
            extracted_texts: Pre-extracted text keyed by file path string
            max_workers: Thread pool size

        Returns:
            List[DocumentOutcome]: One outcome per input, in input order
        """
        extracted_texts = extracted_texts or {}
        outcomes: List[Optional[DocumentOutcome]] = [None] * len(file_paths)

        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            futures = {
                executor.submit(
                    self.process_file, path, detailed, extracted_texts.get(str(path))
                ): index
                for index, path in enumerate(file_paths)
            }
            for future in as_completed(futures):
                index = futures[future]
                source = str(file_paths[index])
                try:
                    outcomes[index] = DocumentOutcome(source=source, result=future.result())
                except Exception as e:
                    logger.error(f"Failed to process {source}: {type(e).__name__}: {e}")
                    outcomes[index] = DocumentOutcome(source=source, error=f"{type(e).__name__}: {e}")

        succeeded = sum(1 for outcome in outcomes if outcome.ok)
        logger.info(f"Batch complete: {succeeded}/{len(outcomes)} documents processed")
        return outcomes

    def build_fragments(self, file_path: Path, extracted_text: Optional[str] = None) -> List[DocumentFragment]:
        """Collect raw-text, table and OCR fragments for a file."""
        ext = file_path.suffix.lower()
        fragments: List[DocumentFragment] = []

        if ext in self.PRE_EXTRACTED_EXTENSIONS:
            if extracted_text is None:
                raise UnsupportedDocumentError(f"{file_path.name}: {ext} files need pre-extracted text")
            fragments.append(DocumentFragment(SourceKind.RAW_TEXT, extracted_text))
        elif ext in self.TEXT_EXTENSIONS:
            text = extracted_text if extracted_text is not None else self._read_text(file_path)
            fragments.append(DocumentFragment(SourceKind.RAW_TEXT, text))
        elif ext in self.SPREADSHEET_EXTENSIONS:
            if extracted_text:
                fragments.append(DocumentFragment(SourceKind.RAW_TEXT, extracted_text))
            table_fragment, table_metadata = self.table_extractor.extract_file(file_path)
            if table_metadata.degraded:
                logger.warning(f"{file_path.name}: table structure unavailable, using unlabeled dump")
            fragments.append(table_fragment)
        else:
            raise UnsupportedDocumentError(f"Unsupported file type: {ext or file_path.name}")

        if ext in self.ARCHIVE_EXTENSIONS:
            has_content = any(fragment.raw_text.strip() for fragment in fragments)
            fragments.extend(self.ocr_fragments(self.ocr_extractor.extract(file_path), has_content))

        return fragments

    def ocr_fragments(self, results: List[OCRResult], has_other_content: bool = True) -> List[DocumentFragment]:
        """Turn successful OCR results into labeled fragments.

        Failed images are skipped. When other content exists, OCR text is only
        kept if the set of results passes the quality heuristic.
        """
        recognized = [r for r in results if r.success and r.text.strip()]
        if not recognized:
            return []
        if has_other_content and not self.quality_assessor.is_meaningful(recognized):
            logger.info("OCR output judged not meaningful, excluding it from the document")
            return []

        fragments = []
        for index, result in enumerate(recognized, start=1):
            label = ocr_section_header(index, result.original_image_name, result.confidence)
            fragments.append(DocumentFragment(SourceKind.OCR_IMAGE, format_ocr_text(result.text), label=label))
        return fragments

    def merge(self, fragments: List[DocumentFragment]) -> MergedDocument:
        return self.line_merger.merge(fragments)

    def _run(self, document: MergedDocument, detailed: bool, name: str) -> ExtractionResult:
        if document.total_lines == 0:
            raise EmptyDocumentError(f"No content extracted from {name}")
        logger.info(f"{name}: merged document has {document.total_lines} lines")
        return self.orchestrator.run(document, detailed=detailed)

    def _emit(self, result: ExtractionResult, metadata: FileMetadata) -> None:
        if self.sink is not None:
            self.sink.save(result, metadata)

    @staticmethod
    def _read_text(file_path: Path) -> str:
        try:
            return file_path.read_text(encoding='utf-8')
        except UnicodeDecodeError:
            logger.warning(f"UTF-8 decoding failed for {file_path.name}, trying Latin-1")
            return file_path.read_text(encoding='latin-1')
