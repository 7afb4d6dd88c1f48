"""
Data Ingestion Package
Handles turning quotation files into line-numbered text.
"""

from .core.table_extractor import TableExtractor
from .core.ocr_extractor import ImageOCRExtractor, OCRQualityAssessor, format_ocr_text
from .core.line_merger import LineMerger, split_content_into_chunks
from .utils import get_file_metadata, ensure_directory

__all__ = [
    'TableExtractor',
    'ImageOCRExtractor',
    'OCRQualityAssessor',
    'format_ocr_text',
    'LineMerger',
    'split_content_into_chunks',
    'get_file_metadata',
    'ensure_directory'
]
