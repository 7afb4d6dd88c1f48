"""
Data Ingestion Core Package
Contains the table, OCR and line-merging extractors.
"""

from .table_extractor import TableExtractor
from .ocr_extractor import ImageOCRExtractor, OCRQualityAssessor
from .line_merger import LineMerger

__all__ = ['TableExtractor', 'ImageOCRExtractor', 'OCRQualityAssessor', 'LineMerger']
