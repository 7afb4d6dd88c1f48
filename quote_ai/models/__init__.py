"""
Quotation Models Package
Shared data structures for the extraction pipeline.
"""

from .quotation_model import (
    SourceKind,
    DocumentFragment,
    TableMetadata,
    OCRResult,
    NumberedLine,
    MergedDocument,
    Annotation,
    CacheEntry,
    BasicInfo,
    ExtractionResult,
    FileMetadata,
)

__all__ = [
    'SourceKind',
    'DocumentFragment',
    'TableMetadata',
    'OCRResult',
    'NumberedLine',
    'MergedDocument',
    'Annotation',
    'CacheEntry',
    'BasicInfo',
    'ExtractionResult',
    'FileMetadata',
]
