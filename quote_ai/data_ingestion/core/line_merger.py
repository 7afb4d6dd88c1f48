"""
Line Merger Module
Combines raw text, table text and OCR blocks into one line-numbered document.
"""

import logging
from typing import Iterable, List

from ...models import DocumentFragment, MergedDocument, NumberedLine, SourceKind

logger = logging.getLogger(__name__)

TABLE_SECTION_HEADER = "=== Table Data ==="

# Fragments are merged in this order regardless of the order they are supplied in
SOURCE_PRIORITY = {
    SourceKind.RAW_TEXT: 0,
    SourceKind.TABLE: 1,
    SourceKind.OCR_IMAGE: 2,
}


def ocr_section_header(index: int, image_name: str, confidence: float) -> str:
    """Header line announcing the k-th OCR block."""
    return f"=== OCR Image {index}: {image_name} (confidence: {round(confidence)}%) ==="


class LineMerger:
    """Assigns dense 1-based line numbers over every non-blank fragment line."""

    def merge(self, fragments: Iterable[DocumentFragment]) -> MergedDocument:
        """Merge fragments into a MergedDocument.

        Table fragments get a table section header; OCR fragments use their
        label (image name and confidence) as a header. Headers are numbered
        like any other line.

        Args:
            fragments: Extracted fragments in any order

        Returns:
            MergedDocument: Numbered lines in priority order
        """
        ordered = sorted(fragments, key=lambda f: SOURCE_PRIORITY[f.source_kind])

        lines: List[NumberedLine] = []
        ocr_index = 0
        for fragment in ordered:
            fragment_lines = self._split(fragment.raw_text)
            if not fragment_lines:
                continue

            header = None
            if fragment.source_kind == SourceKind.TABLE:
                header = TABLE_SECTION_HEADER
            elif fragment.source_kind == SourceKind.OCR_IMAGE:
                ocr_index += 1
                header = fragment.label or f"=== OCR Image {ocr_index} ==="

            if header:
                lines.append(NumberedLine(len(lines) + 1, header))
            for text in fragment_lines:
                lines.append(NumberedLine(len(lines) + 1, text))

        logger.debug(f"Merged {len(ordered)} fragments into {len(lines)} numbered lines")
        return MergedDocument(lines)

    @staticmethod
    def _split(text: str) -> List[str]:
        if not text:
            return []
        return [line.strip() for line in text.splitlines() if line.strip()]


def split_content_into_chunks(content: str, max_chunk_size: int = 8000) -> List[str]:
    """Split text on line boundaries into chunks of at most max_chunk_size chars.

    A single line longer than the limit becomes its own (oversized) chunk.
    """
    if not content:
        return []
    if len(content) <= max_chunk_size:
        return [content]

    chunks = []
    current: List[str] = []
    current_size = 0
    for line in content.split('\n'):
        added = len(line) + (1 if current else 0)
        if current and current_size + added > max_chunk_size:
            chunks.append('\n'.join(current))
            current = [line]
            current_size = len(line)
        else:
            current.append(line)
            current_size += added
    if current:
        chunks.append('\n'.join(current))

    logger.debug(f"Split {len(content)} chars into {len(chunks)} chunks")
    return chunks
