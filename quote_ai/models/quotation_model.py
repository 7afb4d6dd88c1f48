"""
Quotation Data Model
Provides the data structures that flow through the extraction pipeline,
from extracted document fragments to the final extraction result.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, Dict, Any, List


class SourceKind(str, Enum):
    """Origin of a document fragment."""
    RAW_TEXT = "rawText"
    TABLE = "table"
    OCR_IMAGE = "ocrImage"


@dataclass(frozen=True)
class DocumentFragment:
    """
    A piece of text produced by one extractor.

    `label` is an optional header describing the fragment source, e.g. the
    image name and confidence of an OCR block.
    """
    source_kind: SourceKind
    raw_text: str
    label: Optional[str] = None


@dataclass
class TableMetadata:
    """Structural metadata reported by the table extractor."""
    has_header: bool = False
    header_row: Optional[List[str]] = None
    row_count: int = 0
    column_count: int = 0
    degraded: bool = False


@dataclass
class OCRResult:
    """Text recognized from one embedded image."""
    text: str
    confidence: float
    original_image_name: str
    size_bytes: int
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class NumberedLine:
    line_number: int
    text: str

    def render(self) -> str:
        return f"Line {self.line_number}: {self.text}"


@dataclass
class MergedDocument:
    """
    The canonical line-numbered artifact all LLM stages operate on.

    Line numbers are dense and 1-based over the merged output only; they do
    not correspond to line numbers of the original file.
    """
    lines: List[NumberedLine] = field(default_factory=list)

    def __post_init__(self):
        self._index = {line.line_number: line for line in self.lines}

    @property
    def total_lines(self) -> int:
        return len(self.lines)

    def get_line(self, line_number: int) -> Optional[NumberedLine]:
        """Return the line with this number, or None if it does not exist."""
        return self._index.get(line_number)

    def has_line(self, line_number: int) -> bool:
        return line_number in self._index

    def render(self) -> str:
        """Render the document with `Line {n}:` prefixes, one line per entry."""
        return "\n".join(line.render() for line in self.lines)

    def plain_text(self) -> str:
        """Render the document text without line-number prefixes."""
        return "\n".join(line.text for line in self.lines)


@dataclass
class Annotation:
    """Useful line numbers (and optional categories) for one merged document."""
    useful_line_numbers: List[int] = field(default_factory=list)
    categories: Optional[Dict[str, List[int]]] = None
    source: str = "llm"

    def __post_init__(self):
        # Ordered set semantics
        self.useful_line_numbers = sorted(set(int(n) for n in self.useful_line_numbers))

    def is_empty(self) -> bool:
        return not self.useful_line_numbers

    def copy(self) -> "Annotation":
        categories = None
        if self.categories is not None:
            categories = {name: list(numbers) for name, numbers in self.categories.items()}
        return Annotation(list(self.useful_line_numbers), categories, self.source)

    def restricted_to(self, document: MergedDocument) -> "Annotation":
        """Return a copy without references to lines missing from `document`."""
        kept = [n for n in self.useful_line_numbers if document.has_line(n)]
        categories = None
        if self.categories is not None:
            categories = {
                name: sorted(n for n in set(numbers) if document.has_line(n))
                for name, numbers in self.categories.items()
            }
        return Annotation(useful_line_numbers=kept, categories=categories, source=self.source)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'usefulLineNumbers': list(self.useful_line_numbers),
            'source': self.source,
        }
        if self.categories is not None:
            data['categories'] = {k: list(v) for k, v in self.categories.items()}
        return data


@dataclass
class CacheEntry:
    key: str
    annotation: Annotation
    created_at: float


@dataclass
class BasicInfo:
    """
    Quotation-level fields extracted in the basic-info stage.

    All fields are optional except quantity, which defaults to 1.
    """
    category: Optional[str] = None
    title: Optional[str] = None
    supplier: Optional[str] = None
    region: Optional[str] = None
    total_price: Optional[float] = None
    discounted_total_price: Optional[float] = None
    unit_price: Optional[float] = None
    quantity: int = 1
    currency: Optional[str] = None
    discount_rate: Optional[float] = None
    validity_date: Optional[str] = None
    delivery_date: Optional[str] = None
    notes: Optional[str] = None

    def derive_pricing(self) -> "BasicInfo":
        """
        Fill in price fields that can be computed from the others.

        - unit price from total / quantity
        - total from unit price * quantity
        - discount rate (percent) from total and discounted total
        - a lone discounted total is also used as the total
        """
        quantity = max(1, int(self.quantity or 1))
        self.quantity = quantity

        if self.unit_price is None and self.total_price:
            self.unit_price = round(self.total_price / quantity, 2)

        if self.total_price is None and self.unit_price:
            self.total_price = round(self.unit_price * quantity, 2)

        if self.total_price and self.discounted_total_price is not None:
            if self.discounted_total_price < self.total_price and self.discount_rate is None:
                self.discount_rate = round(
                    (self.total_price - self.discounted_total_price) / self.total_price * 100
                )
        elif self.total_price is None and self.discounted_total_price:
            self.total_price = self.discounted_total_price

        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'title': self.title,
            'supplier': self.supplier,
            'region': self.region,
            'totalPrice': self.total_price,
            'discountedTotalPrice': self.discounted_total_price,
            'unitPrice': self.unit_price,
            'quantity': self.quantity,
            'currency': self.currency,
            'discountRate': self.discount_rate,
            'validityDate': self.validity_date,
            'deliveryDate': self.delivery_date,
            'notes': self.notes,
        }


@dataclass
class ExtractionResult:
    """The pipeline's final output, handed to the persistence collaborator."""
    basic_info: BasicInfo
    detailed_config: str = ""
    annotation: Optional[Annotation] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'basicInfo': self.basic_info.to_dict(),
            'detailedConfig': self.detailed_config,
            'annotation': self.annotation.to_dict() if self.annotation else None,
        }


@dataclass
class FileMetadata:
    """File-level metadata passed along with a result to the persistence collaborator."""
    file_name: str
    file_hash: str
    size_bytes: int
    mime_type: str = 'application/octet-stream'

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
