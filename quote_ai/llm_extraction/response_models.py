"""
Response Models
Stage-specific, validated shapes of what each LLM stage returns.
"""

import re
import logging
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models import Annotation, BasicInfo
from .utils.result_parser import INT_LIST, NUMBER, STRING, strip_code_fences

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {
    '$': 'USD',
    'US$': 'USD',
    '€': 'EUR',
    '£': 'GBP',
    '¥': 'CNY',
    '￥': 'CNY',
    '₹': 'INR',
    '₩': 'KRW',
}

CURRENCY_WORDS = {
    '美元': 'USD',
    '欧元': 'EUR',
    '英镑': 'GBP',
    '人民币': 'CNY',
    'RMB': 'CNY',
    '日元': 'JPY',
    '韩元': 'KRW',
}

CATEGORIES = ('server', 'storage', 'network', 'security', 'software', 'cloud', 'other')

CATEGORY_PATTERNS = [
    ('server', re.compile(r'\bservers?\b|服务器', re.IGNORECASE)),
    ('storage', re.compile(r'\b(storage|san|nas)\b|存储', re.IGNORECASE)),
    ('network', re.compile(r'\b(network\w*|switch\w*|routers?)\b|网络|交换机|路由', re.IGNORECASE)),
    ('security', re.compile(r'\b(security|firewalls?)\b|安全|防火墙', re.IGNORECASE)),
    ('software', re.compile(r'\b(software|licen[cs]es?)\b|软件|许可', re.IGNORECASE)),
    ('cloud', re.compile(r'\bcloud\b|云', re.IGNORECASE)),
]

DATE_FORMATS = ('%Y-%m-%d', '%Y/%m/%d', '%Y.%m.%d', '%Y%m%d', '%d/%m/%Y', '%m/%d/%Y', '%B %d, %Y', '%b %d, %Y', '%d %B %Y')

UNRECOGNIZED = {'', 'null', 'none', 'n/a', 'na', '-', 'unknown', '未识别', '无'}


def clean_price(value: Any) -> Optional[float]:
    """Strip currency symbols, separators and spaces from a price value."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = re.sub(r'[$€£¥￥₹₩,\s]', '', value)
        cleaned = re.sub(r'^(USD|EUR|GBP|CNY|RMB|JPY|INR|KRW)|(USD|EUR|GBP|CNY|RMB|JPY|INR|KRW)$', '', cleaned,
                         flags=re.IGNORECASE)
        match = re.match(r'-?\d+(\.\d+)?', cleaned)
        return float(match.group(0)) if match else None
    return None


def clean_currency(value: Any) -> Optional[str]:
    """Map symbols, words and ``'$=USD'`` forms onto ISO currency codes."""
    if not isinstance(value, str) or value.strip().lower() in UNRECOGNIZED:
        return None
    value = value.strip()
    if '=' in value:
        code = value.split('=', 1)[1].strip()
        return code.upper() if code else None
    if value in CURRENCY_SYMBOLS:
        return CURRENCY_SYMBOLS[value]
    if value in CURRENCY_WORDS or value.upper() in CURRENCY_WORDS:
        return CURRENCY_WORDS.get(value) or CURRENCY_WORDS[value.upper()]
    return value.upper()


def normalize_category(value: Any) -> Optional[str]:
    if not isinstance(value, str) or value.strip().lower() in UNRECOGNIZED:
        return None
    lowered = value.strip().lower()
    if lowered in CATEGORIES:
        return lowered
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(lowered):
            return category
    return 'other'


def normalize_date(value: Any) -> Optional[str]:
    """Return YYYY-MM-DD when the date is recognisable, else the trimmed input."""
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in UNRECOGNIZED:
        return None
    chinese = re.match(r'(\d{4})\s*年\s*(\d{1,2})\s*月\s*(\d{1,2})\s*日?', text)
    if chinese:
        text = '-'.join(chinese.groups())
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).strftime('%Y-%m-%d')
        except ValueError:
            continue
    parts = re.fullmatch(r'(\d{4})-(\d{1,2})-(\d{1,2})', text)
    if parts:
        try:
            return datetime(*(int(p) for p in parts.groups())).strftime('%Y-%m-%d')
        except ValueError:
            pass
    return text


def clean_quantity(value: Any) -> int:
    """Coerce a quantity to an integer >= 1 (default 1)."""
    if value is None or isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        number = value
    else:
        match = re.search(r'\d+(\.\d+)?', str(value).replace(',', ''))
        if not match:
            return 1
        number = float(match.group(0))
    return max(1, int(number))


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return None if text.lower() in UNRECOGNIZED else text


def _line_numbers(values: List[Any]) -> List[int]:
    """Keep the items that read as line numbers (integers >= 1)."""
    numbers = []
    for item in values:
        if isinstance(item, bool):
            continue
        try:
            number = int(str(item).strip())
        except (TypeError, ValueError):
            continue
        if number >= 1:
            numbers.append(number)
    return numbers


class BasicInfoResponse(BaseModel):
    """Stage 1 answer: quotation-level fields."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    category: Optional[str] = Field(
        None, validation_alias=AliasChoices('quotationCategory', 'category'),
        description="Quotation category")
    title: Optional[str] = Field(
        None, validation_alias=AliasChoices('quotationTitle', 'title', 'productName'),
        description="Overall solution or project name")
    supplier: Optional[str] = Field(None, description="Quoting company, not the product brand")
    region: Optional[str] = Field(None, description="Supplier region")
    total_price: Optional[float] = Field(
        None, validation_alias=AliasChoices('totalPrice', 'total_price'))
    discounted_total_price: Optional[float] = Field(
        None, validation_alias=AliasChoices('discountedTotalPrice', 'discounted_total_price'))
    unit_price: Optional[float] = Field(
        None, validation_alias=AliasChoices('unitPrice', 'unit_price'))
    quantity: int = Field(1, validation_alias=AliasChoices('quantity', 'qty'))
    currency: Optional[str] = None
    discount_rate: Optional[float] = Field(
        None, validation_alias=AliasChoices('discountRate', 'discount_rate'))
    validity_date: Optional[str] = Field(
        None, validation_alias=AliasChoices('quote_validity', 'validityDate', 'validity_date'))
    delivery_date: Optional[str] = Field(
        None, validation_alias=AliasChoices('delivery_date', 'deliveryDate'))
    notes: Optional[str] = None

    # Field name -> kind, used by the regex parse strategy
    FIELD_KINDS: ClassVar[Dict[str, str]] = {
        'quotationCategory': STRING,
        'quotationTitle': STRING,
        'supplier': STRING,
        'region': STRING,
        'totalPrice': NUMBER,
        'discountedTotalPrice': NUMBER,
        'unitPrice': NUMBER,
        'quantity': NUMBER,
        'currency': STRING,
        'discountRate': NUMBER,
        'quote_validity': STRING,
        'delivery_date': STRING,
        'notes': STRING,
    }

    @field_validator('total_price', 'discounted_total_price', 'unit_price', 'discount_rate', mode='before')
    @classmethod
    def _clean_price(cls, value):
        if isinstance(value, str):
            value = value.replace('%', '')
        return clean_price(value)

    @field_validator('currency', mode='before')
    @classmethod
    def _clean_currency(cls, value):
        return clean_currency(value)

    @field_validator('category', mode='before')
    @classmethod
    def _clean_category(cls, value):
        return normalize_category(value)

    @field_validator('validity_date', 'delivery_date', mode='before')
    @classmethod
    def _clean_date(cls, value):
        return normalize_date(value)

    @field_validator('quantity', mode='before')
    @classmethod
    def _clean_quantity(cls, value):
        return clean_quantity(value)

    @field_validator('title', 'supplier', 'region', 'notes', mode='before')
    @classmethod
    def _clean_text(cls, value):
        return _optional_text(value)

    @classmethod
    def from_parsed(cls, parsed: Any) -> "BasicInfoResponse":
        """Validate a parsed value; a list is read from its first object."""
        if isinstance(parsed, list):
            parsed = next((item for item in parsed if isinstance(item, dict)), None)
        if not isinstance(parsed, dict):
            raise ValueError(f"Expected a JSON object for basic info, got {type(parsed).__name__}")
        return cls.model_validate(parsed)

    def to_basic_info(self) -> BasicInfo:
        info = BasicInfo(**self.model_dump())
        return info.derive_pricing()


class AnnotationResponse(BaseModel):
    """Stage 2 answer: useful line numbers, optionally grouped by category."""

    useful_line_numbers: List[int] = Field(
        default_factory=list,
        validation_alias=AliasChoices('usefulLineNumbers', 'useful_line_numbers', 'usefulLines', 'lines'))
    categories: Optional[Dict[str, List[int]]] = None

    FIELD_KINDS: ClassVar[Dict[str, str]] = {'usefulLineNumbers': INT_LIST}

    @field_validator('useful_line_numbers', mode='before')
    @classmethod
    def _coerce_numbers(cls, value):
        if not isinstance(value, list):
            raise ValueError("usefulLineNumbers must be a list")
        return _line_numbers(value)

    @field_validator('categories', mode='before')
    @classmethod
    def _drop_malformed_categories(cls, value):
        if not isinstance(value, dict):
            return None
        return {
            str(name): _line_numbers(numbers)
            for name, numbers in value.items()
            if isinstance(numbers, list)
        }

    @model_validator(mode='before')
    @classmethod
    def _accept_bare_list(cls, data):
        if isinstance(data, list):
            # A bare list of numbers, or the single-element regex result
            if len(data) == 1 and isinstance(data[0], dict):
                return data[0]
            return {'usefulLineNumbers': data}
        return data

    @classmethod
    def from_parsed(cls, parsed: Any) -> "AnnotationResponse":
        return cls.model_validate(parsed)

    def to_annotation(self) -> Annotation:
        return Annotation(
            useful_line_numbers=self.useful_line_numbers,
            categories=self.categories,
            source="llm",
        )


class FreeTextResponse(BaseModel):
    """Stage 3 answer: formatted prose, used as-is after fence stripping."""

    text: str

    @field_validator('text', mode='before')
    @classmethod
    def _strip(cls, value):
        if not isinstance(value, str):
            raise ValueError("Free text response must be a string")
        text = value.strip()
        if text.startswith('```'):
            text = strip_code_fences(text)
        if not text:
            raise ValueError("Free text response is empty")
        return text

    @classmethod
    def from_raw(cls, raw: Union[str, None]) -> "FreeTextResponse":
        return cls(text=raw)
