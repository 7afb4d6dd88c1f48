"""
Prompt Templates Module

Builds the prompts for the three extraction stages. Wording can be replaced
per deployment by dropping `<name>.txt` files into a prompt directory; the
document text replaces the `{content}` placeholder.
"""

import logging
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

BASIC_INFO = "basic_info"
ANNOTATION = "annotation"
FORMAT = "format"

SYSTEM_PROMPT = "You are a professional quotation analyst for IT hardware, software and services."

DEFAULT_TEMPLATES: Dict[str, str] = {
    BASIC_INFO: """Extract the basic information from the quotation below.

Price rules:
- Identify the total price of the whole solution or project, not the price of a single component.
- Prefer values labeled Total, Grand Total, Net Total, Final Price, 总计, 合计 or 总金额.
- If several prices appear, the largest one at the bottom of the table is usually the total.
- Do not calculate prices yourself.

Supplier rules:
- The supplier is the company issuing the quotation (reseller, distributor, service provider).
- Product brands such as HPE, Dell, Cisco, IBM, Microsoft, VMware, Huawei or Lenovo are not suppliers.

Currency: map symbols to codes ($=USD, €=EUR, £=GBP, ¥=CNY, ₹=INR, ₩=KRW).
Dates: use YYYY-MM-DD.
Use null for anything you cannot identify.

Return only this JSON object, with no other text:
{
  "quotationCategory": "server | storage | network | security | software | cloud | other",
  "quotationTitle": "overall solution or project name",
  "supplier": "quoting company",
  "region": "supplier region or country",
  "totalPrice": number or null,
  "discountedTotalPrice": number or null,
  "unitPrice": number or null,
  "quantity": number,
  "currency": "ISO currency code",
  "discountRate": number or null,
  "quote_validity": "YYYY-MM-DD or null",
  "delivery_date": "YYYY-MM-DD or null",
  "notes": "short important remarks"
}

Quotation content:
{content}""",

    ANNOTATION: """Each line of the quotation below is prefixed with "Line N:".
Identify the lines that describe products: model numbers, part numbers, specifications,
quantities, prices and brands. Ignore letterheads, contact details, terms and conditions,
section headers and empty decoration.

Return only this JSON object, with no other text:
{"usefulLineNumbers": [1, 2, 3]}

Quotation content:
{content}""",

    FORMAT: """The lines below describe the products of a quotation. Some were recovered by OCR
and may contain recognition errors. Rewrite them as a clean, readable product configuration:
- fix obvious OCR errors in model numbers and units
- keep every product, quantity and specification
- group related components together
- do not invent information and do not add prices that are not present

Return plain text only.

Lines:
{content}""",
}


class PromptTemplates:
    """Renders stage prompts from built-in or overridden templates."""

    def __init__(self, prompt_dir: Optional[str] = None):
        self.templates = dict(DEFAULT_TEMPLATES)
        if prompt_dir:
            self._load_overrides(Path(prompt_dir))

    def _load_overrides(self, prompt_dir: Path) -> None:
        if not prompt_dir.is_dir():
            logger.warning(f"Prompt directory {prompt_dir} not found, using built-in templates")
            return
        for name in self.templates:
            path = prompt_dir / f"{name}.txt"
            if path.exists():
                template = path.read_text(encoding='utf-8')
                if '{content}' not in template:
                    logger.warning(f"Template {path} has no {{content}} placeholder, ignoring it")
                    continue
                self.templates[name] = template
                logger.info(f"Loaded '{name}' prompt template from {path}")

    def render(self, name: str, content: str) -> str:
        return self.templates[name].replace("{content}", content)

    def basic_info(self, content: str) -> str:
        return self.render(BASIC_INFO, content)

    def annotation(self, numbered_content: str) -> str:
        return self.render(ANNOTATION, numbered_content)

    def format_lines(self, lines: str) -> str:
        return self.render(FORMAT, lines)
