"""
Local Annotator Module
Rule-based useful-line detection used when the LLM annotation stage is
unavailable or returns unusable output.
"""

import re
import logging
from typing import List, Tuple

from ..models import Annotation

logger = logging.getLogger(__name__)

MIN_LINE_LENGTH = 3

LINE_PREFIX = re.compile(r'^\s*Line\s+(\d+)\s*:\s?(.*)$')

SEPARATOR_ONLY = re.compile(r'^[\s\-_=*#~.|+:;/\\]+$')

# Section headers, page numbers and contact/letterhead labels
BOILERPLATE = re.compile(
    r'^=+\s.*\s=+$'
    r'|^(page\s*)?\d+\s*(of|/)\s*\d+$'
    r'|^第?\s*\d+\s*页'
    r'|^(tel|phone|fax|email|e-mail|website|address|contact|attn|attention)\b\s*[:：]?'
    r'|^(电话|传真|邮箱|地址|联系人|网址)\s*[:：]?'
    r'|^(quotation|quote|invoice|terms and conditions|thank you)\s*[:：]?\s*$',
    re.IGNORECASE
)

SKU_PATTERN = re.compile(r'\b(?=[A-Z0-9\-_.]*\d)(?=[A-Z0-9\-_.]*[A-Z])[A-Z0-9]{2,}(?:[-_.][A-Z0-9]+)+\b|\b[A-Z]{2,}\d{3,}[A-Z0-9]*\b')

VENDOR_PATTERN = re.compile(
    r'\b(HPE|HP|Dell|EMC|Cisco|IBM|Lenovo|Huawei|Inspur|Sugon|H3C|Juniper|Arista|Fortinet|'
    r'Palo\s?Alto|Check\s?Point|NetApp|Pure\s?Storage|Hitachi|Fujitsu|Supermicro|Oracle|'
    r'Microsoft|VMware|Red\s?Hat|Intel|AMD|NVIDIA|Broadcom|Seagate|Samsung|Kingston|'
    r'Veeam|Citrix|Nutanix|Aruba|Ruijie|ZTE)\b'
    r'|华为|联想|浪潮|曙光|新华三|中兴|锐捷',
    re.IGNORECASE
)

QUANTITY_UNIT_PATTERN = re.compile(
    r'\b\d+(?:\.\d+)?\s*(?:TB|GB|MB|PB|GHz|MHz|Gbps|Mbps|Gb|Mb|GbE|G|W|kW|V|U|RU|'
    r'cores?|threads?|ports?|slots?|nodes?|sockets?|drives?)\b'
    r'|\d+\s*(?:核|线程|口|盘)',
    re.IGNORECASE
)

CURRENCY_PATTERN = re.compile(
    r'[$€£¥₹₩]\s?\d[\d,]*(?:\.\d+)?'
    r'|\b\d[\d,]*(?:\.\d+)?\s?(?:USD|EUR|GBP|CNY|RMB|JPY|INR|KRW|元)\b'
    r'|\b(?:USD|EUR|GBP|CNY|RMB)\s?\d[\d,]*(?:\.\d+)?',
    re.IGNORECASE
)

CATEGORY_KEYWORDS = re.compile(
    r'\b(server|storage|switch|router|firewall|processor|cpu|memory|ram|dimm|ssd|hdd|nvme|'
    r'raid|controller|nic|adapter|hba|transceiver|sfp|psu|power supply|chassis|rack|'
    r'license|subscription|support|warranty|gpu|backup|appliance)s?\b'
    r'|服务器|存储|交换机|路由器|防火墙|处理器|内存|硬盘|电源|许可|维保',
    re.IGNORECASE
)

GENERATION_PATTERN = re.compile(
    r'\b(Gen\s?\d{1,2}|G\d{1,2}|DDR[345]|PCIe\s?[345](?:\.0)?|Xeon|EPYC|Ryzen|Core\s?i[3579]|'
    r'R\d{3,4}[a-z]*|DL\d{3}|ML\d{3}|SR\d{3}|Wi-?Fi\s?[67])\b',
    re.IGNORECASE
)

USEFUL_PATTERNS = [
    SKU_PATTERN,
    VENDOR_PATTERN,
    QUANTITY_UNIT_PATTERN,
    CURRENCY_PATTERN,
    CATEGORY_KEYWORDS,
    GENERATION_PATTERN,
]


class LocalAnnotator:
    """Flags product-relevant lines using fixed patterns. Deterministic."""

    def __init__(self, min_line_length: int = MIN_LINE_LENGTH):
        self.min_line_length = min_line_length

    def annotate(self, text: str) -> Annotation:
        """Return an Annotation with the useful line numbers of `text`.

        Lines carrying a ``Line n:`` prefix use n; otherwise the 1-based index
        among non-blank lines is used, matching the merger's numbering.
        """
        useful = [number for number, line in self._numbered_lines(text) if self.is_useful(line)]
        logger.info(f"Local annotator flagged {len(useful)} useful lines")
        return Annotation(useful_line_numbers=useful, source="local")

    def is_useful(self, line: str) -> bool:
        line = line.strip()
        if len(line) < self.min_line_length:
            return False
        if SEPARATOR_ONLY.match(line) or BOILERPLATE.search(line):
            return False
        return any(pattern.search(line) for pattern in USEFUL_PATTERNS)

    @staticmethod
    def _numbered_lines(text: str) -> List[Tuple[int, str]]:
        numbered = []
        index = 0
        for raw in (text or '').splitlines():
            if not raw.strip():
                continue
            index += 1
            match = LINE_PREFIX.match(raw)
            if match:
                numbered.append((int(match.group(1)), match.group(2)))
            else:
                numbered.append((index, raw))
        return numbered
