"""
Result Parser Module
Recovers structured data from raw LLM responses.

LLM output is not guaranteed to be valid JSON, so parsing runs an ordered
list of strategies, each returning a ParseOutcome, from a plain parse through
increasingly aggressive repairs down to per-field regex extraction.
"""

import re
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

# Configure logging
logger = logging.getLogger(__name__)

# Field kinds understood by the regex strategy
STRING = "string"
NUMBER = "number"
INT_LIST = "int_list"


class ResponseParseError(ValueError):
    """Raised when no strategy could recover a value from the response."""

    def __init__(self, message: str, cause: Optional[str] = None):
        super().__init__(message if not cause else f"{message}: {cause}")
        self.cause = cause


@dataclass
class ParseOutcome:
    """Result of one parse strategy: either a value or the reason it failed."""
    ok: bool
    value: Any = None
    error: Optional[str] = None
    strategy: str = ""

    @classmethod
    def success(cls, value: Any, strategy: str) -> "ParseOutcome":
        return cls(ok=True, value=value, strategy=strategy)

    @classmethod
    def failure(cls, error: str, strategy: str) -> "ParseOutcome":
        return cls(ok=False, error=error, strategy=strategy)


Strategy = Callable[[str], ParseOutcome]


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences (```json ... ```) wrapping a response.

    Only a leading fence is stripped; backticks inside the payload are kept.
    """
    clean = text.strip()
    if not clean.startswith("```"):
        return clean
    fenced = re.match(r"```[A-Za-z]*\s*([\s\S]*?)\s*```", clean)
    if fenced:
        return fenced.group(1).strip()
    return clean.strip("` \n\r\t")


def isolate_json(text: str) -> Optional[str]:
    """Return the outermost JSON object or array embedded in text, if any."""
    starts = [i for i in (text.find('{'), text.find('[')) if i != -1]
    if not starts:
        return None
    start = min(starts)
    closer = '}' if text[start] == '{' else ']'
    end = text.rfind(closer)
    if end <= start:
        return None
    return text[start:end + 1]


class ResultParser:
    """Parses and repairs LLM API responses."""

    LITERALS = {'true', 'false', 'null'}

    def __init__(self, annotation_mode: bool = False):
        """
        Args:
            annotation_mode: Also try reading a bare line-number list
                (e.g. ``1, 2, 5-7``) before regex extraction
        """
        self.annotation_mode = annotation_mode

    def parse(self, response: str, expected_fields: Optional[Dict[str, str]] = None) -> Any:
        """Recover a structured value from a raw LLM response.

        Args:
            response: Raw text returned by the model
            expected_fields: Field name -> kind (string/number/int_list) used by
                the regex strategy when no JSON can be recovered

        Returns:
            The parsed JSON value; the regex strategy yields a single-element list

        Raises:
            ResponseParseError: If every strategy fails
        """
        if not response or not response.strip():
            raise ResponseParseError("Empty response")

        strategies: List[Strategy] = [self.parse_direct, self.parse_normalized, self.parse_repaired]
        if self.annotation_mode:
            strategies.append(self.parse_number_list)
        strategies.append(lambda text: self.parse_regex(text, expected_fields or {}))

        outcome = ParseOutcome.failure("no strategy attempted", "none")
        for strategy in strategies:
            outcome = strategy(response)
            if outcome.ok:
                if outcome.strategy != "direct":
                    logger.info(f"Recovered LLM response using '{outcome.strategy}' strategy")
                return outcome.value
            logger.debug(f"Parse strategy '{outcome.strategy}' failed: {outcome.error}")

        logger.warning(f"Failed to parse LLM response: {response[:100]}...")
        raise ResponseParseError("Could not parse LLM response", outcome.error)

    @staticmethod
    def parse_direct(response: str) -> ParseOutcome:
        try:
            return ParseOutcome.success(json.loads(response.strip()), "direct")
        except json.JSONDecodeError:
            pass
        candidate = isolate_json(strip_code_fences(response))
        if candidate is None:
            return ParseOutcome.failure("no JSON object or array found", "direct")
        try:
            return ParseOutcome.success(json.loads(candidate), "direct")
        except json.JSONDecodeError as e:
            return ParseOutcome.failure(str(e), "direct")

    def parse_normalized(self, response: str) -> ParseOutcome:
        candidate = isolate_json(self.normalize(response))
        if candidate is None:
            return ParseOutcome.failure("no JSON object or array found", "normalized")
        try:
            return ParseOutcome.success(json.loads(candidate), "normalized")
        except json.JSONDecodeError as e:
            return ParseOutcome.failure(str(e), "normalized")

    def parse_repaired(self, response: str) -> ParseOutcome:
        candidate = isolate_json(self.normalize(response))
        if candidate is None:
            return ParseOutcome.failure("no JSON object or array found", "repaired")
        candidate = self.repair(candidate)
        try:
            return ParseOutcome.success(json.loads(candidate), "repaired")
        except json.JSONDecodeError as e:
            return ParseOutcome.failure(str(e), "repaired")

    @staticmethod
    def parse_number_list(response: str) -> ParseOutcome:
        """Read a bare list of line numbers and ranges: ``[1, 2, 5-7]`` or ``1,2,5-7``."""
        text = strip_code_fences(response).strip().strip('[]')
        if not re.fullmatch(r'[\d\s,，、\-–]+', text) or not re.search(r'\d', text):
            return ParseOutcome.failure("not a number list", "number_list")

        numbers: List[int] = []
        for token in re.split(r'[\s,，、]+', text):
            if not token:
                continue
            span = re.fullmatch(r'(\d+)\s*[-–]\s*(\d+)', token)
            if span:
                low, high = int(span.group(1)), int(span.group(2))
                if low > high:
                    low, high = high, low
                numbers.extend(range(low, high + 1))
            elif token.isdigit():
                numbers.append(int(token))
            else:
                return ParseOutcome.failure(f"bad token {token!r}", "number_list")
        return ParseOutcome.success(numbers, "number_list")

    @staticmethod
    def parse_regex(response: str, expected_fields: Dict[str, str]) -> ParseOutcome:
        """Pull each expected field out of the raw text independently."""
        result: Dict[str, Any] = {}
        for name, kind in expected_fields.items():
            key = rf'["\']?{re.escape(name)}["\']?\s*[:：=]\s*'
            if kind == NUMBER:
                match = re.search(key + r'["\']?(-?[\d,]*\.?\d+)', response)
                if match:
                    try:
                        result[name] = float(match.group(1).replace(',', ''))
                    except ValueError:
                        continue
            elif kind == INT_LIST:
                match = re.search(key + r'\[([^\]]*)\]', response)
                if match:
                    result[name] = [int(n) for n in re.findall(r'\d+', match.group(1))]
            else:
                match = re.search(key + r'"([^"]*)"', response) or re.search(key + r"'([^']*)'", response)
                if match:
                    result[name] = match.group(1)

        if not result:
            return ParseOutcome.failure("no expected field found by pattern", "regex")
        return ParseOutcome.success([result], "regex")

    @staticmethod
    def normalize(text: str) -> str:
        """Preprocess near-JSON text into strict JSON syntax where possible."""
        text = strip_code_fences(text)
        # Comments (avoid eating "://" inside URLs)
        text = re.sub(r'/\*[\s\S]*?\*/', '', text)
        text = re.sub(r'(?<![:"\'])//[^\n]*', '', text)
        # Full-width punctuation
        text = text.replace('，', ',').replace('：', ':')
        # Single-quoted strings to double-quoted
        text = re.sub(r"'([^'\"\n]*)'", r'"\1"', text)
        # Bare keys
        text = re.sub(r'([{,]\s*)([A-Za-z_][\w\-]*)(\s*:)', r'\1"\2"\3', text)
        # Trailing commas
        text = re.sub(r',\s*([}\]])', r'\1', text)
        # Whitespace
        text = re.sub(r'\s+', ' ', text)
        return text.strip()

    def repair(self, text: str) -> str:
        """Stronger repairs: Python literals, bare scalar values, trailing commas."""
        text = re.sub(r'(:\s*|[\[,]\s*)None\b', r'\1null', text)
        text = re.sub(r'(:\s*|[\[,]\s*)True\b', r'\1true', text)
        text = re.sub(r'(:\s*|[\[,]\s*)False\b', r'\1false', text)

        def quote_value(match: re.Match) -> str:
            value = match.group(2).strip()
            if value.lower() in self.LITERALS or re.fullmatch(r'-?\d+(\.\d+)?([eE][+-]?\d+)?', value):
                return match.group(0)
            escaped = value.replace('\\', '\\\\').replace('"', '\\"')
            return f'{match.group(1)}"{escaped}"{match.group(3)}'

        text = re.sub(r'(:\s*)([^\s"\[{][^,}\]]*?)(\s*[,}\]])', quote_value, text)
        text = re.sub(r',\s*([}\]])', r'\1', text)
        return text
