"""
Pipeline Configuration
Collects LLM, cache, OCR and content-size settings from the environment.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()
logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {value!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


@dataclass
class PipelineConfig:
    """Settings for one pipeline instance.

    Numeric OCR cutoffs are empirically derived defaults and are meant to be
    tuned per deployment.
    """

    # LLM endpoint (any OpenAI-compatible chat completions API)
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 6000
    timeout_seconds: float = 300.0
    max_requests_per_minute: int = 100

    # Annotation cache
    cache_ttl_seconds: float = 3600.0
    cache_max_entries: int = 100

    # Stage 1 content cap
    max_basic_info_chars: int = 8000

    # OCR
    ocr_languages: str = "chi_sim+eng"
    ocr_target_height: int = 1200
    ocr_max_workers: int = 4
    ocr_min_meaningful_ratio: float = 0.5
    ocr_min_avg_confidence: float = 60.0
    ocr_long_text_chars: int = 100
    ocr_long_text_confidence: float = 70.0
    tesseract_cmd: Optional[str] = None
    temp_dir: Optional[str] = None

    # Prompt template overrides
    prompt_dir: Optional[str] = None

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build a configuration from environment variables (and a .env file)."""
        defaults = cls()
        return cls(
            api_key=os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY"),
            base_url=os.getenv("LLM_BASE_URL") or None,
            model=os.getenv("LLM_MODEL", defaults.model),
            temperature=_env_float("LLM_TEMPERATURE", defaults.temperature),
            max_tokens=_env_int("LLM_MAX_TOKENS", defaults.max_tokens),
            timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", defaults.timeout_seconds),
            max_requests_per_minute=_env_int("MAX_REQUESTS_PER_MINUTE", defaults.max_requests_per_minute),
            cache_ttl_seconds=_env_float("ANNOTATION_CACHE_TTL_SECONDS", defaults.cache_ttl_seconds),
            cache_max_entries=_env_int("ANNOTATION_CACHE_MAX_ENTRIES", defaults.cache_max_entries),
            max_basic_info_chars=_env_int("MAX_BASIC_INFO_CHARS", defaults.max_basic_info_chars),
            ocr_languages=os.getenv("OCR_LANGUAGES", defaults.ocr_languages),
            ocr_target_height=_env_int("OCR_TARGET_HEIGHT", defaults.ocr_target_height),
            ocr_max_workers=_env_int("OCR_MAX_WORKERS", defaults.ocr_max_workers),
            ocr_min_meaningful_ratio=_env_float("OCR_MIN_MEANINGFUL_RATIO", defaults.ocr_min_meaningful_ratio),
            ocr_min_avg_confidence=_env_float("OCR_MIN_AVG_CONFIDENCE", defaults.ocr_min_avg_confidence),
            tesseract_cmd=os.getenv("TESSERACT_CMD") or None,
            temp_dir=os.getenv("OCR_TEMP_DIR") or None,
            prompt_dir=os.getenv("PROMPT_DIR") or None,
        )
