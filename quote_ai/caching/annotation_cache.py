"""
Annotation Cache Module

In-memory, content-addressed cache of useful-line annotations.
Entries expire after a fixed TTL and the oldest-inserted entry is evicted
when the cache is full. Safe to share between worker threads.
"""

import time
import hashlib
import logging
from collections import OrderedDict
from threading import Lock
from typing import Callable, Dict, Optional

from ..models import Annotation, CacheEntry

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600.0
DEFAULT_MAX_ENTRIES = 100


def generate_cache_key(raw_text: str, mode: str) -> str:
    """
    Generate a repeatable cache key from content and processing mode.

    Args:
        raw_text: The text the annotation was computed from
        mode: Processing-mode tag (e.g. prompt version)

    Returns:
        Hex SHA-256 digest of raw_text + mode
    """
    safe_text = str(raw_text) if raw_text is not None else ""
    safe_mode = str(mode) if mode is not None else ""
    return hashlib.sha256(f"{safe_text}{safe_mode}".encode('utf-8')).hexdigest()


class AnnotationCache:
    """TTL and size bounded annotation cache with insertion-order eviction."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, raw_text: str, mode: str) -> Optional[Annotation]:
        """Return a copy of the cached annotation, or None if absent or expired."""
        key = generate_cache_key(raw_text, mode)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() - entry.created_at > self.ttl_seconds:
                # Expired entries are dropped, never refreshed
                del self._entries[key]
                self._misses += 1
                logger.debug(f"Cache entry {key[:12]} expired")
                return None
            self._hits += 1
            return entry.annotation.copy()

    def put(self, raw_text: str, mode: str, annotation: Annotation) -> None:
        """Store a copy of an annotation, evicting the oldest entry when full."""
        key = generate_cache_key(raw_text, mode)
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            while len(self._entries) >= self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Evicted cache entry {evicted_key[:12]}")
            self._entries[key] = CacheEntry(key=key, annotation=annotation.copy(), created_at=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Annotation cache cleared")

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                'hits': self._hits,
                'misses': self._misses,
                'evictions': self._evictions,
                'size': len(self._entries),
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
