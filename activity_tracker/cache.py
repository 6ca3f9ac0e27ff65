"""
Activity Tracker — Document cache.

One entry per username, each remembering when it was fetched. Freshness is a
pure predicate over a caller-supplied instant; nothing expires on a timer.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    fetched_at: float

    def is_stale(self, now: float, ttl: float) -> bool:
        """True once ``ttl`` seconds have passed since the fetch."""
        return now - self.fetched_at >= ttl


class DocumentCache(Generic[T]):
    """Per-key cache of the last good value with manual invalidation.

    Stale entries are kept: they are the fallback when the backend is down.
    """

    def __init__(self, ttl_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}

    def get(self, key: str) -> Optional[T]:
        """Return the value if present and fresh."""
        entry = self._entries.get(key)
        if entry is None or entry.is_stale(self._clock(), self.ttl):
            return None
        return entry.value

    def last_good(self, key: str) -> Optional[T]:
        """Return the value regardless of age."""
        entry = self._entries.get(key)
        return entry.value if entry else None

    def set(self, key: str, value: T) -> None:
        self._entries[key] = CacheEntry(value, self._clock())

    def invalidate(self, key: str | None = None) -> None:
        """Drop one key, or everything when ``key`` is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
        logger.debug("Cache invalidated: %s", key or "all")
