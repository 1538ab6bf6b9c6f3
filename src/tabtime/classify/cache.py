"""Bounded, time-expiring domain -> category cache."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from tabtime.core.defaults import CACHE_MAX_ENTRIES, CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    domain: str
    category: str
    timestamp: float


class ClassificationCache:
    """Remembers recent classification results per domain.

    An entry is fresh while ``now - timestamp <= ttl_seconds``; stale
    entries are treated as misses and never returned.  Cleanup runs
    synchronously after every :meth:`insert`: expired entries go first,
    then the oldest survivors until the size is back at *max_entries*.

    Args:
        ttl_seconds: Freshness window (default 24 h).
        max_entries: Hard size cap (default 1000).
        clock: Returns the current time in seconds; injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        max_entries: int = CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, domain: object) -> bool:
        return domain in self._entries

    def lookup(self, domain: str) -> str | None:
        with self._lock:
            entry = self._entries.get(domain)
            if entry is None:
                return None
            if self._clock() - entry.timestamp > self.ttl_seconds:
                return None
            return entry.category

    def insert(self, domain: str, category: str) -> None:
        with self._lock:
            self._entries[domain] = CacheEntry(domain, category, self._clock())
            self._cleanup()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Classification cache cleared")

    def _cleanup(self) -> None:
        now = self._clock()
        expired = [
            d for d, e in self._entries.items() if now - e.timestamp > self.ttl_seconds
        ]
        for domain in expired:
            del self._entries[domain]

        excess = len(self._entries) - self.max_entries
        if excess > 0:
            oldest = sorted(self._entries.values(), key=lambda e: e.timestamp)[:excess]
            for entry in oldest:
                del self._entries[entry.domain]
            logger.debug("Evicted %d oldest cache entries", excess)
