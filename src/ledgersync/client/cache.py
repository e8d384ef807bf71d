"""In-memory TTL cache for presentation data.

Keys are ``:``-separated, e.g. ``ledger``, ``ledger:abc`` or
``transaction:abc:summary``. The sync engine invalidates by pattern
after each pass: ``ledger`` drops every ledger key, ``ledger:abc`` drops
that ledger's keys only.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300.0  # seconds


@dataclass
class CacheEntry:
    """A cached value and its expiry time."""

    value: Any
    expires_at: float


class MemoryCache:
    """Thread-safe TTL cache with pattern invalidation."""

    def __init__(self, default_ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic) -> None:
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Any | None:
        """Return a cached value, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Cache a value."""
        ttl = self._default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = CacheEntry(value, self._clock() + ttl)

    def get_or_load(self, key: str, loader: Callable[[], Any], ttl: float | None = None) -> Any:
        """Return the cached value, loading and caching it on a miss."""
        value = self.get(key)
        if value is None:
            value = loader()
            self.set(key, value, ttl)
        return value

    def invalidate(self, key: str) -> bool:
        """Drop one key. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_pattern(self, pattern: str) -> int:
        """Drop every key equal to the pattern or nested under it.

        Returns:
            Number of keys dropped.
        """
        prefix = pattern + ":"
        with self._lock:
            doomed = [k for k in self._entries if k == pattern or k.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug("Invalidated %d cache key(s) for %s", len(doomed), pattern)
        return len(doomed)

    def clear(self) -> None:
        """Drop everything."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
