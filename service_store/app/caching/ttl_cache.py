"""
In-process TTL cache primitive.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

V = TypeVar("V")

# (value, expires_at); expires_at is a clock reading or None for "never"
CacheEntry = Tuple[Any, Optional[float]]


class TTLCache(Generic[V]):
    """
    Key/value store with per-entry expiry.

    Expiry is lazy: entries are checked when read. By default an expired entry
    is dropped on the read that notices it. Caches created with
    ``keep_stale=True`` keep expired entries around so ``get_stale`` can serve
    them as an explicit fallback; ``get`` never returns them either way.

    A ``ttl`` of zero or less stores the entry without expiry.
    """

    def __init__(
        self,
        default_ttl: float,
        *,
        name: str = "cache",
        keep_stale: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.default_ttl = default_ttl
        self.keep_stale = keep_stale
        self._clock = clock
        self._store: Dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()

    def _expires_at(self, ttl: Optional[float]) -> Optional[float]:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl is None or ttl <= 0:
            return None
        return self._clock() + ttl

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        expires_at = entry[1]
        return expires_at is not None and now >= expires_at

    def get(self, key: Hashable) -> Optional[V]:
        """Return the value if present and unexpired, else None."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if self._is_expired(entry, self._clock()):
                if not self.keep_stale:
                    del self._store[key]
                return None
            return entry[0]

    def get_stale(self, key: Hashable) -> Optional[V]:
        """Return the value even if it expired (only retained with keep_stale)."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if not self.keep_stale and self._is_expired(entry, self._clock()):
                del self._store[key]
                return None
            return entry[0]

    def set(self, key: Hashable, value: V, ttl: Optional[float] = None) -> None:
        """Store ``value`` for ``ttl`` seconds (cache default when None)."""
        with self._lock:
            self._store[key] = (value, self._expires_at(ttl))

    def delete(self, key: Hashable) -> bool:
        """Remove ``key``; returns whether an entry (live or stale) existed."""
        with self._lock:
            return self._store.pop(key, None) is not None

    def contains(self, key: Hashable, *, include_stale: bool = False) -> bool:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return False
            return include_stale or not self._is_expired(entry, self._clock())

    def keys(self) -> List[Hashable]:
        """Live keys. Linear in cache size; meant for maintenance paths only."""
        with self._lock:
            now = self._clock()
            return [key for key, entry in self._store.items() if not self._is_expired(entry, now)]

    def items(self) -> List[Tuple[Hashable, V]]:
        """Live (key, value) pairs, same cost caveat as ``keys``."""
        with self._lock:
            now = self._clock()
            return [(key, entry[0]) for key, entry in self._store.items() if not self._is_expired(entry, now)]

    def sweep(self) -> int:
        """Drop expired entries eagerly. Stale-keeping caches are left alone."""
        return len(self.pop_expired())

    def pop_expired(self) -> List[Hashable]:
        """Drop expired entries and return their keys."""
        if self.keep_stale:
            return []
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._store.items() if self._is_expired(entry, now)]
            for key in expired:
                del self._store[key]
            return expired

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self.keys())
