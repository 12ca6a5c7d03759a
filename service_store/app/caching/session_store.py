"""
Session store: one authenticated session per player.
"""

from __future__ import annotations

import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, Hashable, Iterable, Optional

from shared.logging import get_logger

from ..domain.models import SessionRecord
from ..domain.results import CacheResult
from .derived_cache import DerivedDataCache
from .key_index import PlayerKeyIndex
from .ttl_cache import TTLCache

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """
    Holds session records keyed by player ID.

    Reads slide the expiry: every successful ``get`` stamps ``last_activity``
    and re-writes the entry with a full TTL, so an active player never loses
    their session mid-use and an idle one drops out after ``ttl`` seconds.

    ``remove`` cascades into every derived cache entry the player key index
    recorded for that player. The cascade is best effort.
    """

    def __init__(
        self,
        ttl: float,
        index: PlayerKeyIndex,
        derived_caches: Iterable[DerivedDataCache] = (),
        *,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.index = index
        self.metrics = metrics
        self._now = now
        self._cache: TTLCache[SessionRecord] = TTLCache(ttl, name="session", clock=clock)
        self._derived: Dict[str, DerivedDataCache] = {cache.name: cache for cache in derived_caches}
        self.logger = get_logger("store.cache.session")

    def put(self, player_id: str, record: SessionRecord) -> SessionRecord:
        """Upsert the session, keeping ``created_at`` of a live session."""
        now = self._now()
        existing = self._cache.get(player_id)
        created_at = existing.created_at if existing is not None and existing.created_at else now
        stored = replace(record, player_id=player_id, created_at=created_at, last_activity=now)
        self._cache.set(player_id, stored)
        self.logger.debug("User session stored", player_id=player_id)
        return stored

    def get(self, player_id: str) -> CacheResult[SessionRecord]:
        record = self._cache.get(player_id)
        if record is None:
            self.logger.debug("No session found", player_id=player_id)
            return CacheResult.not_found("Session not found")

        refreshed = replace(record, last_activity=self._now())
        self._cache.set(player_id, refreshed)
        return CacheResult.success(refreshed)

    def update(self, player_id: str, record: SessionRecord) -> CacheResult[SessionRecord]:
        """Like ``put``, but only while the session is still live."""
        if not self._cache.contains(player_id):
            self.logger.info("Skipping update of removed session", player_id=player_id)
            return CacheResult.not_found("Session not found")
        return CacheResult.success(self.put(player_id, record))

    def remove(self, player_id: str) -> CacheResult[None]:
        """Delete the session and the player's derived entries."""
        existed = self._cache.delete(player_id)
        removed = self._cascade(player_id)

        self.logger.debug(
            "User session removed",
            player_id=player_id,
            existed=existed,
            derived_removed=removed
        )
        if not existed:
            return CacheResult.not_found("Session not found")
        return CacheResult.success(None)

    def _cascade(self, player_id: str) -> int:
        removed = 0
        for cache_name, key in self.index.pop(player_id):
            cache = self._derived.get(cache_name)
            if cache is None:
                continue
            try:
                if cache.delete(key):
                    removed += 1
                    if self.metrics:
                        self.metrics.increment_counter("cascade_deletes_total", cache=cache_name)
            except Exception as exc:
                self.logger.warning(
                    "Failed to remove derived cache entry",
                    player_id=player_id,
                    cache=cache_name,
                    error=str(exc)
                )
        return removed

    def sweep(self) -> Dict[str, int]:
        """
        Drop expired sessions and derived entries, then prune the key index.

        Expired sessions cascade exactly like ``remove``. Derived entries that
        outlived their session, such as a profile keyed by an old token, go
        when their own TTL runs out.
        """
        expired = self._cache.pop_expired()
        cascaded = sum(self._cascade(player_id) for player_id in expired)
        derived = sum(cache.sweep() for cache in self._derived.values())
        pruned = self.index.prune(self._is_live)

        counts = {"sessions": len(expired), "cascaded": cascaded, "derived": derived, "index": pruned}
        if any(counts.values()):
            self.logger.info("Expired cache entries swept", **counts)
        return counts

    def _is_live(self, cache_name: str, key: Hashable) -> bool:
        cache = self._derived.get(cache_name)
        return cache is not None and cache.contains(key)

    def list_all(self) -> Dict[str, Dict[str, Any]]:
        """Token-free summaries of every live session."""
        return {player_id: record.to_summary() for player_id, record in self._cache.items()}

    def __len__(self) -> int:
        return len(self._cache)
