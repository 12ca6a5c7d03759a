"""
Lazily populated per-player caches (balance, profile, storefront).
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Awaitable, Callable, Generic, Hashable, Optional, TypeVar

from shared.logging import get_logger

from ..domain.models import BalanceRecord, ProfileRecord, StorePayload
from ..domain.results import CacheResult
from .key_index import PlayerKeyIndex
from .ttl_cache import TTLCache

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

V = TypeVar("V")

Fetcher = Callable[[], Awaitable[V]]


class DerivedDataCache(Generic[V]):
    """
    Memoizes an upstream fetch per key.

    A failed fetch is handed back as a failure result and nothing stale is
    served: derived data is cheap to refetch and callers already hold a
    fallback (usually the value on the session).
    """

    def __init__(
        self,
        name: str,
        ttl: float,
        index: PlayerKeyIndex,
        *,
        owner_of: Optional[Callable[[V], str]] = None,
        ttl_of: Optional[Callable[[V], float]] = None,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.index = index
        self.metrics = metrics
        self._owner_of = owner_of
        self._ttl_of = ttl_of
        self._cache: TTLCache[V] = TTLCache(ttl, name=name, clock=clock)
        self.logger = get_logger(f"store.cache.{name}")

    def get(self, key: Hashable) -> Optional[V]:
        return self._cache.get(key)

    def owner(self, key: Hashable, value: V, owner: Optional[str] = None) -> str:
        return owner or (self._owner_of(value) if self._owner_of else None) or str(key)

    def set(self, key: Hashable, value: V, *, owner: Optional[str] = None, ttl: Optional[float] = None) -> None:
        """Store ``value`` and record it under its owning player."""
        if ttl is None and self._ttl_of is not None:
            ttl = self._ttl_of(value)
        self._cache.set(key, value, ttl=ttl)
        self.index.add(self.owner(key, value, owner), self.name, key)

    def delete(self, key: Hashable) -> bool:
        return self._cache.delete(key)

    def contains(self, key: Hashable) -> bool:
        return self._cache.contains(key)

    def keys(self):
        return self._cache.keys()

    def sweep(self) -> int:
        return self._cache.sweep()

    async def get_or_fetch(
        self,
        key: Hashable,
        fetcher: Fetcher,
        *,
        owner: Optional[str] = None,
        ttl: Optional[float] = None,
    ) -> CacheResult[V]:
        """Return the cached value, or fetch, cache and return a fresh one."""
        cached = self._cache.get(key)
        if cached is not None:
            self.logger.debug("Cache hit", key=str(key))
            self._record("hit")
            return CacheResult.success(cached)

        self._record("miss")
        checkpoint = self.index.checkpoint()
        try:
            try:
                value = await fetcher()
            except Exception as exc:
                result: CacheResult[V] = CacheResult.from_exception(exc, self.name)
                self.logger.error(
                    "Derived data fetch failed",
                    cache=self.name,
                    status=result.status.value,
                    error=str(exc)
                )
                self._record("error")
                return result

            player_id = self.owner(key, value, owner)
            if self.index.removed_since(player_id, checkpoint):
                # the player logged out while the fetch was in flight
                self.logger.info("Discarding fetch for removed player", cache=self.name, player_id=player_id)
                return CacheResult.success(value)

            self.set(key, value, owner=player_id, ttl=ttl)
            return CacheResult.success(value)
        finally:
            self.index.release(checkpoint)

    def _record(self, result: str) -> None:
        if self.metrics:
            self.metrics.record_cache_access(self.name, result)


class BalanceCache(DerivedDataCache[BalanceRecord]):
    """Wallet balances keyed by player ID."""

    def __init__(self, ttl: float, index: PlayerKeyIndex, **kwargs) -> None:
        super().__init__("balance", ttl, index, **kwargs)


class ProfileCache(DerivedDataCache[ProfileRecord]):
    """
    Userinfo keyed by a fingerprint of the access token.

    The fingerprint is only the token prefix, so two tokens sharing a prefix
    share an entry. Riot access tokens are JWTs whose first characters are the
    same encoded header for every player, so ``key_length`` must reach well
    past the header.
    """

    def __init__(self, ttl: float, index: PlayerKeyIndex, *, key_length: int = 64, **kwargs) -> None:
        kwargs.setdefault("owner_of", lambda profile: profile.player_id)
        super().__init__("profile", ttl, index, **kwargs)
        self.key_length = key_length

    def fingerprint(self, access_token: str) -> str:
        return f"userinfo_{access_token[:self.key_length]}"


class StorefrontCache(DerivedDataCache[StorePayload]):
    """Raw daily offers keyed by player ID; entries live until the offers rotate."""

    def __init__(self, ttl: float, index: PlayerKeyIndex, **kwargs) -> None:
        kwargs.setdefault("ttl_of", remaining_offer_seconds)
        super().__init__("storefront", ttl, index, **kwargs)


def remaining_offer_seconds(payload: StorePayload) -> float:
    """Seconds until the offers rotate, never less than one."""
    remaining = (payload.expires - datetime.now(timezone.utc)).total_seconds()
    return max(remaining, 1.0)
