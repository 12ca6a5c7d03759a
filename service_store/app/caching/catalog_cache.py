"""
Shared catalog cache (skins, bundles, client version) and its loader.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Tuple

from shared.errors import MalformedResponseError, StoreApiException, UpstreamUnavailableError
from shared.logging import get_logger

from ..domain.models import BundleDef, CatalogLoadState, CatalogSnapshot, ClientVersion, SkinDef
from ..domain.results import CacheResult
from .scheduler import ScheduledTask, Sleep
from .ttl_cache import TTLCache

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..adapters.game_data_client import GameDataClient


SKINS_KEY = "all_skins"
BUNDLES_KEY = "all_bundles"
VERSION_KEY = "client_version"

FALLBACK_CLIENT_VERSION = ClientVersion(
    version="release-08.05-shipping-11-878609",
    build="release-08.05-shipping-11-878609",
)

DEFAULT_CATALOG_TTL = 24 * 60 * 60
DEFAULT_VERSION_TTL = 60 * 60


class CatalogLoadError(Exception):
    """A load pass could not obtain a dataset the store listing depends on."""

    def __init__(self, failures: Dict[str, Exception]):
        self.failures = failures
        names = ", ".join(sorted(failures))
        super().__init__(f"Catalog load failed for: {names}")


class CatalogCache:
    """
    Process-wide catalog shared by every player.

    Reads resolve in tiers: fresh cached value, then a fresh fetch, then the
    stale cached value (logged as degraded), then for the version dataset only
    a hardcoded fallback. Skins and bundles with nothing cached and a failing
    fetch raise the upstream error.

    The load state machine runs independently of reads:
    UNINITIALIZED -> LOADING -> READY, or LOADING -> DEGRADED when the pass
    fails, and DEGRADED -> LOADING on the next scheduled retry.
    """

    STATES = tuple(state.value for state in CatalogLoadState)

    def __init__(
        self,
        client: "GameDataClient",
        *,
        skins_ttl: float = DEFAULT_CATALOG_TTL,
        bundles_ttl: float = DEFAULT_CATALOG_TTL,
        version_ttl: float = DEFAULT_VERSION_TTL,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.skins_ttl = skins_ttl
        self.bundles_ttl = bundles_ttl
        self.version_ttl = version_ttl
        self.metrics = metrics
        self.logger = get_logger("store.cache.catalog")
        self._cache: TTLCache[Any] = TTLCache(skins_ttl, name="catalog", keep_stale=True, clock=clock)
        self._state = CatalogLoadState.UNINITIALIZED
        self._loader: Optional[ScheduledTask] = None
        self._set_state(CatalogLoadState.UNINITIALIZED)

    @property
    def state(self) -> CatalogLoadState:
        return self._state

    @property
    def initialized(self) -> bool:
        return self._state is CatalogLoadState.READY

    @property
    def loader(self) -> Optional[ScheduledTask]:
        return self._loader

    def _set_state(self, state: CatalogLoadState) -> None:
        self._state = state
        if self.metrics:
            self.metrics.record_catalog_state(state.value, self.STATES)

    # Dataset reads

    async def get_skins(self) -> CacheResult[Tuple[SkinDef, ...]]:
        return await self._get_dataset(SKINS_KEY, "skins", self.client.get_skins, self.skins_ttl)

    async def get_bundles(self) -> CacheResult[Tuple[BundleDef, ...]]:
        return await self._get_dataset(BUNDLES_KEY, "bundles", self.client.get_bundles, self.bundles_ttl)

    async def get_version(self) -> CacheResult[ClientVersion]:
        return await self._get_dataset(
            VERSION_KEY,
            "version",
            self.client.get_version,
            self.version_ttl,
            fallback=FALLBACK_CLIENT_VERSION,
        )

    async def _get_dataset(
        self,
        key: str,
        dataset: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl: float,
        *,
        fallback: Any = None,
    ) -> CacheResult[Any]:
        cached = self._cache.get(key)
        if cached is not None:
            self.logger.debug("Using cached catalog dataset", dataset=dataset)
            self._record(dataset, "hit")
            return CacheResult.success(cached)

        self.logger.debug("Fetching catalog dataset", dataset=dataset)
        try:
            value = await fetch()
        except (UpstreamUnavailableError, MalformedResponseError) as exc:
            self.logger.error("Failed to fetch catalog dataset", dataset=dataset, error=str(exc))
            return self._degrade(key, dataset, exc, fallback)

        if isinstance(value, list):
            value = tuple(value)
        self._cache.set(key, value, ttl=ttl)
        self._record(dataset, "miss")
        self.logger.info(
            "Catalog dataset fetched and cached",
            dataset=dataset,
            count=len(value) if isinstance(value, tuple) else None
        )
        return CacheResult.success(value)

    def _degrade(self, key: str, dataset: str, error: StoreApiException, fallback: Any) -> CacheResult[Any]:
        stale = self._cache.get_stale(key)
        if stale is not None:
            self.logger.warning("Serving stale catalog dataset due to upstream error", dataset=dataset)
            self._record(dataset, "stale")
            return CacheResult.stale(stale, error)

        if fallback is not None:
            self.logger.warning("Serving fallback catalog dataset due to upstream error", dataset=dataset)
            self._record(dataset, "fallback")
            return CacheResult.stale(fallback, error)

        self._record(dataset, "error")
        raise error

    def _record(self, dataset: str, result: str) -> None:
        if self.metrics:
            self.metrics.record_cache_access(f"catalog_{dataset}", result)

    # Load state machine

    async def initialize(self) -> CatalogLoadState:
        """Run one load pass and move the state machine accordingly."""
        self._set_state(CatalogLoadState.LOADING)
        self.logger.info("Starting game data initialization")
        try:
            await self._load_all()
        except Exception as exc:
            self.logger.error("Failed to initialize game data", error=str(exc))
            self._set_state(CatalogLoadState.DEGRADED)
            self._record_load("failure")
            return self._state

        self._set_state(CatalogLoadState.READY)
        self._record_load("success")
        self.logger.info("Game data initialization completed")
        return self._state

    async def _load_all(self) -> None:
        names = ("skins", "bundles", "version")
        outcomes = await asyncio.gather(
            self.get_skins(),
            self.get_bundles(),
            self.get_version(),
            return_exceptions=True,
        )

        failures: Dict[str, Exception] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, Exception):
                self.logger.error("Catalog dataset load failed", dataset=name, error=str(outcome))
                failures[name] = outcome
            elif outcome.degraded:
                self.logger.warning("Catalog dataset loaded in degraded mode", dataset=name)
            else:
                self.logger.info("Catalog dataset loaded", dataset=name)

        if failures:
            raise CatalogLoadError(failures)

    def _record_load(self, outcome: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("catalog_load_total", outcome=outcome)

    def create_loader(
        self,
        *,
        initial_delay: float = 1.0,
        retry_interval: float = 30.0,
        sleep: Optional[Sleep] = None,
    ) -> ScheduledTask:
        """Build the background loader: first pass after a delay, retries until READY."""

        async def _load_pass() -> bool:
            return await self.initialize() is CatalogLoadState.READY

        self._loader = ScheduledTask(
            "catalog_loader",
            _load_pass,
            initial_delay=initial_delay,
            interval=retry_interval,
            sleep=sleep,
        )
        return self._loader

    async def stop(self) -> None:
        if self._loader is not None:
            await self._loader.stop()

    # Read-only views

    async def snapshot(self) -> Optional[CatalogSnapshot]:
        """Catalog view for the enrichment join, or None until the catalog is READY."""
        if not self.initialized:
            return None
        try:
            skins, bundles = await asyncio.gather(self.get_skins(), self.get_bundles())
        except StoreApiException as exc:
            self.logger.warning("Catalog snapshot unavailable", error=str(exc))
            return None
        version = self._cache.get_stale(VERSION_KEY)
        return CatalogSnapshot(skins=skins.value or (), bundles=bundles.value or (), version=version)

    def get_health(self) -> Dict[str, Any]:
        """Occupancy of each dataset (fresh or stale) plus the load state."""
        return {
            "initialized": self.initialized,
            "state": self._state.value,
            "datasets": {
                "skins": self._cache.contains(SKINS_KEY, include_stale=True),
                "bundles": self._cache.contains(BUNDLES_KEY, include_stale=True),
                "version": self._cache.contains(VERSION_KEY, include_stale=True),
            },
        }
