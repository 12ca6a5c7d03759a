"""
Shared fixtures for store service tests.
"""

from typing import Any, Dict, List

import pytest

from shared.errors import UpstreamUnavailableError
from service_store.app.domain.models import BundleDef, ClientVersion, SkinDef, SkinLevel


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.counters = []
        self.cache_accesses = []
        self.states = []

    def increment_counter(self, metric_name: str, **labels):
        self.counters.append((metric_name, labels))

    def record_cache_access(self, cache: str, result: str):
        self.cache_accesses.append((cache, result))

    def record_catalog_state(self, state: str, states):
        self.states.append(state)


class FakeGameDataClient:
    """In-memory catalog upstream whose datasets can be made to fail."""

    def __init__(self, skins: List[SkinDef], bundles: List[BundleDef], version: ClientVersion):
        self.skins = skins
        self.bundles = bundles
        self.version = version
        self.failing = set()
        self.calls: Dict[str, int] = {"skins": 0, "bundles": 0, "version": 0}
        self.closed = False

    def fail(self, *datasets: str) -> None:
        self.failing.update(datasets)

    def recover(self) -> None:
        self.failing.clear()

    def _serve(self, dataset: str, value: Any) -> Any:
        self.calls[dataset] += 1
        if dataset in self.failing:
            raise UpstreamUnavailableError("game_data", f"{dataset} unavailable")
        return value

    async def get_skins(self) -> List[SkinDef]:
        return list(self._serve("skins", self.skins))

    async def get_bundles(self) -> List[BundleDef]:
        return list(self._serve("bundles", self.bundles))

    async def get_version(self) -> ClientVersion:
        return self._serve("version", self.version)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def metrics() -> DummyMetrics:
    return DummyMetrics()


@pytest.fixture
def prime_vandal() -> SkinDef:
    return SkinDef(
        uuid="skin-prime-vandal",
        display_name="Prime Vandal",
        display_icon="https://media.example/prime-vandal.png",
        theme_uuid="theme-prime",
        content_tier_uuid="tier-premium",
        levels=(
            SkinLevel(uuid="L1", display_name="Prime Vandal"),
            SkinLevel(uuid="L2", display_name="Prime Vandal Level 2"),
        ),
    )


@pytest.fixture
def catalog_skins(prime_vandal) -> List[SkinDef]:
    return [
        prime_vandal,
        SkinDef(
            uuid="skin-reaver-sheriff",
            display_name="Reaver Sheriff",
            levels=(SkinLevel(uuid="R1"),),
        ),
    ]


@pytest.fixture
def catalog_bundles() -> List[BundleDef]:
    return [
        BundleDef(uuid="bundle-prime", display_name="Prime", description="Prime collection"),
        BundleDef(uuid="bundle-glitchpop", display_name="Glitchpop"),
    ]


@pytest.fixture
def client_version() -> ClientVersion:
    return ClientVersion(version="release-09.00-shipping-14-2345678", build="2345678")


@pytest.fixture
def game_data_client(catalog_skins, catalog_bundles, client_version) -> FakeGameDataClient:
    return FakeGameDataClient(catalog_skins, catalog_bundles, client_version)

