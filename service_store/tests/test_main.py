"""
Unit tests for the Store API service routes.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from shared.config import ServiceConfig
from shared.errors import UpstreamUnavailableError
from service_store.app.main import StoreApiService, create_app
from service_store.app.domain.models import AccountXP, BalanceRecord, ProfileRecord, SessionRecord, StorePayload

PROFILES = {
    "AT1": ProfileRecord(player_id="p1", game_name="Alpha", tag_line="0001", region="ap", username="Alpha#0001"),
    "AT2": ProfileRecord(player_id="p2", game_name="Bravo", tag_line="0002", region="eu", username="Bravo#0002"),
}


def callback_url(access_token: str) -> str:
    return f"https://playvalorant.com/opt_in#access_token={access_token}&id_token=ID-{access_token}&token_type=Bearer"


class FakeRiotClient:
    """Riot upstream double backed by AsyncMocks."""

    def __init__(self):
        self.get_entitlements_token = AsyncMock(return_value="ent-token")
        self.get_user_info = AsyncMock(side_effect=lambda token: PROFILES[token])
        self.get_balance = AsyncMock(return_value=BalanceRecord(valorant_points=1500, radianite_points=20))
        self.get_account_xp = AsyncMock(return_value=AccountXP(level=42, xp=900))
        self.get_storefront = AsyncMock(side_effect=self._storefront)
        self.close = AsyncMock()

    async def _storefront(self, session, version):
        expires = datetime.now(timezone.utc) + timedelta(hours=5)
        return StorePayload(item_ids=("L1", "UNKNOWN"), refresh_time=expires, expires=expires)


class TestStoreApiService:
    """Test cases for StoreApiService."""

    @pytest.fixture
    def config(self):
        return ServiceConfig(
            service_name="store",
            port=8000,
            jwt_secret="test-secret",
            catalog_autostart=False,
        )

    @pytest.fixture
    def riot_client(self):
        return FakeRiotClient()

    @pytest.fixture
    def service(self, config, game_data_client, riot_client):
        return StoreApiService(config, game_data_client=game_data_client, riot_client=riot_client)

    @pytest.fixture
    def client(self, service):
        return TestClient(service.app)

    def login(self, client, access_token: str = "AT1") -> str:
        response = client.post("/api/auth/callback", json={"callbackUrl": callback_url(access_token)})
        assert response.status_code == 200
        return response.json()["data"]["token"]

    @staticmethod
    def bearer(token: str):
        return {"Authorization": f"Bearer {token}"}

    def test_root_endpoint(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "store"

    def test_health_includes_catalog(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"]["catalog"]["state"] == "uninitialized"

    def test_metrics_endpoint(self, client):
        client.get("/")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_logout_records_cascade_metrics(self, client, service):
        token = self.login(client)

        client.post("/api/auth/logout", headers=self.bearer(token))

        registry = service.metrics.registry
        assert registry.get_sample_value("cascade_deletes_total", {"cache": "balance"}) == 1.0
        assert registry.get_sample_value("cascade_deletes_total", {"cache": "profile"}) == 1.0
        assert registry.get_sample_value("catalog_state", {"state": "uninitialized"}) == 1.0

    def test_request_id_header(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_generate_url(self, client):
        response = client.get("/api/auth/generate-url")

        assert response.status_code == 200
        assert response.json()["data"]["authUrl"].startswith("https://auth.riotgames.com/authorize?")

    def test_callback_creates_session(self, client, service, riot_client):
        response = client.post("/api/auth/callback", json={"callbackUrl": callback_url("AT1")})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"] == {
            "id": "p1",
            "username": "Alpha#0001",
            "gameName": "Alpha",
            "tagLine": "0001",
            "region": "ap",
        }
        assert data["balance"]["valorantPoints"] == 1500
        assert data["accountXP"] == {"level": 42, "xp": 900}
        assert service.tokens.verify(data["token"]).player_id == "p1"

        session = service.sessions.get("p1").value
        assert session.access_token == "AT1"
        assert session.entitlements_token == "ent-token"
        assert session.id_token == "ID-AT1"
        riot_client.get_entitlements_token.assert_awaited_once_with("AT1")

    def test_callback_tolerates_balance_and_xp_failures(self, client, riot_client):
        riot_client.get_balance.side_effect = UpstreamUnavailableError("riot", "wallet down")
        riot_client.get_account_xp.side_effect = UpstreamUnavailableError("riot", "xp down")

        response = client.post("/api/auth/callback", json={"callbackUrl": callback_url("AT1")})

        assert response.status_code == 200
        assert response.json()["data"]["balance"] is None
        assert response.json()["data"]["accountXP"] is None

    def test_callback_rejects_url_without_tokens(self, client):
        response = client.post("/api/auth/callback", json={"callbackUrl": "https://playvalorant.com/opt_in"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_callback_entitlements_failure_is_upstream_error(self, client, riot_client):
        riot_client.get_entitlements_token.side_effect = UpstreamUnavailableError("riot", "down")

        response = client.post("/api/auth/callback", json={"callbackUrl": callback_url("AT1")})

        assert response.status_code == 503
        assert response.json()["code"] == "UPSTREAM_UNAVAILABLE"

    def test_profile(self, client):
        token = self.login(client)

        response = client.get("/api/auth/profile", headers=self.bearer(token))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == "p1"
        assert data["balance"]["valorantPoints"] == 1500
        assert data["session"]["createdAt"] is not None

    def test_protected_route_requires_token(self, client):
        response = client.get("/api/auth/profile")

        assert response.status_code == 401
        assert response.json()["code"] == "AUTHENTICATION_ERROR"

    def test_protected_route_rejects_invalid_token(self, client):
        response = client.get("/api/auth/profile", headers=self.bearer("not-a-jwt"))

        assert response.status_code == 401

    def test_valid_token_without_session_is_rejected(self, client, service):
        token = service.tokens.issue("nobody")

        response = client.get("/api/auth/profile", headers=self.bearer(token))

        assert response.status_code == 401

    def test_refresh_updates_balance(self, client, service, riot_client):
        token = self.login(client)
        riot_client.get_balance.return_value = BalanceRecord(valorant_points=200)

        response = client.post("/api/auth/refresh", headers=self.bearer(token))

        assert response.status_code == 200
        assert response.json()["data"]["balance"]["valorantPoints"] == 200
        assert service.sessions.get("p1").value.balance.valorant_points == 200

    def test_refresh_keeps_previous_values_on_failure(self, client, service, riot_client):
        token = self.login(client)
        riot_client.get_balance.side_effect = UpstreamUnavailableError("riot", "down")

        response = client.post("/api/auth/refresh", headers=self.bearer(token))

        assert response.status_code == 200
        assert response.json()["data"]["balance"] is None
        assert service.sessions.get("p1").value.balance.valorant_points == 1500

    def test_logout_during_refresh_is_final(self, client, service, riot_client):
        token = self.login(client)

        async def balance_after_logout(session):
            service.sessions.remove(session.player_id)
            return BalanceRecord(valorant_points=999)

        riot_client.get_balance.side_effect = balance_after_logout

        response = client.post("/api/auth/refresh", headers=self.bearer(token))

        assert response.status_code == 401
        assert not service.sessions.get("p1").ok
        assert service.balance_cache.get("p1") is None
        assert service.key_index.get("p1") == set()

    def test_sessions_lists_every_account(self, client):
        token = self.login(client, "AT1")
        self.login(client, "AT2")

        response = client.get("/api/auth/sessions", headers=self.bearer(token))

        data = response.json()["data"]
        assert data["count"] == 2
        assert set(data["sessions"]) == {"p1", "p2"}
        assert "accessToken" not in data["sessions"]["p1"]

    def test_switch_account(self, client, service):
        token = self.login(client, "AT1")
        self.login(client, "AT2")

        response = client.post("/api/auth/switch", json={"targetUserId": "p2"}, headers=self.bearer(token))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["id"] == "p2"
        assert service.tokens.verify(data["token"]).player_id == "p2"

    def test_switch_to_same_account_is_rejected(self, client):
        token = self.login(client, "AT1")

        response = client.post("/api/auth/switch", json={"targetUserId": "p1"}, headers=self.bearer(token))

        assert response.status_code == 400

    def test_switch_to_unknown_account_is_not_found(self, client):
        token = self.login(client, "AT1")

        response = client.post("/api/auth/switch", json={"targetUserId": "p9"}, headers=self.bearer(token))

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_logout_removes_session_and_derived_data(self, client, service):
        token = self.login(client)
        client.get("/api/store/daily", headers=self.bearer(token))

        response = client.post("/api/auth/logout", headers=self.bearer(token))

        assert response.status_code == 200
        assert client.get("/api/auth/profile", headers=self.bearer(token)).status_code == 401
        assert service.balance_cache.get("p1") is None
        assert service.storefront_cache.get("p1") is None
        assert service.profile_cache.get(service.profile_cache.fingerprint("AT1")) is None

    def test_logout_other_account(self, client, service):
        token = self.login(client, "AT1")
        self.login(client, "AT2")

        response = client.post("/api/auth/logout/p2", headers=self.bearer(token))

        assert response.status_code == 200
        assert not service.sessions.get("p2").ok
        assert service.sessions.get("p1").ok

    def test_logout_unknown_account_is_not_found(self, client):
        token = self.login(client)

        response = client.post("/api/auth/logout/p9", headers=self.bearer(token))

        assert response.status_code == 404

    def test_daily_store_before_catalog_ready_is_not_enriched(self, client):
        token = self.login(client)

        response = client.get("/api/store/daily", headers=self.bearer(token))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["store"] == ["L1", "UNKNOWN"]
        assert data["enriched"] is False

    def test_daily_store_enriched_when_catalog_ready(self, client, service, riot_client, client_version):
        asyncio.run(service.catalog.initialize())
        token = self.login(client)

        response = client.get("/api/store/daily", headers=self.bearer(token))

        data = response.json()["data"]
        assert data["enriched"] is True
        assert data["store"][0]["displayName"] == "Prime Vandal"
        assert data["store"][0]["bundle"]["displayName"] == "Prime"
        assert data["store"][1] == {"id": "UNKNOWN"}
        _, version = riot_client.get_storefront.await_args.args
        assert version == client_version

    def test_daily_store_is_cached_per_player(self, client, riot_client):
        token = self.login(client)

        client.get("/api/store/daily", headers=self.bearer(token))
        client.get("/api/store/daily", headers=self.bearer(token))

        riot_client.get_storefront.assert_awaited_once()

    def test_daily_store_upstream_failure(self, client, riot_client):
        token = self.login(client)
        riot_client.get_storefront.side_effect = UpstreamUnavailableError("riot", "down")

        response = client.get("/api/store/daily", headers=self.bearer(token))

        assert response.status_code == 503

    def test_game_data_skins(self, client, catalog_skins):
        response = client.get("/api/game-data/skins")

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == len(catalog_skins)
        assert body["data"][0]["displayName"] == "Prime Vandal"
        assert body["degraded"] is False

    def test_game_data_skins_unavailable(self, client, game_data_client):
        game_data_client.fail("skins")

        response = client.get("/api/game-data/skins")

        assert response.status_code == 503
        assert response.json()["code"] == "UPSTREAM_UNAVAILABLE"

    def test_game_data_version_fallback(self, client, game_data_client):
        game_data_client.fail("version")

        response = client.get("/api/game-data/version")

        assert response.status_code == 200
        assert response.json()["degraded"] is True
        assert response.json()["data"]["version"] == "release-08.05-shipping-11-878609"

    def test_game_data_health(self, client):
        response = client.get("/api/game-data/health")

        assert response.json()["data"]["state"] == "uninitialized"
        assert response.json()["message"] == "Game data service is initializing"


class TestCreateApp:
    """Test cases for create_app and lifecycle hooks."""

    def test_create_app_exposes_service(self, game_data_client):
        config = ServiceConfig(service_name="store", port=8000, catalog_autostart=False)

        app = create_app(config, game_data_client=game_data_client, riot_client=FakeRiotClient())

        assert isinstance(app.state.store_service, StoreApiService)

    def test_shutdown_closes_clients(self, game_data_client):
        config = ServiceConfig(service_name="store", port=8000, catalog_autostart=False)
        riot_client = FakeRiotClient()
        app = create_app(config, game_data_client=game_data_client, riot_client=riot_client)

        with TestClient(app):
            pass

        assert game_data_client.closed
        riot_client.close.assert_awaited_once()

    def test_startup_schedules_catalog_loader(self, game_data_client):
        config = ServiceConfig(service_name="store", port=8000, catalog_initial_delay=0.0)
        app = create_app(config, game_data_client=game_data_client, riot_client=FakeRiotClient())
        service = app.state.store_service

        with TestClient(app) as client:
            for _ in range(100):
                if client.get("/api/game-data/health").json()["data"]["initialized"]:
                    break

        assert service.catalog.loader is not None
        assert service.catalog.initialized

    def test_sweeper_runs_for_app_lifetime(self, game_data_client):
        config = ServiceConfig(service_name="store", port=8000, catalog_autostart=False)
        app = create_app(config, game_data_client=game_data_client, riot_client=FakeRiotClient())
        service = app.state.store_service

        with TestClient(app):
            assert service.sweeper.running

        assert not service.sweeper.running
        assert service.sweeper.done.is_set()

    @pytest.mark.asyncio
    async def test_sweep_job_keeps_rescheduling(self, game_data_client, clock):
        config = ServiceConfig(service_name="store", port=8000, catalog_autostart=False, session_ttl=60)
        service = StoreApiService(
            config, game_data_client=game_data_client, riot_client=FakeRiotClient(), clock=clock
        )
        service.sessions.put("p1", SessionRecord(player_id="p1", access_token="AT1", entitlements_token="e"))
        service.balance_cache.set("p1", BalanceRecord(valorant_points=1), owner="p1")
        clock.advance(3600)

        finished = await service._sweep_caches()

        assert finished is False
        assert len(service.sessions) == 0
        assert len(service.key_index) == 0
