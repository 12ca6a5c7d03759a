"""
Store API service for Valstore Access Layer.
"""

import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import (
    AuthenticationError,
    NotFoundError,
    StoreApiException,
    UpstreamUnavailableError,
    ValidationError,
)
from shared.logging import set_player_context

from .adapters import GameDataClient, RiotClient
from .adapters.oauth import build_authorize_url, parse_callback_url
from .auth import AuthContext, TokenIssuer
from .caching import (
    BalanceCache,
    CatalogCache,
    PlayerKeyIndex,
    ProfileCache,
    ScheduledTask,
    SessionStore,
    StorefrontCache,
)
from .caching.catalog_cache import FALLBACK_CLIENT_VERSION
from .domain.enrichment import enrich_store
from .domain.models import AccountXP, BalanceRecord, SessionRecord

SERVICE_NAME = "store"
SERVICE_PORT = 8000


class CallbackRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    callback_url: Optional[str] = Field(default=None, alias="callbackUrl")


class SwitchAccountRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_user_id: Optional[str] = Field(default=None, alias="targetUserId")


@dataclass(frozen=True)
class PlayerSession:
    """A verified bearer token together with the live session it points at."""

    auth: AuthContext
    session: SessionRecord

    @property
    def player_id(self) -> str:
        return self.auth.player_id


def _to_dict(record: Any) -> Optional[Dict[str, Any]]:
    return record.to_dict() if record is not None else None


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class StoreApiService(BaseService):
    """Store API service: login, player data, daily store and catalog."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        game_data_client: Optional[GameDataClient] = None,
        riot_client: Optional[RiotClient] = None,
        clock=time.monotonic,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config or get_config(SERVICE_NAME, SERVICE_PORT))

        self.game_data_client = game_data_client or GameDataClient(
            self.config.game_data_url,
            timeout=self.config.catalog_timeout,
            version_timeout=self.config.upstream_timeout,
        )
        self.riot_client = riot_client or RiotClient(
            auth_url=self.config.auth_url,
            entitlements_url=self.config.entitlements_url,
            player_data_url_template=self.config.player_data_url_template,
            default_region=self.config.default_region,
            timeout=self.config.upstream_timeout,
        )

        self.key_index = PlayerKeyIndex()
        self.balance_cache = BalanceCache(
            self.config.balance_ttl, self.key_index, metrics=self.metrics, clock=clock
        )
        self.profile_cache = ProfileCache(
            self.config.user_info_ttl,
            self.key_index,
            key_length=self.config.profile_key_length,
            metrics=self.metrics,
            clock=clock,
        )
        self.storefront_cache = StorefrontCache(
            self.config.session_ttl, self.key_index, metrics=self.metrics, clock=clock
        )
        self.sessions = SessionStore(
            self.config.session_ttl,
            self.key_index,
            (self.balance_cache, self.profile_cache, self.storefront_cache),
            metrics=self.metrics,
            clock=clock,
        )
        self.catalog = CatalogCache(
            self.game_data_client,
            skins_ttl=self.config.skins_ttl,
            bundles_ttl=self.config.bundles_ttl,
            version_ttl=self.config.version_ttl,
            metrics=self.metrics,
            clock=clock,
        )
        self.tokens = TokenIssuer(
            self.config.jwt_secret,
            algorithm=self.config.jwt_algorithm,
            expires_hours=self.config.jwt_expires_hours,
        )

        self.sweeper = ScheduledTask(
            "cache_sweeper",
            self._sweep_caches,
            initial_delay=self.config.cache_sweep_interval,
            interval=self.config.cache_sweep_interval,
        )

        @self.app.on_event("startup")
        async def _startup():
            self.sweeper.start()
            if self.config.catalog_autostart:
                loader = self.catalog.create_loader(
                    initial_delay=self.config.catalog_initial_delay,
                    retry_interval=self.config.catalog_retry_interval,
                )
                loader.start()
                self.logger.info("Catalog loader scheduled", initial_delay=self.config.catalog_initial_delay)

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.sweeper.stop()
            await self.catalog.stop()
            await self.game_data_client.close()
            await self.riot_client.close()

        self._setup_store_routes()
        self._setup_auth_routes()
        self._setup_game_data_routes()

        self.app.state.store_service = self

    async def _check_dependencies(self) -> Dict[str, Any]:
        return {"catalog": self.catalog.get_health()}

    async def _sweep_caches(self) -> bool:
        self.sessions.sweep()
        return False

    async def require_session(self, request: Request) -> PlayerSession:
        """Resolve the bearer JWT and the session it names; 401 when either fails."""
        auth = self.tokens.authenticate(request)
        result = self.sessions.get(auth.player_id)
        if not result.ok:
            self.logger.warning("Request with expired session", player_id=auth.player_id)
            raise AuthenticationError("Session expired, please login again")
        set_player_context(auth.player_id)
        return PlayerSession(auth=auth, session=result.value)

    async def _load_balance(self, session: SessionRecord) -> Optional[BalanceRecord]:
        result = await self.balance_cache.get_or_fetch(
            session.player_id,
            lambda: self.riot_client.get_balance(session),
            owner=session.player_id,
        )
        if not result.ok:
            self.logger.warning("Balance unavailable", player_id=session.player_id, status=result.status.value)
            return None
        return result.value

    async def _load_account_xp(self, session: SessionRecord) -> Optional[AccountXP]:
        try:
            return await self.riot_client.get_account_xp(session)
        except StoreApiException as exc:
            self.logger.warning("Account XP unavailable", player_id=session.player_id, error=exc.message)
            return None

    def _user_payload(self, session: SessionRecord) -> Dict[str, Any]:
        return {
            "user": session.to_user_dict(),
            "balance": _to_dict(session.balance),
            "accountXP": _to_dict(session.account_xp),
        }

    def _setup_store_routes(self):
        """Set up banner and daily store routes."""

        @self.app.get("/")
        async def root():
            return {
                "service": SERVICE_NAME,
                "message": "Valstore Access Layer - Store API",
                "version": "1.0.0",
            }

        @self.app.get("/api/store/daily")
        async def get_daily_store(current: PlayerSession = Depends(self.require_session)):
            session = current.session
            version = (await self.catalog.get_version()).value or FALLBACK_CLIENT_VERSION

            result = await self.storefront_cache.get_or_fetch(
                session.player_id,
                lambda: self.riot_client.get_storefront(session, version),
                owner=session.player_id,
            )
            store = result.unwrap()

            enriched = enrich_store(store, await self.catalog.snapshot())
            if not enriched.enriched:
                self.logger.warning("Serving unenriched daily store", player_id=session.player_id)

            body = enriched.to_dict()
            return {
                "success": True,
                "data": {"store": body.pop("items"), **body},
            }

    def _setup_auth_routes(self):
        """Set up login, session and multi-account routes."""

        @self.app.get("/api/auth/generate-url")
        async def generate_auth_url():
            return {
                "success": True,
                "message": "Authentication URL generated",
                "data": {"authUrl": build_authorize_url(self.config)},
            }

        @self.app.post("/api/auth/callback")
        async def process_callback(body: CallbackRequest):
            tokens = parse_callback_url(body.callback_url)
            entitlements_token = await self.riot_client.get_entitlements_token(tokens.access_token)

            profile = (await self.profile_cache.get_or_fetch(
                self.profile_cache.fingerprint(tokens.access_token),
                lambda: self.riot_client.get_user_info(tokens.access_token),
            )).unwrap()

            session = SessionRecord(
                player_id=profile.player_id,
                access_token=tokens.access_token,
                entitlements_token=entitlements_token,
                token_type=tokens.token_type,
                id_token=tokens.id_token,
                username=profile.username,
                game_name=profile.game_name,
                tag_line=profile.tag_line,
                region=profile.region,
            )
            session = replace(
                session,
                balance=await self._load_balance(session),
                account_xp=await self._load_account_xp(session),
            )
            stored = self.sessions.put(profile.player_id, session)
            token = self.tokens.issue(stored.player_id, stored.username, stored.region)

            self.logger.info("User authenticated", player_id=stored.player_id, username=stored.username)
            return {
                "success": True,
                "message": "Authentication successful",
                "data": {
                    "token": token,
                    **self._user_payload(stored),
                    "session": {
                        "loginTime": _isoformat(stored.created_at),
                        "expiresIn": f"{self.config.jwt_expires_hours}h",
                    },
                },
            }

        @self.app.get("/api/auth/profile")
        async def get_profile(current: PlayerSession = Depends(self.require_session)):
            session = current.session
            return {
                "success": True,
                "data": {
                    **session.to_user_dict(),
                    "balance": _to_dict(session.balance),
                    "accountXP": _to_dict(session.account_xp),
                    "session": {
                        "lastActivity": _isoformat(session.last_activity),
                        "createdAt": _isoformat(session.created_at),
                    },
                },
            }

        @self.app.post("/api/auth/refresh")
        async def refresh(current: PlayerSession = Depends(self.require_session)):
            session = current.session
            self.balance_cache.delete(session.player_id)
            balance = await self._load_balance(session)
            account_xp = await self._load_account_xp(session)

            updated = self.sessions.update(session.player_id, replace(
                session,
                balance=balance if balance is not None else session.balance,
                account_xp=account_xp if account_xp is not None else session.account_xp,
            ))
            if not updated.ok:
                raise AuthenticationError("Session expired, please login again")

            self.logger.info("User data refreshed", player_id=session.player_id)
            return {
                "success": True,
                "message": "Data refreshed successfully",
                "data": {
                    "balance": _to_dict(balance),
                    "accountXP": _to_dict(account_xp),
                    "refreshedAt": datetime.now(timezone.utc).isoformat(),
                },
            }

        @self.app.get("/api/auth/sessions")
        async def list_sessions(current: PlayerSession = Depends(self.require_session)):
            sessions = self.sessions.list_all()
            return {
                "success": True,
                "message": "Active sessions retrieved",
                "data": {"sessions": sessions, "count": len(sessions)},
            }

        @self.app.post("/api/auth/switch")
        async def switch_account(body: SwitchAccountRequest, current: PlayerSession = Depends(self.require_session)):
            target_id = body.target_user_id
            if not target_id:
                raise ValidationError("Target user ID is required")
            if target_id == current.player_id:
                raise ValidationError("Cannot switch to the same account")

            result = self.sessions.get(target_id)
            if not result.ok:
                raise NotFoundError("Target account session not found or expired")

            target = result.value
            token = self.tokens.issue(target.player_id, target.username, target.region)
            self.logger.info("Account switched", from_player=current.player_id, to_player=target.player_id)
            return {
                "success": True,
                "message": "Account switched successfully",
                "data": {"token": token, **self._user_payload(target)},
            }

        @self.app.post("/api/auth/logout")
        async def logout(current: PlayerSession = Depends(self.require_session)):
            self.sessions.remove(current.player_id)
            self.logger.info("User logged out", player_id=current.player_id)
            return {"success": True, "message": "Logged out successfully"}

        @self.app.post("/api/auth/logout/{user_id}")
        async def logout_account(user_id: str, current: PlayerSession = Depends(self.require_session)):
            result = self.sessions.remove(user_id)
            if not result.ok:
                raise NotFoundError("Account session not found")
            self.logger.info("Account logged out", player_id=user_id, by_player=current.player_id)
            return {"success": True, "message": "Account logged out successfully"}

    def _setup_game_data_routes(self):
        """Set up public catalog routes."""

        async def _read_list(read, dataset: str) -> Dict[str, Any]:
            try:
                result = await read()
            except StoreApiException as exc:
                self.logger.error("Catalog dataset unavailable", dataset=dataset, error=exc.message)
                raise UpstreamUnavailableError(
                    "game_data",
                    f"Unable to fetch {dataset} data at the moment",
                    details={"cause": exc.code}
                )
            items = result.value or ()
            return {
                "success": True,
                "data": [item.to_dict() for item in items],
                "count": len(items),
                "cached": True,
                "degraded": result.degraded,
            }

        @self.app.get("/api/game-data/skins")
        async def get_skins():
            return await _read_list(self.catalog.get_skins, "skins")

        @self.app.get("/api/game-data/bundles")
        async def get_bundles():
            return await _read_list(self.catalog.get_bundles, "bundles")

        @self.app.get("/api/game-data/version")
        async def get_version():
            result = await self.catalog.get_version()
            return {"success": True, "data": result.value.to_dict(), "degraded": result.degraded}

        @self.app.get("/api/game-data/health")
        async def get_game_data_health():
            health = self.catalog.get_health()
            return {
                "success": True,
                "data": health,
                "message": "Game data service is healthy" if health["initialized"] else "Game data service is initializing",
            }


def create_app(
    config: Optional[ServiceConfig] = None,
    *,
    game_data_client: Optional[GameDataClient] = None,
    riot_client: Optional[RiotClient] = None,
    clock=time.monotonic,
):
    """Create FastAPI application."""
    service = StoreApiService(
        config,
        game_data_client=game_data_client,
        riot_client=riot_client,
        clock=clock,
    )
    return service.app


if __name__ == "__main__":
    service = StoreApiService()
    service.run()
