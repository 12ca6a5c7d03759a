"""
Riot client for per-player data (identity, entitlements, wallet, XP, storefront).
"""

import base64
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx

from shared.logging import get_logger
from shared.errors import (
    AuthenticationError,
    MalformedResponseError,
    StoreApiException,
    UpstreamUnavailableError,
    ValidationError,
)
from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.retry import RetryConfig, call_with_retry

from ..domain.models import AccountXP, BalanceRecord, ClientVersion, ProfileRecord, SessionRecord, StorePayload

SERVICE_NAME = "riot"

BALANCE_TYPES = {
    "valorant_points": "85ad13f7-3d1b-5128-9eb2-7cd8ee0b5741",
    "radianite_points": "e59aa87c-4cbf-517a-5983-6e81511be9b7",
    "kingdom_credits": "85ca954a-41f2-ce94-9b45-8ca3dd39a00d",
}

CLIENT_PLATFORM = {
    "platformType": "PC",
    "platformOS": "Windows",
    "platformOSVersion": "10.0.19042.1.256.64bit",
    "platformChipset": "Unknown",
}

CLIENT_PLATFORM_HEADER = base64.b64encode(json.dumps(CLIENT_PLATFORM).encode()).decode()

# 4xx answers that describe the host rather than the request
HOST_LEVEL_STATUSES = (408, 429)


class RiotClient:
    """Client for Riot auth and player-data endpoints."""

    def __init__(
        self,
        *,
        auth_url: str,
        entitlements_url: str,
        player_data_url_template: str,
        default_region: str = "ap",
        timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.auth_url = auth_url.rstrip('/')
        self.entitlements_url = entitlements_url
        self.player_data_url_template = player_data_url_template.rstrip('/')
        self.default_region = default_region
        self.logger = get_logger("store.riot_client")

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=30.0,
            name=SERVICE_NAME,
            excluded=(AuthenticationError, ValidationError, MalformedResponseError),
        )

        self.retry_config = retry_config or RetryConfig(
            max_attempts=2,
            base_delay=0.5,
            max_delay=2.0,
            jitter=True
        )

        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _player_url(self, region: Optional[str], path: str) -> str:
        base = self.player_data_url_template.format(region=region or self.default_region)
        return f"{base}{path}"

    @staticmethod
    def _player_headers(session: SessionRecord) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {session.access_token}",
            "X-Riot-Entitlements-JWT": session.entitlements_token,
            "X-Riot-ClientPlatform": CLIENT_PLATFORM_HEADER,
        }

    async def get_entitlements_token(self, access_token: str) -> str:
        """Exchange an access token for an entitlements token."""
        payload = await self._request(
            "POST",
            self.entitlements_url,
            headers={"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"},
            json={},
        )
        token = payload.get("entitlements_token")
        if not token:
            raise MalformedResponseError(SERVICE_NAME, "No entitlements token received")
        self.logger.debug("Entitlements token obtained")
        return token

    async def get_user_info(self, access_token: str) -> ProfileRecord:
        """Resolve the player's identity from the userinfo endpoint."""
        payload = await self._request(
            "GET",
            f"{self.auth_url}/userinfo",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        player_id = payload.get("sub")
        if not player_id:
            raise MalformedResponseError(SERVICE_NAME, "Userinfo response missing subject")

        account = payload.get("acct") or {}
        game_name = account.get("game_name")
        tag_line = account.get("tag_line")
        profile = ProfileRecord(
            player_id=player_id,
            game_name=game_name,
            tag_line=tag_line,
            region=account.get("region") or self.default_region,
            username=f"{game_name}#{tag_line}",
        )
        self.logger.debug("User info retrieved", player_id=player_id, username=profile.username)
        return profile

    async def get_balance(self, session: SessionRecord) -> BalanceRecord:
        """Fetch VP / RP / KC balances."""
        payload = await self._request(
            "GET",
            self._player_url(session.region, f"/store/v1/wallet/{session.player_id}"),
            headers=self._player_headers(session),
        )
        balances = payload.get("Balances")
        if not isinstance(balances, dict):
            raise MalformedResponseError(SERVICE_NAME, "Wallet response missing 'Balances'")

        return BalanceRecord.from_dict({
            "valorantPoints": balances.get(BALANCE_TYPES["valorant_points"]),
            "radianitePoints": balances.get(BALANCE_TYPES["radianite_points"]),
            "kingdomCredits": balances.get(BALANCE_TYPES["kingdom_credits"]),
        })

    async def get_account_xp(self, session: SessionRecord) -> AccountXP:
        """Fetch account level and XP."""
        payload = await self._request(
            "GET",
            self._player_url(session.region, f"/account-xp/v1/players/{session.player_id}"),
            headers=self._player_headers(session),
        )
        progress = payload.get("Progress") or {}
        if not isinstance(progress, dict):
            raise MalformedResponseError(SERVICE_NAME, "Account XP response has no 'Progress' object")
        try:
            return AccountXP(level=int(progress.get("Level") or 0), xp=int(progress.get("XP") or 0))
        except (TypeError, ValueError):
            raise MalformedResponseError(SERVICE_NAME, "Account XP values are not numeric")

    async def get_storefront(self, session: SessionRecord, version: ClientVersion) -> StorePayload:
        """Fetch the player's daily single-item offers."""
        headers = self._player_headers(session)
        headers["X-Riot-ClientVersion"] = version.version
        payload = await self._request(
            "GET",
            self._player_url(session.region, f"/store/v2/storefront/{session.player_id}"),
            headers=headers,
        )

        layout = payload.get("SkinsPanelLayout")
        if not isinstance(layout, dict) or not isinstance(layout.get("SingleItemOffers"), list):
            raise MalformedResponseError(SERVICE_NAME, "Storefront response missing 'SkinsPanelLayout'")

        try:
            remaining = int(layout.get("SingleItemOffersRemainingDurationInSeconds") or 0)
        except (TypeError, ValueError):
            raise MalformedResponseError(SERVICE_NAME, "Storefront remaining duration is not numeric")
        expires = datetime.now(timezone.utc) + timedelta(seconds=remaining)
        self.logger.info("Daily store fetched", player_id=session.player_id)
        return StorePayload(
            item_ids=tuple(str(item) for item in layout["SingleItemOffers"]),
            refresh_time=expires,
            expires=expires,
        )

    def _status_error(self, method: str, url: str, status_code: int) -> StoreApiException:
        """
        Classify a non-200 answer.

        5xx, 408 and 429 are host failures: retried and counted by the circuit
        breaker. Any other 4xx belongs to this request alone, usually an
        expired player token, and is neither retried nor counted.
        """
        details = {"status_code": status_code}
        if status_code >= 500 or status_code in HOST_LEVEL_STATUSES:
            self.logger.error("Riot request failed", method=method, url=url, status_code=status_code)
            return UpstreamUnavailableError(SERVICE_NAME, f"Unexpected status {status_code}", details=details)

        self.logger.warning("Riot rejected request", method=method, url=url, status_code=status_code)
        if status_code in (401, 403):
            return AuthenticationError("Riot rejected the player credentials", details=details)
        return ValidationError(f"Riot rejected the request with status {status_code}", details=details)

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Send a request through the circuit breaker and decode a JSON object."""

        async def _send():
            response = await self._client.request(method, url, **kwargs)
            if response.status_code != 200:
                raise self._status_error(method, url, response.status_code)
            try:
                payload = response.json()
            except ValueError:
                raise MalformedResponseError(SERVICE_NAME, "Response body is not JSON")
            if not isinstance(payload, dict):
                raise MalformedResponseError(SERVICE_NAME, "Response body is not an object")
            return payload

        async def _guarded():
            try:
                return await self.circuit_breaker.call(_send)
            except StoreApiException:
                raise
            except CircuitBreakerOpenException as exc:
                raise UpstreamUnavailableError(SERVICE_NAME, str(exc))
            except httpx.HTTPError as exc:
                self.logger.error("Riot HTTP error", method=method, url=url, error=str(exc))
                raise UpstreamUnavailableError(SERVICE_NAME, str(exc) or type(exc).__name__)

        return await call_with_retry(
            _guarded,
            exceptions=(UpstreamUnavailableError,),
            config=self.retry_config,
            name=f"{SERVICE_NAME}.{method.lower()}"
        )
