"""
valorant-api.com client for the shared catalog datasets.
"""

from typing import Any, Dict, List, Optional

import httpx

from shared.logging import get_logger
from shared.errors import MalformedResponseError, StoreApiException, UpstreamUnavailableError
from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.retry import RetryConfig, call_with_retry

from ..domain.models import BundleDef, ClientVersion, SkinDef

USER_AGENT = "ValstoreAccess/1.0.0"
SERVICE_NAME = "game_data"


class GameDataClient:
    """Client for the public game catalog (skins, bundles, client version).

    Every payload arrives wrapped in a ``data`` envelope; a response without
    one is treated as malformed.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 15.0,
        version_timeout: float = 10.0,
        language: str = "en-US",
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.version_timeout = version_timeout
        self.language = language
        self.logger = get_logger("store.game_data_client")

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=30.0,
            name=SERVICE_NAME
        )

        self.retry_config = retry_config or RetryConfig(
            max_attempts=3,
            base_delay=0.5,
            max_delay=5.0,
            exponential_base=2.0,
            jitter=True
        )

        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": USER_AGENT}
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def get_skins(self) -> List[SkinDef]:
        """Fetch every weapon skin with its levels."""
        data = await self._fetch_data("/weapons/skins", params={"language": self.language})
        return [SkinDef.from_dict(item) for item in self._as_list(data, "skins")]

    async def get_bundles(self) -> List[BundleDef]:
        """Fetch every store bundle."""
        data = await self._fetch_data("/bundles", params={"language": self.language})
        return [BundleDef.from_dict(item) for item in self._as_list(data, "bundles")]

    async def get_version(self) -> ClientVersion:
        """Fetch the live client version."""
        data = await self._fetch_data("/version", timeout=self.version_timeout)
        if not isinstance(data, dict):
            raise MalformedResponseError(SERVICE_NAME, "Version payload is not an object")
        version = ClientVersion.from_dict(data)
        if not version.version:
            raise MalformedResponseError(SERVICE_NAME, "Version payload has no version string")
        return version

    @staticmethod
    def _as_list(data: Any, dataset: str) -> List[Dict[str, Any]]:
        if not isinstance(data, list):
            raise MalformedResponseError(SERVICE_NAME, f"Expected a list of {dataset}")
        return [item for item in data if isinstance(item, dict)]

    async def _fetch_data(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """GET ``path`` and unwrap its ``data`` envelope, with retries."""

        async def _request():
            url = f"{self.base_url}{path}"
            response = await self._client.get(url, params=params, timeout=timeout or self.timeout)

            if response.status_code != 200:
                self.logger.error(
                    "Game data request failed",
                    url=url,
                    status_code=response.status_code
                )
                raise UpstreamUnavailableError(
                    SERVICE_NAME,
                    f"Unexpected status {response.status_code}",
                    details={"status_code": response.status_code, "path": path}
                )

            try:
                payload = response.json()
            except ValueError:
                raise MalformedResponseError(SERVICE_NAME, "Response body is not JSON", details={"path": path})

            if not isinstance(payload, dict) or payload.get("data") is None:
                raise MalformedResponseError(
                    SERVICE_NAME,
                    "Invalid response format: missing 'data'",
                    details={"path": path}
                )

            self.logger.debug("Game data retrieved", url=url)
            return payload["data"]

        async def _guarded():
            try:
                return await self.circuit_breaker.call(_request)
            except StoreApiException:
                raise
            except CircuitBreakerOpenException as exc:
                raise UpstreamUnavailableError(SERVICE_NAME, str(exc), details={"path": path})
            except httpx.HTTPError as exc:
                self.logger.error("Game data HTTP error", path=path, error=str(exc))
                raise UpstreamUnavailableError(SERVICE_NAME, str(exc) or type(exc).__name__, details={"path": path})

        return await call_with_retry(
            _guarded,
            exceptions=(UpstreamUnavailableError,),
            config=self.retry_config,
            name=f"{SERVICE_NAME}{path.replace('/', '.')}"
        )
