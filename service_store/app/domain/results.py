"""
Tagged outcomes returned across the cache boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

from shared.errors import (
    MalformedResponseError,
    NotFoundError,
    StoreApiException,
    UpstreamUnavailableError,
)

T = TypeVar("T")


class ResultStatus(str, Enum):
    """Outcome kinds for cache reads."""
    OK = "ok"
    DEGRADED = "degraded"
    NOT_FOUND = "not_found"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    MALFORMED_RESPONSE = "malformed_response"


_FAILURE_BY_CODE = {
    "NOT_FOUND": ResultStatus.NOT_FOUND,
    "MALFORMED_RESPONSE": ResultStatus.MALFORMED_RESPONSE,
}


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    """A value, or the reason there is none.

    ``DEGRADED`` carries a usable value (stale or fallback) together with the
    error that prevented a fresh one.
    """

    status: ResultStatus
    value: Optional[T] = None
    error: Optional[StoreApiException] = None

    @property
    def ok(self) -> bool:
        """True when ``value`` can be used (fresh or degraded)."""
        return self.status in (ResultStatus.OK, ResultStatus.DEGRADED)

    @property
    def degraded(self) -> bool:
        return self.status is ResultStatus.DEGRADED

    def unwrap(self) -> T:
        """Return the value or raise the recorded failure."""
        if self.ok:
            return self.value  # type: ignore[return-value]
        if self.error is not None:
            raise self.error
        raise NotFoundError()

    @classmethod
    def success(cls, value: T) -> "CacheResult[T]":
        return cls(ResultStatus.OK, value)

    @classmethod
    def stale(cls, value: T, error: Optional[StoreApiException] = None) -> "CacheResult[T]":
        return cls(ResultStatus.DEGRADED, value, error)

    @classmethod
    def not_found(cls, message: str = "Not found") -> "CacheResult[T]":
        return cls(ResultStatus.NOT_FOUND, None, NotFoundError(message))

    @classmethod
    def failure(cls, error: StoreApiException) -> "CacheResult[T]":
        status = _FAILURE_BY_CODE.get(error.code, ResultStatus.UPSTREAM_UNAVAILABLE)
        return cls(status, None, error)

    @classmethod
    def from_exception(cls, error: Exception, service: str) -> "CacheResult[T]":
        """Wrap an arbitrary fetch failure in the error taxonomy."""
        if isinstance(error, StoreApiException):
            return cls.failure(error)
        if isinstance(error, (ValueError, KeyError, TypeError)):
            return cls.failure(MalformedResponseError(service, str(error)))
        return cls.failure(UpstreamUnavailableError(service, str(error)))
