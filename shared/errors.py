"""
Shared error handling for Valstore Access Layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class StoreApiException(Exception):
    """Base exception for Valstore services."""

    status_code: int = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class AuthenticationError(StoreApiException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class ValidationError(StoreApiException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(StoreApiException):
    """A session or cached record does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class UpstreamUnavailableError(StoreApiException):
    """Network failure, timeout or non-2xx status from an upstream service."""

    status_code = 503

    def __init__(self, service: str, message: str = "Upstream service unavailable", details: Optional[Dict[str, Any]] = None):
        self.service = service
        super().__init__("UPSTREAM_UNAVAILABLE", f"{service}: {message}", details)


class MalformedResponseError(StoreApiException):
    """Upstream answered, but the payload did not have the expected shape."""

    status_code = 502

    def __init__(self, service: str, message: str = "Malformed upstream response", details: Optional[Dict[str, Any]] = None):
        self.service = service
        super().__init__("MALFORMED_RESPONSE", f"{service}: {message}", details)
