"""
Session JWTs handed to the frontend after a successful Riot login.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import Request
from jose import JWTError, jwt

from shared.errors import AuthenticationError
from shared.logging import get_logger


@dataclass(frozen=True)
class AuthContext:
    """Authenticated request context derived from a verified session JWT."""

    player_id: str
    username: Optional[str]
    region: Optional[str]
    claims: Dict[str, Any]
    token: str


class TokenIssuer:
    """Signs and verifies the HS256 tokens that identify a player's session."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        expires_hours: int = 24,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.secret = secret
        self.algorithm = algorithm
        self.expires_hours = expires_hours
        self._now = now
        self.logger = get_logger("store.auth.tokens")

    def issue(self, player_id: str, username: Optional[str] = None, region: Optional[str] = None) -> str:
        issued_at = self._now()
        claims = {
            "sub": player_id,
            "userId": player_id,
            "username": username,
            "region": region,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + timedelta(hours=self.expires_hours)).timestamp()),
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> AuthContext:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as exc:
            self.logger.warning("JWT validation failed", error=str(exc))
            raise AuthenticationError("Invalid or expired token")

        player_id = claims.get("sub") or claims.get("userId")
        if not isinstance(player_id, str) or not player_id:
            raise AuthenticationError("JWT missing subject claim")

        return AuthContext(
            player_id=player_id,
            username=claims.get("username"),
            region=claims.get("region"),
            claims=claims,
            token=token,
        )

    def authenticate(self, request: Request) -> AuthContext:
        """Verify the bearer token on an incoming request."""
        authorization = request.headers.get("Authorization")
        if not authorization or not authorization.startswith("Bearer "):
            raise AuthenticationError("Missing or invalid Authorization header")

        token = authorization[7:].strip()
        if not token:
            raise AuthenticationError("Authorization header contained empty bearer token")

        return self.verify(token)
