"""
Riot implicit-grant login helpers: authorize URL and callback parsing.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlsplit

from shared.config import BaseConfig
from shared.errors import ValidationError
from shared.logging import get_logger

logger = get_logger("store.oauth")


@dataclass(frozen=True)
class CallbackTokens:
    """Tokens carried in the fragment of the post-login redirect."""

    access_token: str
    id_token: str
    token_type: str = "Bearer"


def build_authorize_url(config: BaseConfig) -> str:
    """Authorize URL to open in the frontend WebView."""
    params = urlencode({
        "redirect_uri": config.oauth_redirect_uri,
        "client_id": config.oauth_client_id,
        "response_type": config.oauth_response_type,
        "nonce": config.oauth_nonce,
        "scope": config.oauth_scope,
    })
    url = f"{config.auth_url.rstrip('/')}/authorize?{params}"
    logger.debug("Generated OAuth URL", auth_url=url)
    return url


def parse_callback_url(callback_url: Optional[str]) -> CallbackTokens:
    """
    Extract the tokens from the redirect URL fragment.

    Raises ValidationError when the URL carries no access token or lacks
    either the access or the id token.
    """
    if not callback_url or "access_token" not in callback_url:
        raise ValidationError("Invalid callback URL or missing tokens", details={"reason": "INVALID_CALLBACK"})

    fragment = urlsplit(callback_url).fragment
    params = parse_qs(fragment)

    access_token = params.get("access_token", [None])[0]
    id_token = params.get("id_token", [None])[0]
    token_type = params.get("token_type", [None])[0] or "Bearer"

    if not access_token or not id_token:
        raise ValidationError("Missing required tokens in callback", details={"reason": "MISSING_TOKENS"})

    logger.debug("Tokens extracted from callback", has_access_token=True, has_id_token=True)
    return CallbackTokens(access_token=access_token, id_token=id_token, token_type=token_type)
