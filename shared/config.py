"""
Shared configuration management for Valstore Access Layer.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="VALSTORE_",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Security
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expires_hours: int = 24
    frontend_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:5500", "http://localhost:5500"]
    )

    # Cache lifetimes (seconds)
    session_ttl: int = 24 * 60 * 60
    balance_ttl: int = 5 * 60
    user_info_ttl: int = 60 * 60
    skins_ttl: int = 24 * 60 * 60
    bundles_ttl: int = 24 * 60 * 60
    version_ttl: int = 60 * 60
    profile_key_length: int = 64

    # Catalog loader
    catalog_autostart: bool = True
    catalog_initial_delay: float = 1.0
    catalog_retry_interval: float = 30.0

    # Eager expiry of session and derived caches
    cache_sweep_interval: float = 5 * 60

    # Upstream services
    catalog_timeout: float = 15.0
    upstream_timeout: float = 10.0
    default_region: str = "ap"
    game_data_url: str = "https://valorant-api.com/v1"
    auth_url: str = "https://auth.riotgames.com"
    entitlements_url: str = "https://entitlements.auth.riotgames.com/api/token/v1"
    player_data_url_template: str = "https://pd.{region}.a.pvp.net"

    # OAuth (implicit grant used by the in-app WebView login)
    oauth_client_id: str = "play-valorant-web-prod"
    oauth_redirect_uri: str = "https://playvalorant.com/opt_in"
    oauth_response_type: str = "token id_token"
    oauth_scope: str = "account openid"
    oauth_nonce: str = "1"


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
