"""
Record types shared by the caches, adapters and routes.

Records are frozen dataclasses; updates go through ``dataclasses.replace`` so
a record handed out by a cache is never mutated behind the caller's back.
Wire form is camelCase JSON, matching the shapes the frontend already uses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class CatalogLoadState(str, Enum):
    """Lifecycle of the shared catalog cache."""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    DEGRADED = "degraded"


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _non_negative_int(value: Any) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class BalanceRecord:
    """Wallet balances for one player."""

    valorant_points: int = 0
    radianite_points: int = 0
    kingdom_credits: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valorantPoints": self.valorant_points,
            "radianitePoints": self.radianite_points,
            "kingdomCredits": self.kingdom_credits,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "BalanceRecord":
        return cls(
            valorant_points=_non_negative_int(payload.get("valorantPoints")),
            radianite_points=_non_negative_int(payload.get("radianitePoints")),
            kingdom_credits=_non_negative_int(payload.get("kingdomCredits")),
        )


@dataclass(frozen=True)
class AccountXP:
    """Account level progress."""

    level: int = 0
    xp: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "xp": self.xp}


@dataclass(frozen=True)
class ProfileRecord:
    """Identity details resolved from the Riot userinfo endpoint."""

    player_id: str
    game_name: Optional[str]
    tag_line: Optional[str]
    region: str
    username: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.player_id,
            "gameName": self.game_name,
            "tagLine": self.tag_line,
            "region": self.region,
            "username": self.username,
        }


@dataclass(frozen=True)
class SessionRecord:
    """Authenticated session for one player."""

    player_id: str
    access_token: str
    entitlements_token: str
    token_type: str = "Bearer"
    id_token: Optional[str] = None
    username: Optional[str] = None
    game_name: Optional[str] = None
    tag_line: Optional[str] = None
    region: Optional[str] = None
    balance: Optional[BalanceRecord] = None
    account_xp: Optional[AccountXP] = None
    created_at: Optional[datetime] = None
    last_activity: Optional[datetime] = None

    def to_summary(self) -> Dict[str, Any]:
        """Token-free projection used for multi-account listings."""
        return {
            "username": self.username,
            "gameName": self.game_name,
            "tagLine": self.tag_line,
            "lastActivity": _isoformat(self.last_activity),
            "createdAt": _isoformat(self.created_at),
        }

    def to_user_dict(self) -> Dict[str, Any]:
        return {
            "id": self.player_id,
            "username": self.username,
            "gameName": self.game_name,
            "tagLine": self.tag_line,
            "region": self.region,
        }


@dataclass(frozen=True)
class SkinLevel:
    """One upgrade level of a weapon skin; its uuid is what storefronts offer."""

    uuid: str
    display_name: Optional[str] = None
    display_icon: Optional[str] = None
    streamed_video: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SkinLevel":
        return cls(
            uuid=str(payload.get("uuid", "")),
            display_name=payload.get("displayName"),
            display_icon=payload.get("displayIcon"),
            streamed_video=payload.get("streamedVideo"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uuid": self.uuid,
            "displayName": self.display_name,
            "displayIcon": self.display_icon,
            "streamedVideo": self.streamed_video,
        }


@dataclass(frozen=True)
class SkinDef:
    """Weapon skin catalog entry."""

    uuid: str
    display_name: Optional[str] = None
    display_icon: Optional[str] = None
    streamed_video: Optional[str] = None
    theme_uuid: Optional[str] = None
    content_tier_uuid: Optional[str] = None
    wallpaper: Optional[str] = None
    levels: Tuple[SkinLevel, ...] = ()

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SkinDef":
        levels = payload.get("levels") or []
        return cls(
            uuid=str(payload.get("uuid", "")),
            display_name=payload.get("displayName"),
            display_icon=payload.get("displayIcon"),
            streamed_video=payload.get("streamedVideo"),
            theme_uuid=payload.get("themeUuid"),
            content_tier_uuid=payload.get("contentTierUuid"),
            wallpaper=payload.get("wallpaper"),
            levels=tuple(SkinLevel.from_dict(level) for level in levels if isinstance(level, dict)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uuid": self.uuid,
            "displayName": self.display_name,
            "displayIcon": self.display_icon,
            "streamedVideo": self.streamed_video,
            "themeUuid": self.theme_uuid,
            "contentTierUuid": self.content_tier_uuid,
            "wallpaper": self.wallpaper,
            "levels": [level.to_dict() for level in self.levels],
        }


@dataclass(frozen=True)
class BundleDef:
    """Store bundle catalog entry."""

    uuid: str
    display_name: Optional[str] = None
    display_icon: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "BundleDef":
        return cls(
            uuid=str(payload.get("uuid", "")),
            display_name=payload.get("displayName"),
            display_icon=payload.get("displayIcon"),
            description=payload.get("description"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uuid": self.uuid,
            "displayName": self.display_name,
            "displayIcon": self.display_icon,
            "description": self.description,
        }


@dataclass(frozen=True)
class ClientVersion:
    """Live game client version, sent as X-Riot-ClientVersion."""

    version: str
    build: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ClientVersion":
        return cls(
            version=str(payload.get("riotClientVersion") or payload.get("version") or ""),
            build=payload.get("riotClientBuild") or payload.get("buildVersion"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"version": self.version, "riotClientBuild": self.build}


@dataclass(frozen=True)
class CatalogSnapshot:
    """Point-in-time view of the catalog used by the enrichment join."""

    skins: Tuple[SkinDef, ...]
    bundles: Tuple[BundleDef, ...]
    version: Optional[ClientVersion] = None


@dataclass(frozen=True)
class BundleSummary:
    display_name: Optional[str]
    display_icon: Optional[str]
    description: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "displayName": self.display_name,
            "displayIcon": self.display_icon,
            "description": self.description,
        }


@dataclass(frozen=True)
class EnrichedStoreItem:
    """A storefront offer with whatever catalog details could be resolved."""

    id: str
    display_name: Optional[str] = None
    display_icon: Optional[str] = None
    streamed_video: Optional[str] = None
    theme_uuid: Optional[str] = None
    content_tier_uuid: Optional[str] = None
    wallpaper: Optional[str] = None
    bundle: Optional[BundleSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id}
        optional = {
            "displayName": self.display_name,
            "displayIcon": self.display_icon,
            "streamedVideo": self.streamed_video,
            "themeUuid": self.theme_uuid,
            "contentTierUuid": self.content_tier_uuid,
            "wallpaper": self.wallpaper,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        if self.bundle is not None:
            payload["bundle"] = self.bundle.to_dict()
        return payload


@dataclass(frozen=True)
class StorePayload:
    """Daily storefront offers; ``items`` is filled once the catalog join ran."""

    item_ids: Tuple[str, ...]
    refresh_time: datetime
    expires: datetime
    items: Optional[Tuple[EnrichedStoreItem, ...]] = field(default=None)

    @property
    def enriched(self) -> bool:
        return self.items is not None

    def to_dict(self) -> Dict[str, Any]:
        if self.items is not None:
            items = [item.to_dict() for item in self.items]
        else:
            items = list(self.item_ids)
        return {
            "items": items,
            "enriched": self.enriched,
            "refreshTime": _isoformat(self.refresh_time),
            "expires": _isoformat(self.expires),
        }
