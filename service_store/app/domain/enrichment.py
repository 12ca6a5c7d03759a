"""
Join storefront offers against the catalog.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Optional

from .models import BundleDef, BundleSummary, CatalogSnapshot, EnrichedStoreItem, SkinDef, StorePayload


def find_skin_by_level(skins: Iterable[SkinDef], level_uuid: str) -> Optional[SkinDef]:
    """First skin (catalog order) owning a level with this uuid."""
    for skin in skins:
        for level in skin.levels:
            if level.uuid == level_uuid:
                return skin
    return None


def find_bundle_for_skin(bundles: Iterable[BundleDef], skin: Optional[SkinDef]) -> Optional[BundleDef]:
    """
    First bundle (catalog order) whose display name appears inside the skin's.

    Upstream data has no skin-to-bundle link, so this is a name heuristic:
    "Prime" matches "Prime Vandal", and so would any other bundle whose name
    is a substring. Catalog order breaks ties.
    """
    if skin is None or not skin.display_name:
        return None
    for bundle in bundles:
        if bundle.display_name and bundle.display_name in skin.display_name:
            return bundle
    return None


def enrich_item(item_id: str, catalog: CatalogSnapshot) -> EnrichedStoreItem:
    skin = find_skin_by_level(catalog.skins, item_id)
    if skin is None:
        return EnrichedStoreItem(id=item_id)

    bundle = find_bundle_for_skin(catalog.bundles, skin)
    return EnrichedStoreItem(
        id=item_id,
        display_name=skin.display_name,
        display_icon=skin.display_icon,
        streamed_video=skin.streamed_video,
        theme_uuid=skin.theme_uuid,
        content_tier_uuid=skin.content_tier_uuid,
        wallpaper=skin.wallpaper,
        bundle=BundleSummary(
            display_name=bundle.display_name,
            display_icon=bundle.display_icon,
            description=bundle.description,
        ) if bundle is not None else None,
    )


def enrich_store(payload: StorePayload, catalog: Optional[CatalogSnapshot]) -> StorePayload:
    """
    Attach catalog details to every offer, keeping offer order.

    Without a catalog the payload is returned unchanged. Unknown ids come back
    with only their id; the join never fails as a whole.
    """
    if catalog is None:
        return payload
    return replace(payload, items=tuple(enrich_item(item_id, catalog) for item_id in payload.item_ids))
