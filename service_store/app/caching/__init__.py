"""
Store service caching package.

All caches are in-process and owned by one service instance. The TTL cache
primitive is the only synchronization boundary; callers never lock
externally.
"""

from .catalog_cache import CatalogCache, CatalogLoadError
from .derived_cache import BalanceCache, DerivedDataCache, ProfileCache, StorefrontCache
from .key_index import PlayerKeyIndex
from .scheduler import ScheduledTask
from .session_store import SessionStore
from .ttl_cache import TTLCache

__all__ = [
    "BalanceCache",
    "CatalogCache",
    "CatalogLoadError",
    "DerivedDataCache",
    "PlayerKeyIndex",
    "ProfileCache",
    "ScheduledTask",
    "SessionStore",
    "StorefrontCache",
    "TTLCache",
]
