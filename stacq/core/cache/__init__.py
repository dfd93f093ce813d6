"""Read-through caching for Supabase-backed reads."""

from __future__ import annotations

from typing import Optional

from stacq.core.cache.keys import CacheKeyBuilder, build_key, params_to_pairs, query_key, render_value
from stacq.core.cache.policy import CacheTTL
from stacq.core.cache.readthrough import DEFAULT_TTL_SECONDS, QueryResult, ReadThroughCache
from stacq.core.cache.store import (
    MISS,
    Hit,
    KeyValueStore,
    Lookup,
    Miss,
    NullStore,
    RedisStore,
    StoreFault,
    create_store,
)


def build_cache(settings=None, *, store: Optional[KeyValueStore] = None) -> ReadThroughCache:
    """Build a cache from settings; pass ``store`` to inject one directly."""

    if settings is None:
        from stacq.core.settings import get_settings

        settings = get_settings()
    if store is None:
        store = create_store(settings.redis_url) if settings.cache_enabled else NullStore()
    return ReadThroughCache(
        store,
        default_ttl=settings.cache_default_ttl,
        single_flight=settings.cache_single_flight,
    )


__all__ = [
    "CacheKeyBuilder",
    "CacheTTL",
    "DEFAULT_TTL_SECONDS",
    "Hit",
    "KeyValueStore",
    "Lookup",
    "MISS",
    "Miss",
    "NullStore",
    "QueryResult",
    "ReadThroughCache",
    "RedisStore",
    "StoreFault",
    "build_cache",
    "build_key",
    "create_store",
    "params_to_pairs",
    "query_key",
    "render_value",
]
