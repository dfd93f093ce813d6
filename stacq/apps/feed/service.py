"""Unified feed assembly.

The ranked page (``sorted_feed`` ordered by ``gravity_score``) is cached for
``CacheTTL.FEED`` seconds. Owner profiles are attached after the cache so a
profile change shows up without waiting for the feed entry to expire.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Protocol

from stacq.apps.feed.models import UNKNOWN_OWNER, FeedPage, FeedQuery
from stacq.apps.feed.supabase_client import SupabaseClient
from stacq.core.cache import CacheKeyBuilder, CacheTTL, ReadThroughCache

logger = logging.getLogger(__name__)

FEED_KEY = "feed"
FEED_VERSION = "v2_unified"
FEED_VIEW = "sorted_feed"
OWNER_COLUMNS = "id, username, display_name, avatar_url"


class FeedSource(Protocol):
    async def fetch_ranked(self, query: FeedQuery) -> list[dict[str, Any]]: ...

    async def fetch_owners(self, owner_ids: Iterable[Any]) -> list[dict[str, Any]]: ...

    async def close(self) -> None: ...


class SupabaseFeedSource:
    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def fetch_ranked(self, query: FeedQuery) -> list[dict[str, Any]]:
        eq = {"type": query.type} if query.type != "both" else None
        return await self._client.select(
            FEED_VIEW,
            eq=eq,
            order="gravity_score",
            ascending=False,
            range_=(query.offset, query.range_end),
        )

    async def fetch_owners(self, owner_ids: Iterable[Any]) -> list[dict[str, Any]]:
        ids = list(owner_ids)
        if not ids:
            return []
        return await self._client.select("users", columns=OWNER_COLUMNS, in_={"id": ids})

    async def close(self) -> None:
        await self._client.close()


class FeedService:
    def __init__(
        self,
        source: FeedSource,
        cache: ReadThroughCache,
        *,
        keys: Optional[CacheKeyBuilder] = None,
        ttl_seconds: int = CacheTTL.FEED,
    ) -> None:
        self._source = source
        self._cache = cache
        self._keys = keys or CacheKeyBuilder()
        self._ttl_seconds = ttl_seconds

    def cache_key(self, query: FeedQuery) -> str:
        return self._keys.build(
            FEED_KEY,
            {
                "version": FEED_VERSION,
                "limit": query.limit,
                "offset": query.offset,
                "type": query.type,
            },
        )

    async def get_feed(self, query: FeedQuery) -> FeedPage:
        async def _fetch() -> dict[str, Any]:
            rows = await self._source.fetch_ranked(query)
            return FeedPage.from_rows(rows or [], query).to_dict()

        payload = await self._cache.get_or_compute(self.cache_key(query), _fetch, self._ttl_seconds)
        page = FeedPage.from_dict(payload)
        if page.items and not page.items[0].get("owner"):
            page.items = await self._attach_owners(page.items)
        return page

    async def _attach_owners(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        owner_ids = list(dict.fromkeys(item.get("owner_id") for item in items if item.get("owner_id") is not None))
        owners = await self._source.fetch_owners(owner_ids)
        owner_map = {owner.get("id"): owner for owner in owners}
        missing = [owner_id for owner_id in owner_ids if owner_id not in owner_map]
        if missing:
            logger.debug("Feed owners not found: %s", missing)
        return [{**item, "owner": owner_map.get(item.get("owner_id"), dict(UNKNOWN_OWNER))} for item in items]

    async def invalidate(self) -> int:
        """Drop every cached feed page."""
        return await self._cache.invalidate(self._keys.pattern(FEED_KEY))

    async def close(self) -> None:
        """Close the data source and the cache store."""
        await self._source.close()
        await self._cache.close()


def build_feed_service(settings=None, *, cache: Optional[ReadThroughCache] = None) -> FeedService:
    """Wire a ``FeedService`` from settings."""

    if settings is None:
        from stacq.core.settings import get_settings

        settings = get_settings()
    if not settings.supabase_configured:
        logger.warning("Supabase is not configured (SUPABASE_URL / SUPABASE_KEY); feed reads will fail")
    if cache is None:
        from stacq.core.cache import build_cache

        cache = build_cache(settings)
    client = SupabaseClient(settings.supabase_url, settings.supabase_key, timeout=settings.supabase_timeout)
    return FeedService(
        SupabaseFeedSource(client),
        cache,
        keys=CacheKeyBuilder(settings.cache_namespace),
    )


__all__ = [
    "FEED_KEY",
    "FEED_VERSION",
    "FeedService",
    "FeedSource",
    "SupabaseFeedSource",
    "build_feed_service",
]
