"""Read-through cache for Supabase-backed reads.

``ReadThroughCache.get_or_compute`` implements cache-aside with fail-open:

1. read the key; a miss and a store fault both mean "compute fresh"
2. on a hit, return the cached value without calling the fetcher
3. on a miss, await the fetcher exactly once (its errors propagate)
4. write the value back with the TTL unless it is empty; write errors are logged
5. return the fetched value

Concurrent misses for the same key each call the fetcher and the last write
wins, unless the cache was built with ``single_flight=True``. Single-flight is
process-local: other workers sharing the same Redis still race.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from stacq.core.cache import metrics
from stacq.core.cache.store import Hit, KeyValueStore, Lookup, StoreFault
from stacq.core.result import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 60
_LOCKS_MAX = 1024


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """Envelope returned by Supabase-style queries: data or an error."""

    data: Optional[T] = None
    error: Any = None


def _should_store(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict)) and len(value) == 0:
        return False
    return True


class ReadThroughCache:
    """Cache-aside wrapper around a ``KeyValueStore``."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        single_flight: bool = False,
    ):
        if int(default_ttl) < 1:
            raise ValueError("default_ttl must be at least 1 second")
        self.store = store
        self.default_ttl = int(default_ttl)
        self.single_flight = single_flight
        self._locks_guard = asyncio.Lock()
        self._locks: dict[str, asyncio.Lock] = {}

    def _resolve_ttl(self, ttl_seconds: Optional[int]) -> int:
        ttl = self.default_ttl if ttl_seconds is None else int(ttl_seconds)
        if ttl < 1:
            raise ValueError("ttl_seconds must be at least 1 second")
        return ttl

    async def _read(self, key: str) -> Lookup:
        try:
            lookup = await self.store.get(key)
        except Exception as e:
            # Stores report faults as values; this catches ones that don't.
            logger.warning("Cache read raised for %s: %s", key, e)
            metrics.record_lookup("error")
            return StoreFault(StoreError(operation="get", message=str(e), original_exception=e))

        if isinstance(lookup, Hit):
            logger.debug("Cache hit: %s", key)
            metrics.record_lookup("hit")
        elif isinstance(lookup, StoreFault):
            logger.warning("Cache read failed for %s, computing fresh: %s", key, lookup.error)
            metrics.record_lookup("error")
        else:
            logger.debug("Cache miss: %s", key)
            metrics.record_lookup("miss")
        return lookup

    async def _write(self, key: str, value: Any, ttl: int) -> None:
        if not _should_store(value):
            metrics.record_write("skipped")
            return
        try:
            result = await self.store.set(key, value, ttl)
        except Exception as e:
            logger.warning("Cache write raised for %s: %s", key, e)
            metrics.record_write("error")
            return

        if result.is_failure():
            logger.warning("Cache write failed for %s: %s", key, result.error)
            metrics.record_write("error")
            return
        logger.debug("Cache set: %s (ttl=%ss)", key, ttl)
        metrics.record_write("stored" if result.unwrap() else "skipped")

    async def _fetch(self, fetcher: Callable[[], Awaitable[T]]) -> T:
        started = time.perf_counter()
        try:
            return await fetcher()
        finally:
            metrics.observe_fetch(time.perf_counter() - started)

    async def _lock_for(self, key: str) -> asyncio.Lock:
        async with self._locks_guard:
            lock = self._locks.get(key)
            if lock is not None:
                return lock
            if len(self._locks) >= _LOCKS_MAX:
                # Held locks stay so waiters and the holder share one lock.
                for stale in [k for k, held in self._locks.items() if not held.locked()]:
                    del self._locks[stale]
            lock = asyncio.Lock()
            self._locks[key] = lock
            return lock

    async def get_or_compute(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl_seconds: Optional[int] = None,
    ) -> T:
        """Return the cached value for ``key`` or compute, store and return it.

        Args:
            key: Cache key (see ``build_key``)
            fetcher: Zero-argument coroutine function producing the value
            ttl_seconds: Time to live; defaults to ``default_ttl``

        Raises:
            Whatever ``fetcher`` raises. Store problems are never raised.
        """

        ttl = self._resolve_ttl(ttl_seconds)

        lookup = await self._read(key)
        if isinstance(lookup, Hit):
            return lookup.value

        if not self.single_flight:
            value = await self._fetch(fetcher)
            await self._write(key, value, ttl)
            return value

        lock = await self._lock_for(key)
        async with lock:
            lookup = await self._read(key)
            if isinstance(lookup, Hit):
                return lookup.value
            value = await self._fetch(fetcher)
            await self._write(key, value, ttl)
            return value

    async def cached_query(
        self,
        key: str,
        query: Callable[[], Awaitable[QueryResult[T]]],
        ttl_seconds: Optional[int] = None,
    ) -> QueryResult[T]:
        """Cache the ``data`` of a query envelope; errored results are never stored."""

        ttl = self._resolve_ttl(ttl_seconds)

        lookup = await self._read(key)
        if isinstance(lookup, Hit):
            return QueryResult(data=lookup.value)

        result = await self._fetch(query)
        if result.error is None:
            await self._write(key, result.data, ttl)
        else:
            logger.debug("Query for %s returned an error, not caching: %s", key, result.error)
        return result

    async def clear(self, key: str) -> bool:
        """Delete one key. Returns False when nothing was deleted or the store failed."""

        try:
            result = await self.store.delete(key)
        except Exception as e:
            logger.error("Error clearing cache key %s: %s", key, e)
            return False
        if result.is_failure():
            logger.error("Error clearing cache key %s: %s", key, result.error)
            return False
        logger.info("Cache cleared: %s", key)
        return result.unwrap()

    async def invalidate(self, pattern: str) -> int:
        """Delete every key matching a glob ``pattern``. Returns the deleted count."""

        logger.info("Cache invalidation requested for pattern: %s", pattern)
        try:
            result = await self.store.delete_pattern(pattern)
        except Exception as e:
            logger.error("Error invalidating cache pattern %s: %s", pattern, e)
            return 0
        if result.is_failure():
            logger.error("Error invalidating cache pattern %s: %s", pattern, result.error)
            return 0
        return result.unwrap()

    async def close(self) -> None:
        await self.store.close()


__all__ = ["DEFAULT_TTL_SECONDS", "QueryResult", "ReadThroughCache"]
