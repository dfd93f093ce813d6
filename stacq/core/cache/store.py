"""Key-value store adapters for the read-through cache.

The cache talks to its store through ``KeyValueStore``. Every operation
reports problems as values:

- ``get`` returns a ``Lookup``: ``Hit(value)``, ``Miss()`` or ``StoreFault(error)``
- writes return ``Result[..., StoreError]``

so a broken or missing Redis can never raise into request handling.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, Generic, Optional, Protocol, TypeVar, Union
from urllib.parse import urlparse

from redis.asyncio import Redis
from redis.exceptions import RedisError

from stacq.core.result import Result, StoreError, failure, success

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DATACLASS_SLOTS: dict[str, bool] = {"slots": True} if sys.version_info >= (3, 10) else {}


@dataclass(frozen=True, **_DATACLASS_SLOTS)
class Hit(Generic[T]):
    """The key is present; ``value`` may be falsy (``0``, ``""``, ``False``)."""

    value: T


@dataclass(frozen=True, **_DATACLASS_SLOTS)
class Miss:
    """The key is absent or expired."""


@dataclass(frozen=True, **_DATACLASS_SLOTS)
class StoreFault:
    """The store could not answer."""

    error: StoreError


Lookup = Union[Hit[Any], Miss, StoreFault]

MISS = Miss()


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Lookup: ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> Result[bool, StoreError]: ...

    async def delete(self, key: str) -> Result[bool, StoreError]: ...

    async def delete_pattern(self, pattern: str) -> Result[int, StoreError]: ...

    async def close(self) -> None: ...


class NullStore:
    """Store used when Redis is not configured: always a miss, never stores."""

    async def get(self, key: str) -> Lookup:
        return MISS

    async def set(self, key: str, value: Any, ttl_seconds: int) -> Result[bool, StoreError]:
        return success(False)

    async def delete(self, key: str) -> Result[bool, StoreError]:
        return success(False)

    async def delete_pattern(self, pattern: str) -> Result[int, StoreError]:
        return success(0)

    async def close(self) -> None:
        return None


class RedisStore:
    """
    Redis-backed store with JSON serialization.

    The client must be created with ``decode_responses=True`` (as
    ``create_store`` does); values are stored as JSON text. Values that do not
    read back equal to what was written (dataclasses, datetimes, tuples) are
    refused, so a hit always returns what the fetcher produced.
    """

    def __init__(self, client: Redis):
        self._client = client

    @property
    def client(self) -> Redis:
        return self._client

    async def get(self, key: str) -> Lookup:
        try:
            raw = await self._client.get(key)
        except RedisError as e:
            logger.warning("Cache get failed for key %s: %s", key, e)
            return StoreFault(StoreError(operation="get", message=str(e), original_exception=e))
        except Exception as e:
            return StoreFault(
                StoreError(
                    operation="get",
                    message=f"Failed to get cache key {key}: {e}",
                    original_exception=e,
                )
            )

        if raw is None:
            return MISS

        try:
            return Hit(json.loads(raw))
        except (TypeError, ValueError) as e:
            logger.warning("Cache value for key %s is not valid JSON: %s", key, e)
            return StoreFault(StoreError(operation="get", message=f"Undecodable value: {e}", original_exception=e))

    async def set(self, key: str, value: Any, ttl_seconds: int) -> Result[bool, StoreError]:
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            return failure(StoreError(operation="set", message=f"Value is not JSON serializable: {e}", original_exception=e))
        # Tuples and non-string dict keys serialize but read back as something else.
        if json.loads(serialized) != value:
            return failure(StoreError(operation="set", message="Value does not survive a JSON round trip"))

        try:
            await self._client.set(key, serialized, ex=int(ttl_seconds))
            return success(True)
        except RedisError as e:
            logger.warning("Cache set failed for key %s: %s", key, e)
            return failure(StoreError(operation="set", message=str(e), original_exception=e))
        except Exception as e:
            return failure(
                StoreError(
                    operation="set",
                    message=f"Failed to set cache key {key}: {e}",
                    original_exception=e,
                )
            )

    async def delete(self, key: str) -> Result[bool, StoreError]:
        try:
            deleted = await self._client.delete(key)
            return success(deleted > 0)
        except Exception as e:
            logger.warning("Cache delete failed for key %s: %s", key, e)
            return failure(StoreError(operation="delete", message=str(e), original_exception=e))

    async def delete_pattern(self, pattern: str) -> Result[int, StoreError]:
        """
        Delete all keys matching pattern.

        Args:
            pattern: Redis glob pattern (e.g., "supabase:feed:*")

        Returns:
            Result with count of deleted keys
        """
        try:
            keys = []
            async for key in self._client.scan_iter(match=pattern):
                keys.append(key)

            if not keys:
                return success(0)

            deleted = await self._client.delete(*keys)
            logger.info("Deleted %s keys matching pattern: %s", deleted, pattern)
            return success(deleted)
        except Exception as e:
            logger.warning("Cache delete_pattern failed for pattern %s: %s", pattern, e)
            return failure(StoreError(operation="delete_pattern", message=str(e), original_exception=e))

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis cache disconnected")


def masked_redis_url(redis_url: str) -> str:
    """Redis URL without credentials (Upstash URLs carry the token as password)."""

    parsed = urlparse(redis_url)
    host = parsed.hostname or "localhost"
    port = parsed.port or 6379
    db = parsed.path.strip("/") or "0"
    return f"{parsed.scheme or 'redis'}://{host}:{port}/{db}"


def create_store(redis_url: Optional[str]) -> Union[RedisStore, NullStore]:
    """Return a Redis store for ``redis_url`` or a ``NullStore`` when it is empty."""

    if not redis_url:
        logger.info("Redis cache not configured, reads go straight to the source")
        return NullStore()
    logger.info("Redis cache target: %s", masked_redis_url(redis_url))
    return RedisStore(Redis.from_url(redis_url, decode_responses=True))


__all__ = [
    "Hit",
    "KeyValueStore",
    "Lookup",
    "MISS",
    "Miss",
    "NullStore",
    "RedisStore",
    "StoreFault",
    "create_store",
    "masked_redis_url",
]
