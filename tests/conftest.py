import os
from typing import Any

import pytest
import pytest_asyncio

try:
    from fakeredis import aioredis as fakeredis_aioredis
except Exception:  # pragma: no cover - optional dependency
    fakeredis_aioredis = None

TEST_ENV = {
    "ENVIRONMENT": "test",
    "REDIS_URL": "",
    "CACHE_DEFAULT_TTL": "60",
    "CACHE_NAMESPACE": "supabase",
    "CACHE_SINGLE_FLIGHT": "0",
    "SUPABASE_URL": "https://project.supabase.co",
    "SUPABASE_KEY": "test-anon-key",
    "LOG_LEVEL": "DEBUG",
    "LOG_JSON": "0",
    "LOG_FILE": "",
}

for key, value in TEST_ENV.items():
    os.environ[key] = value

from stacq.core.cache.store import RedisStore, StoreFault  # noqa: E402
from stacq.core.result import StoreError, failure  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_settings():
    """Force deterministic env for tests and reset cached settings."""

    for key, value in TEST_ENV.items():
        os.environ[key] = value

    from stacq.core import settings as settings_module

    settings_module.get_settings.cache_clear()
    yield
    settings_module.get_settings.cache_clear()


@pytest_asyncio.fixture
async def fake_redis():
    """Provide a fake Redis client for tests that need it."""
    if fakeredis_aioredis is None:
        pytest.skip("fakeredis is not available")
    client = fakeredis_aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def redis_store(fake_redis):
    return RedisStore(fake_redis)


class FailingStore:
    """Store whose every operation fails, either as a value or by raising."""

    def __init__(self, *, raise_errors: bool = False) -> None:
        self.raise_errors = raise_errors
        self.gets = 0
        self.sets = 0

    def _error(self, operation: str) -> StoreError:
        exc = ConnectionError("store unreachable")
        return StoreError(operation=operation, message=str(exc), original_exception=exc)

    async def get(self, key: str):
        self.gets += 1
        if self.raise_errors:
            raise ConnectionError("store unreachable")
        return StoreFault(self._error("get"))

    async def set(self, key: str, value: Any, ttl_seconds: int):
        self.sets += 1
        if self.raise_errors:
            raise ConnectionError("store unreachable")
        return failure(self._error("set"))

    async def delete(self, key: str):
        if self.raise_errors:
            raise ConnectionError("store unreachable")
        return failure(self._error("delete"))

    async def delete_pattern(self, pattern: str):
        if self.raise_errors:
            raise ConnectionError("store unreachable")
        return failure(self._error("delete_pattern"))

    async def close(self) -> None:
        return None


class CountingFetcher:
    def __init__(self, value: Any) -> None:
        self.value = value
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        return self.value


@pytest.fixture
def failing_store():
    return FailingStore()


@pytest.fixture
def raising_store():
    return FailingStore(raise_errors=True)


@pytest.fixture
def counting_fetcher():
    return CountingFetcher
