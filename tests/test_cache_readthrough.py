from __future__ import annotations

import asyncio
from datetime import datetime

import pytest

from stacq.apps.feed.models import FeedPage
from stacq.core.cache import QueryResult, ReadThroughCache
from stacq.core.cache import readthrough as readthrough_module
from stacq.core.cache.store import MISS, NullStore


@pytest.mark.asyncio
async def test_second_call_is_served_from_cache(redis_store, counting_fetcher):
    cache = ReadThroughCache(redis_store)
    fetcher = counting_fetcher({"items": [{"id": "s1"}]})

    first = await cache.get_or_compute("k1", fetcher, 60)
    second = await cache.get_or_compute("k1", fetcher, 60)

    assert first == second == {"items": [{"id": "s1"}]}
    assert fetcher.calls == 1


@pytest.mark.asyncio
async def test_hit_never_calls_second_fetcher(redis_store, counting_fetcher):
    cache = ReadThroughCache(redis_store)
    await cache.get_or_compute("k1", counting_fetcher(["v"]), 60)

    async def exploding():
        raise AssertionError("fetcher must not run on a hit")

    assert await cache.get_or_compute("k1", exploding, 60) == ["v"]


@pytest.mark.asyncio
async def test_expired_entry_is_recomputed(redis_store, counting_fetcher):
    cache = ReadThroughCache(redis_store)
    fetcher = counting_fetcher({"n": 1})

    await cache.get_or_compute("k1", fetcher, 1)
    await asyncio.sleep(2)
    await cache.get_or_compute("k1", fetcher, 1)

    assert fetcher.calls == 2


@pytest.mark.asyncio
async def test_default_ttl_is_applied(redis_store, fake_redis, counting_fetcher):
    cache = ReadThroughCache(redis_store)

    await cache.get_or_compute("k1", counting_fetcher([1]))

    assert cache.default_ttl == 60
    assert 0 < await fake_redis.ttl("k1") <= 60


@pytest.mark.asyncio
async def test_failing_store_still_returns_fetched_value(failing_store, counting_fetcher):
    cache = ReadThroughCache(failing_store)
    fetcher = counting_fetcher({"items": []})

    assert await cache.get_or_compute("k1", fetcher, 60) == {"items": []}
    assert await cache.get_or_compute("k1", fetcher, 60) == {"items": []}
    assert fetcher.calls == 2
    assert failing_store.sets == 2


@pytest.mark.asyncio
async def test_raising_store_is_treated_as_miss(raising_store, counting_fetcher):
    cache = ReadThroughCache(raising_store)
    fetcher = counting_fetcher("fresh")

    assert await cache.get_or_compute("k1", fetcher, 60) == "fresh"
    assert fetcher.calls == 1


@pytest.mark.asyncio
async def test_unconfigured_store_always_computes(counting_fetcher):
    cache = ReadThroughCache(NullStore())
    fetcher = counting_fetcher(42)

    await cache.get_or_compute("k1", fetcher)
    await cache.get_or_compute("k1", fetcher)

    assert fetcher.calls == 2


@pytest.mark.asyncio
async def test_fetcher_error_propagates(redis_store, failing_store, raising_store):
    class QueryFailed(Exception):
        pass

    error = QueryFailed("sorted_feed timed out")

    async def fetcher():
        raise error

    for store in (redis_store, failing_store, raising_store, NullStore()):
        cache = ReadThroughCache(store)
        with pytest.raises(QueryFailed) as exc_info:
            await cache.get_or_compute("k1", fetcher, 60)
        assert exc_info.value is error


@pytest.mark.asyncio
@pytest.mark.parametrize("empty", [None, "", [], {}])
async def test_empty_results_are_not_stored(redis_store, fake_redis, counting_fetcher, empty):
    cache = ReadThroughCache(redis_store)
    fetcher = counting_fetcher(empty)

    assert await cache.get_or_compute("k1", fetcher, 60) == empty
    assert await fake_redis.exists("k1") == 0


@pytest.mark.asyncio
async def test_stored_zero_is_a_hit(redis_store, counting_fetcher):
    cache = ReadThroughCache(redis_store)
    await redis_store.set("count", 0, 60)
    fetcher = counting_fetcher(7)

    assert await cache.get_or_compute("count", fetcher, 60) == 0
    assert fetcher.calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "value",
    [
        FeedPage(items=[{"id": "s1"}], next_offset=50),
        {"at": datetime(2024, 1, 1), "ids": [1, 2]},
        {"items": [{"id": "s1"}], "ids": (1, 2)},
    ],
)
async def test_values_that_do_not_read_back_are_never_cached(redis_store, fake_redis, counting_fetcher, value):
    cache = ReadThroughCache(redis_store)
    fetcher = counting_fetcher(value)

    first = await cache.get_or_compute("k1", fetcher, 60)
    second = await cache.get_or_compute("k1", fetcher, 60)

    assert first is value
    assert second is value
    assert fetcher.calls == 2
    assert await fake_redis.exists("k1") == 0


@pytest.mark.asyncio
async def test_concurrent_misses_each_fetch_without_single_flight(redis_store):
    cache = ReadThroughCache(redis_store)
    calls = 0

    async def slow_fetcher():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.05)
        return {"v": calls}

    await asyncio.gather(
        cache.get_or_compute("k1", slow_fetcher, 60),
        cache.get_or_compute("k1", slow_fetcher, 60),
    )

    assert calls == 2


@pytest.mark.asyncio
async def test_single_flight_fetches_once_for_concurrent_misses(redis_store):
    cache = ReadThroughCache(redis_store, single_flight=True)
    calls = 0

    async def slow_fetcher():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.05)
        return {"v": calls}

    results = await asyncio.gather(
        cache.get_or_compute("k1", slow_fetcher, 60),
        cache.get_or_compute("k1", slow_fetcher, 60),
        cache.get_or_compute("k1", slow_fetcher, 60),
    )

    assert calls == 1
    assert results == [{"v": 1}] * 3


@pytest.mark.asyncio
async def test_lock_map_eviction_keeps_held_locks(monkeypatch):
    monkeypatch.setattr(readthrough_module, "_LOCKS_MAX", 2)
    cache = ReadThroughCache(NullStore(), single_flight=True)

    held = await cache._lock_for("busy")
    await held.acquire()
    try:
        for key in ("a", "b", "c", "d"):
            await cache._lock_for(key)

        assert await cache._lock_for("busy") is held
        assert "a" not in cache._locks
    finally:
        held.release()


def test_invalid_ttl_is_rejected():
    with pytest.raises(ValueError):
        ReadThroughCache(NullStore(), default_ttl=0)


@pytest.mark.asyncio
async def test_invalid_per_call_ttl_is_rejected(redis_store, counting_fetcher):
    cache = ReadThroughCache(redis_store)
    fetcher = counting_fetcher(1)

    with pytest.raises(ValueError):
        await cache.get_or_compute("k1", fetcher, 0)
    assert fetcher.calls == 0


@pytest.mark.asyncio
async def test_cached_query_stores_data_only_without_error(redis_store):
    cache = ReadThroughCache(redis_store)

    async def failing_query():
        return QueryResult(data=None, error={"message": "permission denied"})

    async def ok_query():
        return QueryResult(data=[{"id": "c1"}])

    failed = await cache.cached_query("cards", failing_query)
    assert failed.error == {"message": "permission denied"}
    assert await redis_store.get("cards") == MISS

    fresh = await cache.cached_query("cards", ok_query)
    cached = await cache.cached_query("cards", failing_query)

    assert fresh.data == cached.data == [{"id": "c1"}]
    assert cached.error is None


@pytest.mark.asyncio
async def test_clear_and_invalidate(redis_store, counting_fetcher):
    cache = ReadThroughCache(redis_store)
    for offset in (0, 50):
        await cache.get_or_compute(f"supabase:feed:offset:{offset}", counting_fetcher([offset]))
    await cache.get_or_compute("supabase:stacks:public:", counting_fetcher([1]))

    assert await cache.clear("supabase:stacks:public:") is True
    assert await cache.clear("supabase:stacks:public:") is False
    assert await cache.invalidate("supabase:feed:*") == 2


@pytest.mark.asyncio
async def test_clear_and_invalidate_fail_open(failing_store, raising_store):
    for store in (failing_store, raising_store):
        cache = ReadThroughCache(store)
        assert await cache.clear("k") is False
        assert await cache.invalidate("k:*") == 0
