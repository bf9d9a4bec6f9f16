"""Tests for the search result cache and its backends."""

from __future__ import annotations

import asyncio
import json

import pytest

from src.errors import SearchCancelledError
from src.services.search.cache import MemoryCacheBackend, RedisCacheBackend, SearchCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_make_key_is_independent_of_param_order():
    first = SearchCache.make_key("search", {"query": "honey", "category": "food_beverages"})
    second = SearchCache.make_key("search", {"category": "food_beverages", "query": "honey"})

    assert first == second
    assert first == 'search?{"category":"food_beverages","query":"honey"}'
    assert SearchCache.make_key("search") == "search?{}"


@pytest.mark.asyncio
async def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = SearchCache(ttl_seconds=300, backend=MemoryCacheBackend(ttl=300, timer=clock))

    await cache.set("search?{}", {"count": 1})
    clock.now += 299
    assert await cache.get("search?{}") == {"count": 1}

    clock.now += 1
    assert await cache.get("search?{}") is None


@pytest.mark.asyncio
async def test_injected_empty_backend_is_kept():
    clock = FakeClock()
    backend = MemoryCacheBackend(max_entries=1, ttl=10, timer=clock)
    cache = SearchCache(ttl_seconds=300, backend=backend)

    await cache.set("a", 1)
    await cache.set("b", 2)
    assert len(backend) == 1
    assert await cache.get("a") is None

    clock.now += 10
    assert await cache.get("b") is None


@pytest.mark.asyncio
async def test_memory_backend_evicts_least_recently_used():
    backend = MemoryCacheBackend(max_entries=2)

    await backend.set("a", 1, 60)
    await backend.set("b", 2, 60)
    await backend.get("a")
    await backend.set("c", 3, 60)

    assert len(backend) == 2
    assert await backend.get("b") is None
    assert await backend.get("a") == 1
    assert await backend.get("c") == 3


@pytest.mark.asyncio
async def test_concurrent_fetches_share_one_call():
    cache = SearchCache(ttl_seconds=300, backend=MemoryCacheBackend())
    calls = 0
    release = asyncio.Event()

    async def fetch():
        nonlocal calls
        calls += 1
        await release.wait()
        return {"products": ["p1"]}

    first = asyncio.create_task(cache.get_or_fetch("k", fetch))
    second = asyncio.create_task(cache.get_or_fetch("k", fetch))
    await asyncio.sleep(0)
    assert cache.in_flight_count == 1

    release.set()
    (value_a, cached_a), (value_b, cached_b) = await asyncio.gather(first, second)

    assert calls == 1
    assert value_a == value_b == {"products": ["p1"]}
    assert cached_a is False and cached_b is False
    assert cache.in_flight_count == 0

    value, cached = await cache.get_or_fetch("k", fetch)
    assert cached is True
    assert calls == 1


@pytest.mark.asyncio
async def test_failed_fetch_is_not_cached():
    cache = SearchCache(ttl_seconds=300, backend=MemoryCacheBackend())

    async def boom():
        raise RuntimeError("catalog down")

    with pytest.raises(RuntimeError):
        await cache.get_or_fetch("k", boom)

    assert cache.in_flight_count == 0
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_vetoed_values_are_returned_but_not_stored():
    cache = SearchCache(ttl_seconds=300, backend=MemoryCacheBackend())

    async def fetch():
        return {"strategy": "none"}

    value, cached = await cache.get_or_fetch(
        "k", fetch, should_cache=lambda v: v["strategy"] != "none"
    )

    assert value == {"strategy": "none"}
    assert cached is False
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_follower_refetches_when_leader_is_cancelled():
    cache = SearchCache(ttl_seconds=300, backend=MemoryCacheBackend())
    leader_started = asyncio.Event()

    async def cancelled_fetch():
        leader_started.set()
        await asyncio.sleep(0)
        raise SearchCancelledError("user left")

    async def follower_fetch():
        return {"products": []}

    leader = asyncio.create_task(cache.get_or_fetch("k", cancelled_fetch))
    await leader_started.wait()
    follower = asyncio.create_task(cache.get_or_fetch("k", follower_fetch))

    with pytest.raises(SearchCancelledError):
        await leader
    value, cached = await follower

    assert value == {"products": []}
    assert cached is False


@pytest.mark.asyncio
async def test_clear_with_scope_only_drops_matching_keys():
    cache = SearchCache(ttl_seconds=300, backend=MemoryCacheBackend())
    await cache.set('search?{"query":"honey"}', 1)
    await cache.set("showcase?{}", 2)

    cleared = await cache.clear("search")

    assert cleared == 1
    assert await cache.get('search?{"query":"honey"}') is None
    assert await cache.get("showcase?{}") == 2

    assert await cache.clear() == 1
    assert await cache.get("showcase?{}") is None


@pytest.mark.asyncio
async def test_fetch_started_before_clear_does_not_repopulate():
    cache = SearchCache(ttl_seconds=300, backend=MemoryCacheBackend())
    release = asyncio.Event()

    async def fetch():
        await release.wait()
        return {"stale": True}

    pending = asyncio.create_task(cache.get_or_fetch("k", fetch))
    await asyncio.sleep(0)
    await cache.clear()
    release.set()

    value, _ = await pending
    assert value == {"stale": True}
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_clear_before_fetch_starts_still_blocks_the_write():
    cache = SearchCache(ttl_seconds=300, backend=MemoryCacheBackend())
    started = False

    async def fetch():
        nonlocal started
        started = True
        return {"stale": True}

    pending = asyncio.create_task(cache.get_or_fetch("k", fetch))
    await asyncio.sleep(0)
    assert started is False
    await cache.clear()

    await pending
    assert started is True
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_backend_errors_degrade_to_cache_miss():
    class BrokenBackend(MemoryCacheBackend):
        async def get(self, key):
            raise ConnectionError("redis unavailable")

        async def set(self, key, value, ttl):
            raise ConnectionError("redis unavailable")

    cache = SearchCache(ttl_seconds=300, backend=BrokenBackend())

    async def fetch():
        return {"count": 0}

    assert await cache.get_or_fetch("k", fetch) == ({"count": 0}, False)


@pytest.mark.asyncio
async def test_redis_backend_round_trip(redis_client):
    cache = SearchCache(
        ttl_seconds=300,
        backend=RedisCacheBackend(redis_client, key_prefix="test:"),
    )

    await cache.set("search?{}", {"count": 2, "products": []})

    raw = await redis_client.get("test:search?{}")
    assert json.loads(raw) == {"count": 2, "products": []}
    assert 0 < await redis_client.ttl("test:search?{}") <= 300
    assert await cache.get("search?{}") == {"count": 2, "products": []}


@pytest.mark.asyncio
async def test_redis_backend_scoped_clear(redis_client):
    backend = RedisCacheBackend(redis_client, key_prefix="test:")
    await backend.set('search?{"query":"a"}', 1, 60)
    await backend.set('search?{"query":"b"}', 2, 60)
    await backend.set("showcase?{}", 3, 60)
    await redis_client.set("unrelated", "keep")

    assert await backend.clear("search") == 2
    assert await backend.get("showcase?{}") == 3
    assert await backend.clear() == 1
    assert await redis_client.get("unrelated") == "keep"
