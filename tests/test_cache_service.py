"""Read-through behaviour of CacheService.lookup() / query()."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from core.cache import CacheRecord, CacheService, CacheStatus, MemoryCacheStore


@pytest.mark.asyncio
async def test_hit_returns_stored_value_without_calling_producer(cache, memory_store, clock):
    await memory_store.upsert("/api/jobs", [{"id": 1}], clock() + 60)
    producer = Mock(return_value=[{"id": 2}])

    result = await cache.lookup("/api/jobs", producer, 3600)

    assert result.status is CacheStatus.HIT
    assert result.value == [{"id": 1}]
    producer.assert_not_called()


@pytest.mark.asyncio
async def test_miss_runs_producer_once_and_persists_with_ttl(cache, memory_store, clock):
    producer = Mock(return_value={"title": "Intern"})

    result = await cache.lookup("/api/jobs/7", producer, 3600)

    assert result.status is CacheStatus.STORED
    assert result.value == {"title": "Intern"}
    producer.assert_called_once_with()
    assert memory_store.records["/api/jobs/7"] == CacheRecord(
        key="/api/jobs/7", value={"title": "Intern"}, expires_at=clock() + 3600
    )


@pytest.mark.asyncio
async def test_expired_record_is_recomputed_and_replaced(cache, memory_store, clock):
    await memory_store.upsert("k", "stale", clock() - 5)

    value = await cache.query("k", lambda: "fresh", 120)

    assert value == "fresh"
    assert memory_store.records["k"].value == "fresh"
    assert memory_store.records["k"].expires_at == clock() + 120


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "offset, expected",
    [
        (0.0, CacheStatus.MISS),
        (-0.001, CacheStatus.MISS),
        (0.001, CacheStatus.HIT),
    ],
)
async def test_expiry_boundary(cache, memory_store, clock, offset, expected):
    await memory_store.upsert("k", "v", clock() + offset)

    result = await cache.lookup("k", None, 60)

    assert result.status is expected


@pytest.mark.asyncio
async def test_probe_without_producer_returns_none_and_writes_nothing(cache, memory_store):
    memory_store.upsert = AsyncMock(wraps=memory_store.upsert)

    assert await cache.query("missing", None, 60) is None
    result = await cache.lookup("missing", None, 60)

    assert result.status is CacheStatus.MISS
    memory_store.upsert.assert_not_awaited()
    assert memory_store.records == {}


@pytest.mark.asyncio
async def test_async_producer_is_awaited(cache):
    async def produce():
        await asyncio.sleep(0)
        return [1, 2, 3]

    assert await cache.query("k", produce, 60) == [1, 2, 3]


@pytest.mark.asyncio
async def test_producer_failure_is_reported_not_raised(cache, memory_store):
    def produce():
        raise LookupError("No jobs found")

    result = await cache.lookup("k", produce, 60)

    assert result.status is CacheStatus.FAILED
    assert isinstance(result.error, LookupError)
    assert await cache.query("k", produce, 60) is None
    assert "k" not in memory_store.records


@pytest.mark.asyncio
async def test_store_read_failure_is_reported_not_raised(settings, clock):
    store = MemoryCacheStore()
    store.get = AsyncMock(side_effect=ConnectionError("store unreachable"))
    cache = CacheService(store, settings, clock=clock)
    producer = Mock(return_value="v")

    result = await cache.lookup("k", producer, 60)

    assert result.status is CacheStatus.FAILED
    producer.assert_not_called()


@pytest.mark.asyncio
async def test_store_write_failure_is_reported_not_raised(settings, clock):
    store = MemoryCacheStore()
    store.upsert = AsyncMock(side_effect=ConnectionError("write failed"))
    cache = CacheService(store, settings, clock=clock)

    result = await cache.lookup("k", lambda: "v", 60)

    assert result.status is CacheStatus.FAILED
    assert await cache.query("k", lambda: "v", 60) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("empty", [[], {}, None])
async def test_empty_values_are_cached_as_is(cache, memory_store, empty):
    await cache.lookup("k", lambda: empty, 60)
    producer = Mock(return_value="recomputed")

    result = await cache.lookup("k", producer, 60)

    assert result.status is CacheStatus.HIT
    assert result.value == empty
    producer.assert_not_called()


@pytest.mark.asyncio
async def test_ttl_defaults_to_configured_default(cache, memory_store, clock, settings):
    await cache.lookup("k", lambda: "v")

    assert memory_store.records["k"].expires_at == clock() + settings.cache_default_ttl


@pytest.mark.asyncio
async def test_concurrent_misses_each_recompute_and_last_write_wins(cache, memory_store):
    release = asyncio.Event()
    calls = []

    def make_producer(value, wait):
        async def produce():
            calls.append(value)
            if wait:
                await release.wait()
            return value
        return produce

    slow = asyncio.create_task(cache.query("k", make_producer("first", True), 60))
    await asyncio.sleep(0)
    fast = await cache.query("k", make_producer("second", False), 60)
    release.set()
    slow_value = await slow

    assert calls == ["first", "second"]
    assert (slow_value, fast) == ("first", "second")
    assert memory_store.records["k"].value == "first"
