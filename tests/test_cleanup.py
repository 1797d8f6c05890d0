"""Background expiry sweep."""

from __future__ import annotations

import asyncio

import pytest

from core.cache import CacheService, MemoryCacheStore
from core.cleanup import CleanupService


@pytest.mark.asyncio
async def test_run_once_purges_only_expired_entries(cache, memory_store, settings, clock):
    await memory_store.upsert("expired", 1, clock() - 1)
    await memory_store.upsert("expiring-now", 2, clock())
    await memory_store.upsert("live", 3, clock() + 1)

    removed = await CleanupService(cache, settings).run_once()

    assert removed == 2
    assert list(memory_store.records) == ["live"]


@pytest.mark.asyncio
async def test_run_once_against_database(db_cache, db_store, settings, clock):
    await db_cache.lookup("soon", lambda: "v", 10)
    await db_cache.lookup("later", lambda: "v", 100)
    clock.advance(10)

    removed = await CleanupService(db_cache, settings).run_once()

    assert removed == 1
    assert await db_store.get("soon") is None
    assert await db_store.get("later") is not None


@pytest.mark.asyncio
async def test_run_once_skips_unready_store(settings, clock):
    store = MemoryCacheStore(ready=False)
    await store.upsert("expired", 1, clock() - 1)
    cleanup = CleanupService(CacheService(store, settings, clock=clock), settings)

    assert await cleanup.run_once() == 0
    assert "expired" in store.records


@pytest.mark.asyncio
async def test_start_sweeps_in_background_and_stop_cancels(cache, memory_store, settings, clock):
    await memory_store.upsert("expired", 1, clock() - 1)
    cleanup = CleanupService(cache, settings)

    await cleanup.start()
    await cleanup.start()  # second start is a no-op
    for _ in range(50):
        if not memory_store.records:
            break
        await asyncio.sleep(0.01)
    await cleanup.stop()

    assert memory_store.records == {}
    assert not cleanup.running
