"""Application wiring: health endpoint and the cache middlewares in main."""

from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

import main
from constants import JOBS_PATH


@pytest.fixture
def client(wired):
    transport = ASGITransport(app=main.app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


@pytest.mark.asyncio
async def test_health_reports_cache_state(client):
    async with client:
        response = await client.get("/health")

    body = response.json()
    assert response.status_code == 200
    assert body["database_ready"] is True
    assert body["cache"]["backend"] == main.settings.cache_backend
    assert body["cache"]["cleanup_running"] is False


@pytest.mark.asyncio
async def test_job_listing_is_cached_through_app_middleware(client, job_payload, db_store):
    async with client:
        await client.post(JOBS_PATH, json=job_payload)
        first = await client.get(f"{JOBS_PATH}?industry=Education")
        second = await client.get(f"{JOBS_PATH}?industry=Education")

    assert first.headers["x-cache"] == "MISS"
    assert second.headers["x-cache"] == "HIT"
    assert (await db_store.get(f"{JOBS_PATH}?industry=Education")).value == first.json()["data"]


@pytest.mark.asyncio
async def test_text_routes_use_static_ttl(client, db_store, clock):
    async with client:
        created = await client.post("/api/cache/text", json={"component": "about", "content": "Hello"})
        path = f"/api/cache/text/{created.json()['id']}"
        await client.get(path)

    record = await db_store.get(path)
    assert record.expires_at == clock() + main.settings.cache_static_ttl
