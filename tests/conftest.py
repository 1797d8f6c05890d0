"""
Shared fixtures for the job portal tests.

- a controllable clock so TTL boundaries can be hit exactly
- cache services over an in-memory store and over a SQLite file database
- container overrides so routers resolve the test database and cache
"""

from __future__ import annotations

from typing import Any, Dict

import pytest
import pytest_asyncio
from dependency_injector import providers

from core.cache import CacheService, DatabaseCacheStore, MemoryCacheStore
from core.config import Settings
from core.container import container
from core.database import Database


class FakeClock:
    """Callable returning a fixed unix timestamp that tests move by hand."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path}/jobportal.db",
        log_format="console",
        log_level="DEBUG",
    )


@pytest.fixture
def memory_store() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture
def cache(memory_store, settings, clock) -> CacheService:
    return CacheService(memory_store, settings, clock=clock)


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings)
    await db.startup()
    yield db
    await db.shutdown()


@pytest.fixture
def db_store(database) -> DatabaseCacheStore:
    return DatabaseCacheStore(database)


@pytest.fixture
def db_cache(db_store, settings, clock) -> CacheService:
    return CacheService(db_store, settings, clock=clock)


@pytest.fixture
def wired(database, db_cache):
    """Point the global container at the test database and cache."""
    container.database.override(providers.Object(database))
    container.cache.override(providers.Object(db_cache))
    yield container
    container.database.reset_override()
    container.cache.reset_override()


@pytest.fixture
def job_payload() -> Dict[str, Any]:
    return {
        "title": "Junior Data Analyst",
        "description": "Analyse enrolment data for the careers office.",
        "location": "NY",
        "industry": "Education",
        "job_type": "Part-time",
        "experience_level": "Entry",
        "workplace_type": "Hybrid",
        "salary_min": 18.0,
        "salary_max": 25.0,
        "frequency": "Per Hour",
        "company_name": "Campus Insights",
        "posted_by": "employer-42",
    }
