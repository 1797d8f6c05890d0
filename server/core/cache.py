"""Read-through cache service with database (default) or in-memory backend.

Records live in a persistent store as ``(key, value, expires_at)``. Reads
check expiry themselves; the store's own sweep (see core.cleanup) only
reclaims space and is never relied upon for correctness.

Nothing in this module raises to callers. Store and producer failures come
back as ``CacheStatus.FAILED`` / ``InvalidationOutcome.FAILED`` results and
are logged, so a broken cache only ever makes a request slower.
"""

import inspect
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Pattern, Protocol, Union,
)

from core.config import Settings
from core.logging import get_logger, log_cache_operation

if TYPE_CHECKING:
    from core.database import Database

logger = get_logger(__name__)

Producer = Callable[[], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class CacheRecord:
    """One stored cache entry."""

    key: str
    value: Any
    expires_at: float  # Unix timestamp

    def is_live(self, now: float) -> bool:
        """A record at exactly its expiry instant is already expired."""
        return self.expires_at > now


class CacheStore(Protocol):
    """Backing store contract consumed by CacheService."""

    def is_ready(self) -> bool: ...

    async def get(self, key: str) -> Optional[CacheRecord]: ...

    async def upsert(self, key: str, value: Any, expires_at: float) -> None: ...

    async def delete_one(self, key: str) -> int: ...

    async def delete_many(self, pattern: Pattern[str]) -> int: ...

    async def purge_expired(self, now: float) -> int: ...


class DatabaseCacheStore:
    """Cache store persisted in the ``cache_entries`` table."""

    def __init__(self, database: "Database"):
        self.database = database

    def is_ready(self) -> bool:
        return self.database.is_ready()

    async def get(self, key: str) -> Optional[CacheRecord]:
        entry = await self.database.get_cache_entry(key)
        if entry is None:
            return None
        return CacheRecord(key=entry.key, value=entry.value, expires_at=entry.expires_at)

    async def upsert(self, key: str, value: Any, expires_at: float) -> None:
        await self.database.set_cache_entry(key, value, expires_at)

    async def delete_one(self, key: str) -> int:
        return await self.database.delete_cache_entry(key)

    async def delete_many(self, pattern: Pattern[str]) -> int:
        return await self.database.delete_cache_pattern(pattern)

    async def purge_expired(self, now: float) -> int:
        return await self.database.cleanup_expired_cache(now)


class MemoryCacheStore:
    """Process-local cache store for development and tests.

    Nothing survives a restart. ``ready`` can be flipped to simulate a
    store whose connection is down.
    """

    def __init__(self, ready: bool = True):
        self.records: Dict[str, CacheRecord] = {}
        self.ready = ready

    def is_ready(self) -> bool:
        return self.ready

    async def get(self, key: str) -> Optional[CacheRecord]:
        return self.records.get(key)

    async def upsert(self, key: str, value: Any, expires_at: float) -> None:
        self.records[key] = CacheRecord(key=key, value=value, expires_at=expires_at)

    async def delete_one(self, key: str) -> int:
        return 1 if self.records.pop(key, None) is not None else 0

    async def delete_many(self, pattern: Pattern[str]) -> int:
        matched = [key for key in self.records if pattern.search(key)]
        for key in matched:
            del self.records[key]
        return len(matched)

    async def purge_expired(self, now: float) -> int:
        expired = [key for key, record in self.records.items() if not record.is_live(now)]
        for key in expired:
            del self.records[key]
        return len(expired)


def create_cache_store(settings: Settings, database: "Database") -> CacheStore:
    """Pick the cache backend named by settings.cache_backend."""
    if settings.cache_backend == "memory":
        logger.info("Using in-memory cache store")
        return MemoryCacheStore()
    logger.info("Using database cache store", database_url=settings.database_url)
    return DatabaseCacheStore(database)


# ============================================================================
# Results
# ============================================================================

class CacheStatus(str, Enum):
    HIT = "hit"  # live record served from the store
    STORED = "stored"  # producer ran and its value was written
    MISS = "miss"  # nothing live and no producer given
    FAILED = "failed"  # store or producer raised


@dataclass(frozen=True)
class CacheResult:
    status: CacheStatus
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def hit(self) -> bool:
        return self.status is CacheStatus.HIT

    @property
    def has_value(self) -> bool:
        return self.status in (CacheStatus.HIT, CacheStatus.STORED)


class InvalidationOutcome(str, Enum):
    REMOVED = "removed"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass(frozen=True)
class InvalidationResult:
    outcome: InvalidationOutcome
    removed: int = 0
    error: Optional[BaseException] = None


# ============================================================================
# Service
# ============================================================================

class CacheService:
    """Read-through cache with TTL expiry and key or pattern invalidation.

    There is no per-key locking: concurrent misses on one key each run
    their producer and each write, and the last write wins.
    """

    def __init__(
        self,
        store: CacheStore,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.settings = settings
        self.clock = clock

    @property
    def default_ttl(self) -> int:
        return self.settings.cache_default_ttl

    async def lookup(
        self,
        key: str,
        producer: Optional[Producer] = None,
        ttl: Optional[int] = None,
    ) -> CacheResult:
        """Return the live cached value for key, or compute, store and return it.

        Args:
            key: Cache key, usually the request path plus query string.
            producer: Zero-argument callable (sync or async) computing the
                value on a miss. ``None`` makes this a pure probe that never
                writes.
            ttl: Lifetime in seconds for a freshly stored value.

        Returns:
            CacheResult tagged HIT, STORED, MISS or FAILED.
        """
        ttl = self.default_ttl if ttl is None else ttl
        try:
            record = await self.store.get(key)
            if record is not None and record.is_live(self.clock()):
                log_cache_operation(logger, "get", key, hit=True)
                return CacheResult(CacheStatus.HIT, record.value)

            log_cache_operation(logger, "get", key, hit=False, expired=record is not None)
            if producer is None:
                return CacheResult(CacheStatus.MISS)

            value = producer()
            if inspect.isawaitable(value):
                value = await value

            expires_at = self.clock() + ttl
            await self.store.upsert(key, value, expires_at)
            log_cache_operation(logger, "set", key, ttl=ttl)
            return CacheResult(CacheStatus.STORED, value)

        except Exception as e:
            logger.error("Cache query failed", key=key, error=str(e))
            return CacheResult(CacheStatus.FAILED, error=e)

    async def query(
        self,
        key: str,
        producer: Optional[Producer] = None,
        ttl: Optional[int] = None,
    ) -> Any:
        """Like lookup() but returns only the value; None for a miss or a failure."""
        result = await self.lookup(key, producer, ttl)
        return result.value if result.has_value else None

    async def invalidate(self, key: str) -> InvalidationResult:
        """Delete the record stored under exactly this key."""
        if not self.store.is_ready():
            logger.error("Cache store is not ready, invalidation skipped", key=key)
            return InvalidationResult(InvalidationOutcome.UNAVAILABLE)

        try:
            removed = await self.store.delete_one(key)
        except Exception as e:
            logger.error("Cache invalidation failed", key=key, error=str(e))
            return InvalidationResult(InvalidationOutcome.FAILED, error=e)

        log_cache_operation(logger, "delete", key, deleted=removed)
        if removed > 0:
            logger.info("Cache invalidated", key=key)
            return InvalidationResult(InvalidationOutcome.REMOVED, removed)

        logger.info("No cache entry found", key=key)
        return InvalidationResult(InvalidationOutcome.NOT_FOUND)

    async def invalidate_pattern(self, pattern: str) -> InvalidationResult:
        """Delete every record whose key matches a regular expression."""
        if not self.store.is_ready():
            logger.error("Cache store is not ready, invalidation skipped", pattern=pattern)
            return InvalidationResult(InvalidationOutcome.UNAVAILABLE)

        try:
            removed = await self.store.delete_many(re.compile(pattern))
        except Exception as e:
            logger.error("Cache pattern invalidation failed", pattern=pattern, error=str(e))
            return InvalidationResult(InvalidationOutcome.FAILED, error=e)

        log_cache_operation(logger, "clear_pattern", pattern, deleted=removed)
        logger.info("Cache invalidated for pattern", pattern=pattern, removed=removed)
        if removed > 0:
            return InvalidationResult(InvalidationOutcome.REMOVED, removed)
        return InvalidationResult(InvalidationOutcome.NOT_FOUND)
