"""Periodic sweep of expired cache entries.

The store is expected to drop expired records on its own schedule, the way
a TTL index would. This service is that schedule: it runs independently of
reads, so a record past its expiry may linger until the next sweep.
"""
import asyncio
from typing import Callable, Optional, TYPE_CHECKING

from core.logging import get_logger

if TYPE_CHECKING:
    from core.config import Settings
    from core.cache import CacheService

logger = get_logger(__name__)


class CleanupService:
    """Background task purging expired cache entries every cleanup interval."""

    def __init__(
        self,
        cache: "CacheService",
        settings: "Settings",
        clock: Optional[Callable[[], float]] = None,
    ):
        self.cache = cache
        self.settings = settings
        self.clock = clock or cache.clock
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the cleanup service background task."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._cleanup_loop())
        logger.info(
            "Cleanup service started",
            interval=self.settings.cache_cleanup_interval,
        )

    async def stop(self) -> None:
        """Stop the cleanup service gracefully."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Cleanup service stopped")

    async def _cleanup_loop(self) -> None:
        """Main cleanup loop - runs at configured interval."""
        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error("Cleanup failed", error=str(e))
            await asyncio.sleep(self.settings.cache_cleanup_interval)

    async def run_once(self) -> int:
        """Purge expired entries once and return how many were removed."""
        store = self.cache.store
        if not store.is_ready():
            logger.debug("Cache store not ready, skipping expiry sweep")
            return 0

        removed = await store.purge_expired(self.clock())
        if removed > 0:
            logger.info("Expired cache entries purged", count=removed)
        return removed
