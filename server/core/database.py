"""Modern async database service with SQLModel and SQLAlchemy 2.0."""

import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Pattern
from sqlmodel import SQLModel, select, delete, or_, col
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.exc import IntegrityError
from contextlib import asynccontextmanager

from core.config import Settings
from models.database import Job, TextContent
from models.cache import CacheEntry
from core.logging import get_logger

logger = get_logger(__name__)


class Database:
    """Async database service with SQLModel."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = None
        self.async_session = None

    async def startup(self):
        """Initialize database connection and create tables."""
        try:
            # Disable verbose database and asyncio logging
            import logging
            logging.getLogger("aiosqlite").setLevel(logging.WARNING)
            logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
            logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

            engine_options = {"echo": self.settings.database_echo, "future": True}
            if ":memory:" not in self.settings.database_url:
                engine_options["pool_size"] = self.settings.database_pool_size
                engine_options["max_overflow"] = self.settings.database_max_overflow

            self.engine = create_async_engine(self.settings.database_url, **engine_options)

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

            logger.info("Database initialized successfully")

        except Exception as e:
            logger.error("Database startup failed", error=str(e))
            raise

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.async_session = None
            logger.info("Database connections closed")

    def is_ready(self) -> bool:
        """True once startup() has completed and until shutdown()."""
        return self.engine is not None and self.async_session is not None

    @asynccontextmanager
    async def get_session(self):
        """Get async database session."""
        if not self.async_session:
            raise RuntimeError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    # ============================================================================
    # Cache Entries
    # ============================================================================
    #
    # These methods raise on failure. The cache service decides how a failed
    # read or write degrades.

    async def get_cache_entry(self, key: str) -> Optional[CacheEntry]:
        """Get the cache row for key, expired or not."""
        async with self.get_session() as session:
            stmt = select(CacheEntry).where(CacheEntry.key == key)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def set_cache_entry(self, key: str, value: Any, expires_at: float) -> None:
        """Insert or fully replace the cache row for key."""
        try:
            await self._write_cache_entry(key, value, expires_at)
        except IntegrityError:
            # A concurrent writer inserted the key first; overwrite it
            logger.debug("Cache entry inserted concurrently, retrying as update", key=key)
            await self._write_cache_entry(key, value, expires_at)

    async def _write_cache_entry(self, key: str, value: Any, expires_at: float) -> None:
        async with self.get_session() as session:
            stmt = select(CacheEntry).where(CacheEntry.key == key)
            result = await session.execute(stmt)
            existing = result.scalar_one_or_none()

            if existing:
                existing.value = value
                existing.expires_at = expires_at
                existing.created_at = time.time()
            else:
                session.add(CacheEntry(
                    key=key,
                    value=value,
                    expires_at=expires_at,
                    created_at=time.time()
                ))

            await session.commit()

    async def delete_cache_entry(self, key: str) -> int:
        """Delete cache entry by key. Returns number of rows removed."""
        async with self.get_session() as session:
            result = await session.execute(delete(CacheEntry).where(CacheEntry.key == key))
            await session.commit()
            return result.rowcount or 0

    async def delete_cache_pattern(self, pattern: Pattern[str]) -> int:
        """Delete cache entries whose key matches a compiled regular expression."""
        async with self.get_session() as session:
            result = await session.execute(select(CacheEntry.key))
            keys = [key for key in result.scalars().all() if pattern.search(key)]

            if not keys:
                return 0

            result = await session.execute(delete(CacheEntry).where(col(CacheEntry.key).in_(keys)))
            await session.commit()
            logger.debug("Deleted cache entries", pattern=pattern.pattern, count=result.rowcount)
            return result.rowcount or 0

    async def cleanup_expired_cache(self, now: Optional[float] = None) -> int:
        """Remove all expired cache entries. Returns count deleted."""
        now = time.time() if now is None else now
        async with self.get_session() as session:
            result = await session.execute(delete(CacheEntry).where(CacheEntry.expires_at <= now))
            await session.commit()
            count = result.rowcount or 0
            if count > 0:
                logger.info("Cleaned up expired cache entries", count=count)
            return count

    # ============================================================================
    # Jobs
    # ============================================================================

    async def create_job(self, data: Dict[str, Any]) -> Job:
        """Create a job posting."""
        async with self.get_session() as session:
            job = Job(**data)
            session.add(job)
            await session.commit()
            await session.refresh(job)
            logger.info("Job created", job_id=job.id, posted_by=job.posted_by)
            return job

    async def get_job(self, job_id: int) -> Optional[Job]:
        """Get a job posting by id."""
        async with self.get_session() as session:
            return await session.get(Job, job_id)

    async def update_job(self, job_id: int, changes: Dict[str, Any]) -> Optional[Job]:
        """Apply changes to a job posting. Returns None when it does not exist."""
        async with self.get_session() as session:
            job = await session.get(Job, job_id)
            if not job:
                return None

            for field, value in changes.items():
                setattr(job, field, value)

            await session.commit()
            await session.refresh(job)
            return job

    async def delete_job(self, job_id: int) -> Optional[Job]:
        """Delete a job posting. Returns the deleted row, or None when missing."""
        async with self.get_session() as session:
            job = await session.get(Job, job_id)
            if not job:
                return None

            await session.delete(job)
            await session.commit()
            return job

    async def find_jobs(
        self,
        location: Optional[str] = None,
        industry: Optional[str] = None,
        job_type: Optional[str] = None,
        experience_level: Optional[str] = None,
        salary_min: Optional[float] = None,
        salary_max: Optional[float] = None,
        keyword: Optional[str] = None,
    ) -> List[Job]:
        """List job postings matching every given filter."""
        stmt = select(Job)
        if location:
            stmt = stmt.where(Job.location == location)
        if industry:
            stmt = stmt.where(Job.industry == industry)
        if job_type:
            stmt = stmt.where(Job.job_type == job_type)
        if experience_level:
            stmt = stmt.where(Job.experience_level == experience_level)
        if salary_min is not None:
            stmt = stmt.where(Job.salary_min >= salary_min)
        if salary_max is not None:
            stmt = stmt.where(Job.salary_max <= salary_max)
        if keyword:
            stmt = stmt.where(or_(
                col(Job.title).ilike(f"%{keyword}%"),
                col(Job.description).ilike(f"%{keyword}%"),
            ))

        async with self.get_session() as session:
            result = await session.execute(stmt.order_by(col(Job.id)))
            return list(result.scalars().all())

    async def find_jobs_posted_by(self, user_id: str) -> List[Job]:
        """List job postings created by a user, newest first."""
        async with self.get_session() as session:
            stmt = select(Job).where(Job.posted_by == user_id).order_by(col(Job.id).desc())
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # ============================================================================
    # Text Content
    # ============================================================================

    async def create_text(self, component: str, content: str) -> TextContent:
        """Create a text block."""
        async with self.get_session() as session:
            text = TextContent(component=component, content=content)
            session.add(text)
            await session.commit()
            await session.refresh(text)
            return text

    async def get_text(self, text_id: int) -> Optional[TextContent]:
        """Get a text block by id."""
        async with self.get_session() as session:
            return await session.get(TextContent, text_id)

    async def update_text(self, text_id: int, changes: Dict[str, Any]) -> Optional[TextContent]:
        """Apply changes to a text block. Returns None when it does not exist."""
        async with self.get_session() as session:
            text = await session.get(TextContent, text_id)
            if not text:
                return None

            for field, value in changes.items():
                setattr(text, field, value)
            text.updated_at = datetime.now(timezone.utc)

            await session.commit()
            await session.refresh(text)
            return text

    async def delete_text(self, text_id: int) -> bool:
        """Delete a text block. Returns False when it does not exist."""
        async with self.get_session() as session:
            text = await session.get(TextContent, text_id)
            if not text:
                return False

            await session.delete(text)
            await session.commit()
            return True
