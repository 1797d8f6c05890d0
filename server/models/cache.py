"""Database-backed cache model for key-value storage with TTL.

One row per cache key. Rows are replaced wholesale on every write and
removed by explicit invalidation or by the background expiry sweep.
"""

import time
from typing import Any
from sqlmodel import SQLModel, Field, Column, JSON

from constants import CACHE_TABLE_NAME


class CacheEntry(SQLModel, table=True):
    """Cached JSON value with an absolute expiry instant."""

    __tablename__ = CACHE_TABLE_NAME

    key: str = Field(primary_key=True, max_length=2048)
    value: Any = Field(default=None, sa_column=Column(JSON))
    expires_at: float = Field(index=True)  # Unix timestamp
    created_at: float = Field(default_factory=time.time)
