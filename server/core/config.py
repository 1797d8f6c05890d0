"""Environment-driven configuration with Pydantic v2."""

from typing import List, Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from constants import (
    CACHE_CLEANUP_INTERVAL,
    DEFAULT_TTL,
    DYNAMIC_DATA_TTL,
    STATIC_ASSETS_TTL,
)


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3010, ge=1024, le=65535)
    debug: bool = Field(default=False)
    workers: int = Field(default=1, ge=1, le=8)

    # Security
    cors_origins: List[str] = Field(default=["http://localhost:3000"])

    # Database Configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./data/jobportal.db")
    database_echo: bool = Field(default=False)
    database_pool_size: int = Field(default=20, ge=5, le=100)
    database_max_overflow: int = Field(default=30, ge=10, le=100)

    # Cache Configuration
    cache_backend: Literal["database", "memory"] = Field(default="database")
    cache_default_ttl: int = Field(default=DEFAULT_TTL, ge=1)
    cache_static_ttl: int = Field(default=STATIC_ASSETS_TTL, ge=1)
    cache_dynamic_ttl: int = Field(default=DYNAMIC_DATA_TTL, ge=1)
    cache_cleanup_interval: int = Field(default=CACHE_CLEANUP_INTERVAL, ge=1)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for SQLite."""
        if v and v.startswith("sqlite"):
            if ":///" in v:
                db_path = v.split("///")[1]
                if db_path and db_path != ":memory:":
                    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        v = v.lower()
        if v not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return v

    def ttl_for(self, data_class: str) -> int:
        """TTL in seconds for a class of cached data (default, static, dynamic)."""
        ttls = {
            "default": self.cache_default_ttl,
            "static": self.cache_static_ttl,
            "dynamic": self.cache_dynamic_ttl,
        }
        try:
            return ttls[data_class]
        except KeyError:
            raise ValueError(f"Unknown cache data class: {data_class!r}") from None

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.debug

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
        "env_nested_delimiter": "__",
    }
