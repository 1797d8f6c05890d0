"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from core.database import Database
from core.cache import CacheService, create_cache_store
from core.cleanup import CleanupService


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Database (backs job/text data and the default cache store)
    database = providers.Singleton(
        Database,
        settings=settings
    )

    # Cache store (database table by default, memory when configured)
    cache_store = providers.Singleton(
        create_cache_store,
        settings=settings,
        database=database
    )

    cache = providers.Singleton(
        CacheService,
        store=cache_store,
        settings=settings
    )

    # Background expiry sweep for the cache store
    cleanup = providers.Singleton(
        CleanupService,
        cache=cache,
        settings=settings
    )


# Global container instance
container = Container()
