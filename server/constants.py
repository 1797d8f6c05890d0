"""Centralized constants for cache lifetimes and cache key families.

Single source of truth for the TTL assigned to each class of cached data,
so route handlers pick a named lifetime instead of repeating numbers.
"""

from typing import Dict

# =============================================================================
# CACHE TTLS (seconds)
# =============================================================================

DEFAULT_TTL: int = 3600  # 1 hour
STATIC_ASSETS_TTL: int = 86400  # 1 day for static assets
DYNAMIC_DATA_TTL: int = 1800  # 30 minutes for dynamic data

CACHE_TTLS: Dict[str, int] = {
    "default": DEFAULT_TTL,
    "static": STATIC_ASSETS_TTL,
    "dynamic": DYNAMIC_DATA_TTL,
}

# =============================================================================
# CACHE STORAGE
# =============================================================================

CACHE_TABLE_NAME: str = "cache_entries"

# Seconds between background sweeps of expired cache entries
CACHE_CLEANUP_INTERVAL: int = 60

# =============================================================================
# CACHE KEY FAMILIES
# =============================================================================

JOBS_PATH: str = "/api/jobs"
TEXTS_PREFIX: str = "/api/cache/text/"

# Every cached job listing, with or without a query string
JOB_LISTING_PATTERN: str = r"^/api/jobs(\?|$)"
