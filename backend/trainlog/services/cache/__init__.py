"""
Cache module - In-memory document cache with single-flight fetches.
"""
from trainlog.services.cache.coordinator import (
    ProgressCacheCoordinator,
    get_cache_coordinator,
)

__all__ = [
    "ProgressCacheCoordinator",
    "get_cache_coordinator",
]
