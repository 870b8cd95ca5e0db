"""
Cache package: cache-aside store and key building.
"""

from shared.infrastructure.cache.store import CacheStore, CacheStats, build_cache_key

__all__ = [
    "CacheStore",
    "CacheStats",
    "build_cache_key",
]
