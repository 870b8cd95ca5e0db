"""
Infrastructure module: Database, Redis and cache.

Provides:
- Database sessions (db.py)
- Redis pool and distributed lock (redis/)
- Cache-aside store (cache/)
"""

from shared.infrastructure.db import (
    engine,
    SessionLocal,
    get_db,
    get_db_context,
)
from shared.infrastructure.redis import (
    get_redis_pool,
    close_redis_pool,
    DistributedLock,
)
from shared.infrastructure.cache import CacheStore, build_cache_key

__all__ = [
    # db
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    # redis
    "get_redis_pool",
    "close_redis_pool",
    "DistributedLock",
    # cache
    "CacheStore",
    "build_cache_key",
]
