"""
Redis package: connection pool, key constants and the distributed lock.
"""

from shared.infrastructure.redis.pool import get_redis_pool, close_redis_pool
from shared.infrastructure.redis.lock import DistributedLock, LOCK_SENTINEL

__all__ = [
    "get_redis_pool",
    "close_redis_pool",
    "DistributedLock",
    "LOCK_SENTINEL",
]
