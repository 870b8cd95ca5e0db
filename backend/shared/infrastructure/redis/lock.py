"""
Advisory distributed lock on top of Redis.

acquire() is a single SET NX EX, so two instances racing on the same key
cannot both win. release() is an unconditional DEL: a holder that outlives
its TTL can delete a lock that has since been taken by someone else. Callers
keep the guarded work well inside the TTL to make that window unreachable.
Expiry is the only recovery for a holder that crashes.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.infrastructure.redis.constants import PREFIX_LOCK
from shared.utils.exceptions import TransientStoreError

logger = get_logger(__name__)

# Holder marker. Any instance may release, so the value carries no identity.
LOCK_SENTINEL = "1"


class DistributedLock:
    """
    Mutual exclusion across processes that share one Redis.

    Usage:
        lock = DistributedLock(redis_client)
        async with lock.held("oauth:token_refresh_lock", 30) as acquired:
            if acquired:
                ...
    """

    def __init__(self, redis_client: redis.Redis, key_prefix: str | None = None):
        self._redis = redis_client
        self._prefix = settings.redis_key_prefix if key_prefix is None else key_prefix

    def _full_key(self, key: str) -> str:
        return f"{self._prefix}{PREFIX_LOCK}{key}"

    async def acquire(self, key: str, ttl_seconds: int) -> bool:
        """
        Try once to take the lock. Never waits.

        Returns True when this call created the key, False when it already existed.
        Raises TransientStoreError when Redis cannot be reached.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        full_key = self._full_key(key)
        try:
            acquired = await self._redis.set(full_key, LOCK_SENTINEL, nx=True, ex=ttl_seconds)
        except (RedisError, OSError) as e:
            raise TransientStoreError("acquire", full_key, e) from e

        acquired = bool(acquired)
        logger.debug("Lock acquire attempt", key=full_key, acquired=acquired, ttl=ttl_seconds)
        return acquired

    async def release(self, key: str) -> None:
        """Delete the lock key. Releasing a lock that does not exist is a no-op."""
        full_key = self._full_key(key)
        try:
            await self._redis.delete(full_key)
        except (RedisError, OSError) as e:
            raise TransientStoreError("release", full_key, e) from e
        logger.debug("Lock released", key=full_key)

    @asynccontextmanager
    async def held(self, key: str, ttl_seconds: int) -> AsyncIterator[bool]:
        """
        Yield whether the lock was taken; release on exit only if it was.

        A failing release is logged, not raised: the TTL will clear the key.
        """
        acquired = await self.acquire(key, ttl_seconds)
        try:
            yield acquired
        finally:
            if acquired:
                try:
                    await self.release(key)
                except TransientStoreError as e:
                    logger.warning("Lock release failed, waiting for TTL", key=key, error=str(e))
