"""
Cache-aside store over Redis.

The cache is an optimization, never a source of truth: a read that fails is
reported as a miss and a write that fails is dropped. Entries leave only by
TTL expiry.
"""

import hashlib
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.infrastructure.redis.constants import MAX_CACHE_KEY_LENGTH

logger = get_logger(__name__)


def build_cache_key(namespace: str, params: dict[str, Any] | None = None) -> str:
    """
    Build a deterministic cache key from a namespace and query parameters.

    Parameters are sorted by name and None values are skipped, so two calls
    with the same effective filter always share a key. Names and values are
    percent-encoded, so a value holding ":" or "=" cannot mimic another
    parameter. Keys longer than MAX_CACHE_KEY_LENGTH are replaced by a
    SHA-256 digest of the full key.
    """
    if params:
        parts = [
            f"{quote(str(k), safe='')}={quote(str(v), safe='')}"
            for k, v in sorted(params.items())
            if v is not None
        ]
        full_key = ":".join([namespace, *parts])
    else:
        full_key = namespace

    if len(full_key) > MAX_CACHE_KEY_LENGTH:
        digest = hashlib.sha256(full_key.encode()).hexdigest()[:32]
        return f"{namespace}:h:{digest}"

    return full_key


@dataclass
class CacheStats:
    """Process-local counters, exposed on the readiness probe."""

    hits: int = 0
    misses: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class CacheStore:
    """
    Namespaced get/set/delete on a shared Redis.

    Usage:
        cache = CacheStore(redis_client)
        cached = await cache.get(key)
        if cached is None:
            value = compute()
            await cache.set(key, value, ttl_seconds=300)
    """

    def __init__(self, redis_client: redis.Redis, key_prefix: str | None = None):
        self._redis = redis_client
        self._prefix = settings.redis_key_prefix if key_prefix is None else key_prefix
        self.stats = CacheStats()

    def _full_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        """Return the cached payload, or None when absent or unreachable."""
        full_key = self._full_key(key)
        try:
            value = await self._redis.get(full_key)
        except (RedisError, OSError) as e:
            self.stats.errors += 1
            self.stats.misses += 1
            logger.warning("Cache get failed, treating as miss", key=full_key, error=str(e))
            return None

        if value is None:
            self.stats.misses += 1
            logger.debug("Cache miss", key=full_key)
            return None

        self.stats.hits += 1
        logger.debug("Cache hit", key=full_key)
        if isinstance(value, bytes):
            return value.decode()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a payload with a TTL. Failures are logged and dropped."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        full_key = self._full_key(key)
        try:
            await self._redis.setex(full_key, ttl_seconds, value)
        except (RedisError, OSError) as e:
            self.stats.errors += 1
            logger.warning("Cache set failed", key=full_key, error=str(e))

    async def delete(self, key: str) -> None:
        full_key = self._full_key(key)
        try:
            await self._redis.delete(full_key)
        except (RedisError, OSError) as e:
            self.stats.errors += 1
            logger.warning("Cache delete failed", key=full_key, error=str(e))
