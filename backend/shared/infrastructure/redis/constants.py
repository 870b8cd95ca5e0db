"""
Redis constants.
Centralizes key prefixes and TTLs for better visibility and management.

Keys below are relative: the cache store and the lock prepend
settings.redis_key_prefix ("app:" by default) to every one of them.
"""

from shared.config.settings import settings

# =============================================================================
# TTL (Time To Live) Constants (in seconds)
# =============================================================================

PRODUCT_LIST_CACHE_TTL = settings.cache_ttl_short  # Listings churn quickly
PRODUCT_CACHE_TTL = settings.cache_ttl_medium
WEBHOOK_IDEMPOTENCY_TTL = settings.webhook_idempotency_ttl


# =============================================================================
# Key Prefixes
# =============================================================================

PREFIX_LOCK = "lock:"

PREFIX_CACHE_PRODUCT = "product:"
NAMESPACE_PRODUCT_LIST = "products"

PREFIX_WEBHOOK_IDEMPOTENCY = "webhook:idempotency:"

# Cache keys longer than this are replaced by a digest
MAX_CACHE_KEY_LENGTH = 200


def get_product_cache_key(product_id: str) -> str:
    """Cache key for a single product."""
    return f"{PREFIX_CACHE_PRODUCT}{product_id}"


def get_webhook_idempotency_key(idempotency_key: str) -> str:
    return f"{PREFIX_WEBHOOK_IDEMPOTENCY}{idempotency_key}"
