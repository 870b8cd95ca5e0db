"""
Shared building blocks for the REST API.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging, token masking
  - constants.py: Sort fields, sort orders, input limits

- shared.infrastructure: Storage
  - db.py: SQLAlchemy engine and sessions
  - redis/: Connection pool, key layout, distributed lock
  - cache/: Cache-aside store and cache key derivation

- shared.resilience: Outbound calls
  - circuit_breaker.py: Per-dependency circuit breakers
  - retry.py: Exponential backoff with an overall deadline

- shared.security: Rate limiting (slowapi), webhook request signing

- shared.utils: HTTP exceptions with auto-logging, health probes

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.infrastructure.redis import DistributedLock, get_redis_pool
    from shared.resilience import RetryPolicy, execute_with_retry, get_breaker
    from shared.utils.exceptions import NotFoundError, ClientInputError
"""
