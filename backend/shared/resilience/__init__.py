"""
Resilience module: circuit breaker and retry for outbound calls.
"""

from shared.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    get_all_breaker_stats,
    get_breaker,
)
from shared.resilience.retry import RetryPolicy, execute_with_retry
from shared.utils.exceptions import is_client_error

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "get_all_breaker_stats",
    "get_breaker",
    "RetryPolicy",
    "execute_with_retry",
    "is_client_error",
]
