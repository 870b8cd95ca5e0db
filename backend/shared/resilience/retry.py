"""
Retry with exponential backoff for outbound calls.

Each attempt runs through a circuit breaker when one is given. Client
errors and open-circuit rejections are raised at once; anything else is
retried until the attempts or the deadline run out.

    delay(attempt) = min(base_delay * 2 ** attempt, max_delay)   # attempt is 0-based
"""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Final, TypeVar

from shared.config.logging import get_logger
from shared.resilience.circuit_breaker import CircuitBreaker
from shared.utils.exceptions import (
    CircuitOpenError,
    UpstreamUnavailableError,
    is_client_error,
)

logger = get_logger(__name__)

T = TypeVar("T")


# =============================================================================
# Constants
# =============================================================================

DEFAULT_MAX_ATTEMPTS: Final[int] = 3
DEFAULT_BASE_DELAY: Final[float] = 1.0
DEFAULT_MAX_DELAY: Final[float] = 30.0


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Total attempts including the first one.
        base_delay: Delay before the second attempt, in seconds.
        max_delay: Cap for any single delay.
        total_timeout: Overall budget in seconds across attempts and delays.
            None means only the caller's deadline (if any) applies.
        jitter_factor: Random spread applied to each delay (0.25 = ±25%).
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    total_timeout: float | None = None
    jitter_factor: float = 0.0

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.total_timeout is not None and self.total_timeout <= 0:
            raise ValueError("total_timeout must be positive")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after `attempt` (0-based) failed."""
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        if self.jitter_factor:
            jitter_range = delay * self.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)
        return max(0.0, delay)


# =============================================================================
# Retry Functions
# =============================================================================


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    breaker: CircuitBreaker | None = None,
    deadline: float | None = None,
    *,
    service: str | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """
    Run `operation`, retrying transient failures.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: Attempts, backoff and overall budget.
        breaker: Optional circuit breaker every attempt goes through.
        deadline: Absolute instant on `clock` after which no attempt may run.
        service: Name used in errors and logs (defaults to the breaker name).

    Raises:
        CircuitOpenError: The breaker rejected an attempt.
        The original error for client-class failures.
        UpstreamUnavailableError: Attempts or time exhausted, chained from the last error.
    """
    service = service or (breaker.name if breaker else "upstream")

    end = deadline
    if policy.total_timeout is not None:
        budget_end = clock() + policy.total_timeout
        end = budget_end if end is None else min(end, budget_end)

    last_error: Exception | None = None
    attempts_made = 0

    for attempt in range(policy.max_attempts):
        remaining = None if end is None else end - clock()
        if remaining is not None and remaining <= 0:
            break
        attempts_made += 1

        async def attempt_once() -> T:
            if remaining is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=remaining)

        try:
            if breaker is not None:
                return await breaker.execute(attempt_once)
            return await attempt_once()
        except CircuitOpenError:
            raise
        except Exception as e:
            if is_client_error(e):
                raise
            last_error = e

        delay = None if attempt == policy.max_attempts - 1 else policy.delay_for(attempt)
        if delay is not None and end is not None and clock() + delay >= end:
            delay = None
        logger.warning(
            "Outbound call failed",
            service=service,
            attempt=attempt + 1,
            max_attempts=policy.max_attempts,
            error=str(last_error) or type(last_error).__name__,
            will_retry=delay is not None,
        )
        if delay is None:
            break
        await sleep(delay)

    if last_error is None:
        raise UpstreamUnavailableError(service, detail=f"Deadline exceeded before calling {service}")

    raise UpstreamUnavailableError(
        service,
        last_error=last_error,
        attempts=attempts_made,
    ) from last_error
