"""
Circuit breaker for outbound calls.

The circuit breaker prevents cascading failures by:
1. CLOSED: Normal operation, calls pass through
2. OPEN: After failures reach the threshold, calls fail fast
3. HALF_OPEN: After the reset timeout, a single trial call checks recovery

State is process-local. Each instance keeps its own view of a dependency,
so several instances may probe a recovering service at the same time.

Usage:
    from shared.resilience.circuit_breaker import get_breaker

    breaker = get_breaker("external-api")
    user = await breaker.execute(lambda: client.get("/users/1"))
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.utils.exceptions import CircuitOpenError, is_client_error

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "CLOSED"        # Normal operation
    OPEN = "OPEN"            # Failing fast, rejecting calls
    HALF_OPEN = "HALF_OPEN"  # One trial call in flight


@dataclass(frozen=True, slots=True)
class CircuitBreakerConfig:
    """Configuration for a circuit breaker instance."""
    name: str
    failure_threshold: int = 5       # Consecutive failures before opening
    reset_timeout: float = 30.0      # Seconds in OPEN before a trial is allowed

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.reset_timeout <= 0:
            raise ValueError("reset_timeout must be positive")


@dataclass
class CircuitBreakerStats:
    """Statistics for monitoring circuit breaker behavior."""
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    state_changes: int = 0


class CircuitBreaker:
    """
    Circuit breaker guarded by an asyncio lock.

    The lock only covers state bookkeeping, never the protected call itself.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: float | None = None
        self._trial_in_flight = False
        self._lock = asyncio.Lock()
        self._stats = CircuitBreakerStats()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def stats(self) -> CircuitBreakerStats:
        return self._stats

    def _transition_to(self, new_state: CircuitState) -> None:
        """Transition to a new state with logging. Caller holds the lock."""
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        self._stats.state_changes += 1

        logger.info(
            f"Circuit breaker '{self.config.name}' state change",
            old_state=old_state.value,
            new_state=new_state.value,
            failure_count=self._failure_count,
        )

    async def _before_call(self) -> None:
        """Admit the call or raise CircuitOpenError."""
        async with self._lock:
            if self._state == CircuitState.CLOSED:
                return

            if self._state == CircuitState.OPEN:
                elapsed = self._clock() - (self._last_failure_time or 0.0)
                if elapsed < self.config.reset_timeout:
                    self._stats.rejected_calls += 1
                    raise CircuitOpenError(self.config.name, self.config.reset_timeout - elapsed)
                self._transition_to(CircuitState.HALF_OPEN)

            # HALF_OPEN admits exactly one trial
            if self._trial_in_flight:
                self._stats.rejected_calls += 1
                raise CircuitOpenError(self.config.name, 0.0)
            self._trial_in_flight = True

    async def _on_success(self) -> None:
        async with self._lock:
            self._stats.total_calls += 1
            self._stats.successful_calls += 1
            self._success_count += 1
            self._failure_count = 0
            self._trial_in_flight = False
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.CLOSED)

    async def _on_failure(self, error: BaseException) -> None:
        async with self._lock:
            self._stats.total_calls += 1
            self._stats.failed_calls += 1
            self._failure_count += 1
            self._last_failure_time = self._clock()
            self._trial_in_flight = False

            logger.warning(
                f"Circuit breaker '{self.config.name}' recorded failure",
                error=str(error) or type(error).__name__,
                failure_count=self._failure_count,
                threshold=self.config.failure_threshold,
            )

            if self._state == CircuitState.HALF_OPEN:
                # A failed trial reopens the circuit and restarts the timeout
                self._transition_to(CircuitState.OPEN)
            elif self._failure_count >= self.config.failure_threshold:
                self._transition_to(CircuitState.OPEN)

    async def _on_cancel(self) -> None:
        # A cancelled trial frees the slot without counting as a failure
        async with self._lock:
            self._trial_in_flight = False

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run `operation` under the breaker.

        Raises:
            CircuitOpenError: If the circuit rejects the call. The operation is not invoked.
        """
        await self._before_call()

        try:
            result = await operation()
        except asyncio.CancelledError:
            await self._on_cancel()
            raise
        except Exception as e:
            if is_client_error(e):
                # The dependency answered; the request was at fault
                await self._on_success()
            else:
                await self._on_failure(e)
            raise

        await self._on_success()
        return result

    def get_stats(self) -> dict[str, Any]:
        """Read-only snapshot for health endpoints."""
        return {
            "state": self._state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "last_failure_time": self._last_failure_time,
            "total_calls": self._stats.total_calls,
            "successful_calls": self._stats.successful_calls,
            "failed_calls": self._stats.failed_calls,
            "rejected_calls": self._stats.rejected_calls,
            "state_changes": self._stats.state_changes,
        }

    async def reset(self) -> None:
        """Manually reset the circuit breaker to closed state."""
        async with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._success_count = 0
            self._last_failure_time = None
            self._trial_in_flight = False
            logger.info(f"Circuit breaker '{self.config.name}' manually reset")


# =============================================================================
# Process-wide registry
# =============================================================================

_breakers: dict[str, CircuitBreaker] = {}


def get_breaker(name: str, config: CircuitBreakerConfig | None = None) -> CircuitBreaker:
    """
    Get or create the breaker for a dependency.

    Without an explicit config the breaker uses the thresholds from settings.
    """
    breaker = _breakers.get(name)
    if breaker is None:
        breaker = CircuitBreaker(
            config
            or CircuitBreakerConfig(
                name=name,
                failure_threshold=settings.circuit_breaker_threshold,
                reset_timeout=settings.circuit_breaker_reset_timeout,
            )
        )
        _breakers[name] = breaker
    return breaker


def get_all_breaker_stats() -> dict[str, dict[str, Any]]:
    """
    Get statistics for all circuit breakers.

    Useful for health check endpoints and monitoring.
    """
    return {name: breaker.get_stats() for name, breaker in _breakers.items()}


def clear_breakers() -> None:
    """Forget every registered breaker."""
    _breakers.clear()
