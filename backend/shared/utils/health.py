"""
Health check utilities.

Each probe is an async function wrapped with `health_probe`, which bounds it
with a timeout and turns any outcome into a ProbeResult. Probes never raise.

Usage:
    @health_probe("redis", timeout=2.0)
    async def check_redis(client):
        await client.ping()

    report = await run_probes([check_redis(client), check_database(db)])
    # {"status": "healthy", "services": {"redis": "up", ...}, "details": {...}}
"""

from __future__ import annotations

import asyncio
import functools
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Coroutine

from shared.config.logging import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    """Overall service status."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class ProbeResult:
    """Outcome of one dependency probe."""
    component: str
    up: bool
    latency_ms: float
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "status": "up" if self.up else "down",
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.error:
            result["error"] = self.error
        if self.details:
            result["details"] = self.details
        return result


def health_probe(component: str, timeout: float = 3.0):
    """
    Decorator for probe functions with timeout protection.

    The wrapped function may return a dict of extra details or None.
    """
    def decorator(
        func: Callable[..., Coroutine[Any, Any, dict[str, Any] | None]]
    ) -> Callable[..., Coroutine[Any, Any, ProbeResult]]:

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> ProbeResult:
            start_time = time.perf_counter()
            try:
                details = await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
            except asyncio.TimeoutError:
                error = f"timeout after {timeout}s"
            except Exception as e:
                error = str(e) or type(e).__name__
            else:
                return ProbeResult(
                    component=component,
                    up=True,
                    latency_ms=(time.perf_counter() - start_time) * 1000,
                    details=details if isinstance(details, dict) else {},
                )

            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.error("Health check failed", component=component, error=error, latency_ms=latency_ms)
            return ProbeResult(component=component, up=False, latency_ms=latency_ms, error=error)

        return wrapper
    return decorator


async def run_probes(
    probes: list[Coroutine[Any, Any, ProbeResult]],
) -> dict[str, Any]:
    """Run probes concurrently and aggregate them into one report."""
    results = await asyncio.gather(*probes)

    all_up = all(result.up for result in results)
    return {
        "status": HealthStatus.HEALTHY.value if all_up else HealthStatus.UNHEALTHY.value,
        "services": {r.component: ("up" if r.up else "down") for r in results},
        "details": {r.component: r.to_dict() for r in results},
    }
