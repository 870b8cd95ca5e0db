"""
Health check endpoints for load balancers and orchestration probes.
"""

import time
from datetime import datetime, timezone

import redis.asyncio as redis
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from shared.config.settings import settings
from shared.infrastructure.db import check_database, get_db
from shared.resilience import get_all_breaker_stats
from shared.utils.health import HealthStatus, health_probe, run_probes
from rest_api.dependencies import get_redis


router = APIRouter(prefix="/health", tags=["health"])

_started_at = time.monotonic()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@health_probe("database")
async def check_database_health(db: Session) -> None:
    check_database(db)


@health_probe("redis")
async def check_redis_health(redis_client: redis.Redis) -> None:
    await redis_client.ping()


@router.get("")
async def health_check(
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
):
    """
    Full health report: dependency status plus circuit breaker state.
    Returns 503 when any dependency is down.
    """
    report = await run_probes([
        check_database_health(db),
        check_redis_health(redis_client),
    ])
    body = {
        "status": report["status"],
        "timestamp": _timestamp(),
        "uptime": round(time.monotonic() - _started_at, 3),
        "environment": settings.environment,
        "services": report["services"],
        "details": report["details"],
        "circuit_breakers": get_all_breaker_stats(),
    }
    status_code = 200 if report["status"] == HealthStatus.HEALTHY.value else 503
    return JSONResponse(content=body, status_code=status_code)


@router.get("/liveness")
def liveness():
    """The process is up and serving requests."""
    return {"status": "alive", "timestamp": _timestamp()}


@router.get("/readiness")
async def readiness(
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
):
    """Ready when both the database and Redis answer."""
    report = await run_probes([
        check_database_health(db),
        check_redis_health(redis_client),
    ])
    if report["status"] != HealthStatus.HEALTHY.value:
        return JSONResponse(
            content={"status": "not_ready", "timestamp": _timestamp()},
            status_code=503,
        )
    return {"status": "ready", "timestamp": _timestamp()}
