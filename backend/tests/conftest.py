"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Must be set before any application module reads settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CURSOR_SECRET", "test-cursor-secret")
os.environ.setdefault("WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("OAUTH_TOKEN_URL", "")

import itertools
import time
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rest_api.main import app
from rest_api.dependencies import get_redis
from rest_api.models import Base, Product
from shared.infrastructure.cache import CacheStore
from shared.infrastructure.db import get_db
from shared.resilience.circuit_breaker import clear_breakers
from shared.security.rate_limit import limiter
from rest_api.services.catalog import CursorCodec


_id_counter = itertools.count(1)

# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


# =============================================================================
# In-memory Redis double
# =============================================================================


class InMemoryRedis:
    """
    Async stand-in for the subset of redis.asyncio.Redis the app uses.

    Expiry follows a manual clock (`advance`) on top of time.monotonic, so
    TTL behaviour can be tested without sleeping. Setting `fail = True`
    makes every call raise a redis ConnectionError.
    """

    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}
        self._offset = 0.0
        self.fail = False
        self.set_calls = 0

    def _now(self) -> float:
        return time.monotonic() + self._offset

    def advance(self, seconds: float) -> None:
        self._offset += seconds

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("Connection refused")

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._now() >= expires_at:
            del self._data[key]
            return None
        return value

    def ttl_of(self, key: str) -> float | None:
        entry = self._data.get(key)
        if entry is None or entry[1] is None:
            return None
        return entry[1] - self._now()

    def keys(self) -> list[str]:
        return [k for k in list(self._data) if self._live(k) is not None]

    async def get(self, key: str) -> str | None:
        self._check()
        return self._live(key)

    async def set(self, key: str, value: str, nx: bool = False, ex: int | None = None):
        self._check()
        self.set_calls += 1
        if nx and self._live(key) is not None:
            return None
        expires_at = self._now() + ex if ex else None
        self._data[key] = (str(value), expires_at)
        return True

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        return await self.set(key, value, ex=ttl)

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                removed += 1
            self._data.pop(key, None)
        return removed

    async def ping(self) -> bool:
        self._check()
        return True

    async def aclose(self) -> None:
        pass


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_redis():
    return InMemoryRedis()


@pytest.fixture
def cache(fake_redis):
    return CacheStore(fake_redis)


@pytest.fixture
def codec():
    return CursorCodec("test-cursor-secret")


@pytest.fixture(autouse=True)
def _reset_process_state():
    """Breakers and rate-limit counters are process-wide."""
    clear_breakers()
    limiter.reset()
    yield
    clear_breakers()


@pytest.fixture(scope="function")
def client(db_session, fake_redis):
    """
    Create a test client with database and Redis overrides.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    async def override_get_redis():
        return fake_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def next_id() -> str:
    """Sortable, unique product ID for tests."""
    return f"p-{next(_id_counter):06d}"


def make_product(db_session, minutes: int = 0, **overrides) -> Product:
    """Insert one product created `minutes` after BASE_TIME."""
    created = BASE_TIME + timedelta(minutes=minutes)
    fields = {
        "id": next_id(),
        "name": f"Product {minutes}",
        "description": "Test product",
        "price": Decimal("10.00"),
        "category": "general",
        "stock": 5,
        "created_at": created,
        "updated_at": created,
    }
    fields.update(overrides)
    product = Product(**fields)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture
def seed_products(db_session):
    """Five products with createdAt 1..5 minutes, ids ascending with time."""
    return [make_product(db_session, minutes=m) for m in range(1, 6)]
