"""
Tests for the shared OAuth2 token manager.
"""

import asyncio
import json
import time
from urllib.parse import parse_qs

import httpx
import pytest

from rest_api.services.auth import AccessToken, TokenIssuerClient, TokenManager, TokenState
from shared.infrastructure.cache import CacheStore
from shared.infrastructure.redis import DistributedLock
from shared.resilience import RetryPolicy
from shared.utils.exceptions import AuthorizationError, ExternalServiceError

TOKEN_URL = "https://auth.test/oauth/token"
CACHE_KEY = "oauth:token"
LOCK_KEY = "oauth:lock"


class Issuer:
    """Programmable token endpoint served through httpx.MockTransport."""

    def __init__(self, status: int = 200, body: dict | None = None, delay: float = 0.0):
        self.status = status
        self.body = body
        self.delay = delay
        self.calls = 0
        self.forms: list[dict] = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        self.forms.append({k: v[0] for k, v in parse_qs(request.content.decode()).items()})
        if self.delay:
            await asyncio.sleep(self.delay)
        body = self.body if self.body is not None else {
            "access_token": f"tok-{self.calls}",
            "token_type": "Bearer",
            "expires_in": 3600,
        }
        return httpx.Response(self.status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_manager(fake_redis, issuer: Issuer, **overrides) -> TokenManager:
    client = TokenIssuerClient(TOKEN_URL, "client-id", "client-secret", scope="read", transport=issuer.transport())
    options = {
        "retry_policy": RetryPolicy(max_attempts=2, base_delay=0.0),
        "cache_key": CACHE_KEY,
        "lock_key": LOCK_KEY,
        "lock_ttl": 30,
        "expiry_buffer": 60,
        "wait_interval": 0.01,
        "max_wait": 2.0,
    }
    options.update(overrides)
    return TokenManager(CacheStore(fake_redis), DistributedLock(fake_redis), client, **options)


async def seed_token(fake_redis, value: str, expires_in: int, seconds_left: float) -> None:
    token = AccessToken(value, "Bearer", expires_in, time.time() + seconds_left)
    await CacheStore(fake_redis).set(CACHE_KEY, token.to_json(), ttl_seconds=3600)


class FakeTime:
    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


class TestCachedToken:

    @pytest.mark.asyncio
    async def test_fresh_cached_token_is_returned_without_refresh(self, fake_redis):
        issuer = Issuer()
        await seed_token(fake_redis, "cached-token", 3600, 3000)
        manager = make_manager(fake_redis, issuer)

        assert await manager.get_access_token() == "cached-token"
        assert issuer.calls == 0
        assert await manager.get_state() == TokenState.VALID

    @pytest.mark.asyncio
    async def test_token_inside_expiry_buffer_is_refreshed(self, fake_redis):
        issuer = Issuer()
        await seed_token(fake_redis, "old-token", 3600, 30)
        manager = make_manager(fake_redis, issuer)
        assert await manager.get_state() == TokenState.EXPIRING_SOON

        assert await manager.get_access_token() == "tok-1"
        assert issuer.calls == 1

    @pytest.mark.asyncio
    async def test_unreadable_cache_entry_triggers_refresh(self, fake_redis):
        issuer = Issuer()
        await CacheStore(fake_redis).set(CACHE_KEY, "{garbage", 60)
        manager = make_manager(fake_redis, issuer)
        assert await manager.get_access_token() == "tok-1"


class TestRefresh:

    @pytest.mark.asyncio
    async def test_missing_token_is_fetched_and_cached(self, fake_redis):
        issuer = Issuer()
        manager = make_manager(fake_redis, issuer)
        assert await manager.get_state() == TokenState.NO_TOKEN

        assert await manager.get_access_token() == "tok-1"
        assert issuer.forms[0] == {
            "grant_type": "client_credentials",
            "client_id": "client-id",
            "client_secret": "client-secret",
            "scope": "read",
        }

        cached = AccessToken.from_json(await fake_redis.get(f"app:{CACHE_KEY}"))
        assert cached.access_token == "tok-1"
        assert cached.expires_in == 3600
        assert 3530 < fake_redis.ttl_of(f"app:{CACHE_KEY}") <= 3540
        assert await fake_redis.get(f"app:lock:{LOCK_KEY}") is None
        assert await manager.get_state() == TokenState.VALID

        assert await manager.get_access_token() == "tok-1"
        assert issuer.calls == 1

    @pytest.mark.asyncio
    async def test_short_lived_token_is_cached_for_its_lifetime(self, fake_redis):
        issuer = Issuer(body={"access_token": "short", "expires_in": 30})
        manager = make_manager(fake_redis, issuer)
        await manager.get_access_token()
        assert 0 < fake_redis.ttl_of(f"app:{CACHE_KEY}") <= 30

    @pytest.mark.asyncio
    async def test_concurrent_callers_across_instances_refresh_once(self, fake_redis):
        issuer = Issuer(delay=0.05)
        managers = [make_manager(fake_redis, issuer) for _ in range(3)]

        tokens = await asyncio.gather(*(managers[i % 3].get_access_token() for i in range(12)))

        assert issuer.calls == 1
        assert set(tokens) == {"tok-1"}

    @pytest.mark.asyncio
    async def test_token_saved_by_another_instance_while_waiting(self, fake_redis):
        issuer = Issuer()
        fake = FakeTime()
        await DistributedLock(fake_redis).acquire(LOCK_KEY, 30)

        async def sleep_while_peer_refreshes(delay: float) -> None:
            await fake.sleep(delay)
            await seed_token(fake_redis, "peer-token", 3600, 3600)

        manager = make_manager(
            fake_redis, issuer, wait_interval=1.0, max_wait=5.0,
            clock=fake.clock, sleep=sleep_while_peer_refreshes,
        )
        assert await manager.get_access_token() == "peer-token"
        assert issuer.calls == 0
        assert fake.sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_token_found_after_taking_the_lock_is_reused(self, fake_redis):
        issuer = Issuer()
        manager = make_manager(fake_redis, issuer)
        original_acquire = manager._lock.acquire

        async def acquire_after_peer(key, ttl):
            await seed_token(fake_redis, "peer-token", 3600, 3600)
            return await original_acquire(key, ttl)

        manager._lock.acquire = acquire_after_peer
        assert await manager.get_access_token() == "peer-token"
        assert issuer.calls == 0
        assert await fake_redis.get(f"app:lock:{LOCK_KEY}") is None


class TestFailures:

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, fake_redis):
        issuer = Issuer(status=401, body={"error": "invalid_client"})
        manager = make_manager(fake_redis, issuer)

        with pytest.raises(AuthorizationError) as exc_info:
            await manager.get_access_token()
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Failed to obtain access token"
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)
        assert issuer.calls == 1
        assert await fake_redis.get(f"app:lock:{LOCK_KEY}") is None

    @pytest.mark.asyncio
    async def test_server_errors_are_retried_then_reported(self, fake_redis):
        issuer = Issuer(status=500, body={"error": "server_error"})
        manager = make_manager(fake_redis, issuer)

        with pytest.raises(AuthorizationError):
            await manager.get_access_token()
        assert issuer.calls == 2
        assert await fake_redis.get(f"app:lock:{LOCK_KEY}") is None

    @pytest.mark.asyncio
    async def test_malformed_token_response(self, fake_redis):
        issuer = Issuer(body={"token_type": "Bearer"})
        manager = make_manager(fake_redis, issuer)

        with pytest.raises(AuthorizationError):
            await manager.get_access_token()
        assert await fake_redis.get(f"app:{CACHE_KEY}") is None

    @pytest.mark.asyncio
    async def test_wait_budget_is_bounded(self, fake_redis):
        issuer = Issuer()
        fake = FakeTime()
        await DistributedLock(fake_redis).acquire(LOCK_KEY, 30)
        manager = make_manager(
            fake_redis, issuer, wait_interval=1.0, max_wait=3.0, clock=fake.clock, sleep=fake.sleep
        )

        with pytest.raises(AuthorizationError, match="Timed out"):
            await manager.get_access_token()
        assert fake.sleeps == [1.0, 1.0, 1.0]
        assert issuer.calls == 0

    @pytest.mark.asyncio
    async def test_unreachable_store(self, fake_redis):
        issuer = Issuer()
        manager = make_manager(fake_redis, issuer)
        fake_redis.fail = True

        with pytest.raises(AuthorizationError, match="lock unavailable"):
            await manager.get_access_token()
        assert issuer.calls == 0


class TestTokenIssuerClient:

    @pytest.mark.asyncio
    async def test_rejects_non_json_body(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        client = TokenIssuerClient(TOKEN_URL, "id", "secret", transport=transport)
        with pytest.raises(ExternalServiceError):
            await client.request_token()
        await client.close()

    @pytest.mark.parametrize("body", [{"access_token": "x"}, {"access_token": "x", "expires_in": 0}, {"expires_in": 60}])
    @pytest.mark.asyncio
    async def test_rejects_incomplete_body(self, body):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        client = TokenIssuerClient(TOKEN_URL, "id", "secret", transport=transport)
        with pytest.raises(ExternalServiceError):
            await client.request_token()

    def test_is_configured(self):
        assert TokenIssuerClient(TOKEN_URL, "id", "secret").is_configured
        assert not TokenIssuerClient("", "id", "secret").is_configured


class TestAccessToken:

    def test_json_round_trip(self):
        token = AccessToken("abc", "Bearer", 3600, 1_700_000_000.0)
        assert AccessToken.from_json(token.to_json()) == token

    def test_missing_token_type_defaults_to_bearer(self):
        raw = json.dumps({"access_token": "abc", "expires_in": 60, "expires_at": 1.0})
        assert AccessToken.from_json(raw).token_type == "Bearer"

    def test_usability_respects_buffer(self):
        token = AccessToken("abc", "Bearer", 3600, 1000.0)
        assert token.is_usable(now=900.0, buffer_seconds=60)
        assert not token.is_usable(now=950.0, buffer_seconds=60)
