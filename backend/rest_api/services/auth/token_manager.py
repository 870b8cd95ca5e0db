"""
Shared OAuth2 access token (client credentials flow).

Every instance reads the token from Redis. When it is missing or close to
expiry, exactly one instance refreshes it while holding a distributed lock;
the others poll the cache until the new token shows up or their wait budget
runs out.

    cached and fresh ──> return it
    otherwise, loop until the wait budget is spent:
        lock acquired ──> re-read cache ──> fresh: return it
                                      └──> ask the issuer, cache, return
                          (release in finally)
        lock busy     ──> sleep, re-read cache, fresh: return it

The issuer call must finish inside the lock TTL, otherwise the lock could
expire mid-refresh and let a second instance in.
"""

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

import httpx

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.infrastructure.cache import CacheStore
from shared.infrastructure.redis import DistributedLock
from shared.resilience import CircuitBreaker, RetryPolicy, execute_with_retry
from shared.utils.exceptions import (
    AuthorizationError,
    ExternalServiceError,
    TransientStoreError,
)

logger = get_logger(__name__)

ISSUER_SERVICE = "oauth-issuer"

# Share of the lock TTL the issuer call may use, retries included
REFRESH_DEADLINE_FRACTION = 0.8


class TokenState(Enum):
    """Lifecycle of the shared token as seen by one instance."""
    NO_TOKEN = "no_token"
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    REFRESHING = "refreshing"


@dataclass(frozen=True, slots=True)
class AccessToken:
    """A bearer token and the wall-clock instant (epoch seconds) it stops working."""
    access_token: str
    token_type: str
    expires_in: int
    expires_at: float

    def is_usable(self, now: float, buffer_seconds: float) -> bool:
        return now < self.expires_at - buffer_seconds

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> "AccessToken":
        data = json.loads(raw)
        return cls(
            access_token=str(data["access_token"]),
            token_type=str(data.get("token_type", "Bearer")),
            expires_in=int(data["expires_in"]),
            expires_at=float(data["expires_at"]),
        )


class TokenIssuerClient:
    """
    HTTP client for the token endpoint.

    One pooled httpx.AsyncClient per instance. Tests pass an
    httpx.MockTransport instead of a live issuer.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        scope: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token_url = token_url
        self._form = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
        }
        if scope:
            self._form["scope"] = scope
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def is_configured(self) -> bool:
        return bool(self.token_url and self._form["client_id"])

    async def request_token(self) -> dict[str, Any]:
        """
        POST the client credentials and return the token response body.

        Raises:
            httpx.HTTPStatusError: The issuer answered with an error status.
            ExternalServiceError: The body is not a usable token response.
        """
        response = await self._client.post(self.token_url, data=self._form)
        response.raise_for_status()

        try:
            body = response.json()
        except ValueError as e:
            raise ExternalServiceError(ISSUER_SERVICE, detail="Token response is not JSON") from e

        access_token = body.get("access_token") if isinstance(body, dict) else None
        expires_in = body.get("expires_in") if isinstance(body, dict) else None
        if not access_token or not isinstance(expires_in, int) or expires_in <= 0:
            raise ExternalServiceError(ISSUER_SERVICE, detail="Token response is missing fields")
        return body

    async def close(self) -> None:
        """Close the HTTP client. Call on application shutdown."""
        if not self._client.is_closed:
            await self._client.aclose()


class TokenManager:
    """
    Hands out a valid access token, refreshing it at most once across instances.

    Usage:
        token = await token_manager.get_access_token()
        headers = {"Authorization": f"Bearer {token}"}
    """

    def __init__(
        self,
        cache: CacheStore,
        lock: DistributedLock,
        issuer: TokenIssuerClient,
        breaker: CircuitBreaker | None = None,
        retry_policy: RetryPolicy | None = None,
        *,
        cache_key: str = settings.oauth_token_cache_key,
        lock_key: str = settings.oauth_token_lock_key,
        lock_ttl: int = settings.oauth_token_lock_ttl,
        expiry_buffer: float = settings.oauth_token_expiry_buffer,
        wait_interval: float = settings.oauth_lock_wait_interval,
        max_wait: float = settings.oauth_lock_max_wait,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._cache = cache
        self._lock = lock
        self._issuer = issuer
        self._breaker = breaker
        self._retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.oauth_retry_attempts,
            base_delay=settings.oauth_retry_delay,
        )
        self._cache_key = cache_key
        self._lock_key = lock_key
        self._lock_ttl = lock_ttl
        self._expiry_buffer = expiry_buffer
        self._wait_interval = wait_interval
        self._max_wait = max_wait
        self._clock = clock
        self._wall_clock = wall_clock
        self._sleep = sleep
        self._refreshing = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_access_token(self) -> str:
        """
        Return a token that is valid for at least the expiry buffer.

        Raises:
            AuthorizationError: No token could be obtained.
        """
        try:
            token = await self._read_cached()
            if token and token.is_usable(self._wall_clock(), self._expiry_buffer):
                logger.debug("Using cached OAuth2 token")
                return token.access_token

            return await self._refresh_with_lock()
        except AuthorizationError:
            raise
        except Exception as e:
            logger.error("Failed to obtain OAuth2 access token", error=str(e), error_type=type(e).__name__)
            raise AuthorizationError() from e

    async def get_state(self) -> TokenState:
        """Classify the shared token for diagnostics."""
        if self._refreshing:
            return TokenState.REFRESHING
        return self._classify(await self._read_cached())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _classify(self, token: AccessToken | None) -> TokenState:
        if token is None or self._wall_clock() >= token.expires_at:
            return TokenState.NO_TOKEN
        if token.is_usable(self._wall_clock(), self._expiry_buffer):
            return TokenState.VALID
        return TokenState.EXPIRING_SOON

    def _usable(self, token: AccessToken | None) -> bool:
        return token is not None and token.is_usable(self._wall_clock(), self._expiry_buffer)

    async def _read_cached(self) -> AccessToken | None:
        raw = await self._cache.get(self._cache_key)
        if raw is None:
            return None
        try:
            return AccessToken.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Failed to parse cached token", error=str(e))
            return None

    async def _refresh_with_lock(self) -> str:
        give_up_at = self._clock() + self._max_wait

        while True:
            try:
                acquired = await self._lock.acquire(self._lock_key, self._lock_ttl)
            except TransientStoreError as e:
                raise AuthorizationError("Token refresh lock unavailable") from e

            if acquired:
                return await self._refresh_holding_lock()

            if self._clock() + self._wait_interval > give_up_at:
                raise AuthorizationError(
                    "Timed out waiting for token refresh",
                    waited_seconds=self._max_wait,
                )

            logger.info("Another instance is refreshing token, waiting", interval=self._wait_interval)
            await self._sleep(self._wait_interval)

            token = await self._read_cached()
            if self._usable(token):
                return token.access_token

    async def _refresh_holding_lock(self) -> str:
        acquired_at = self._clock()
        self._refreshing = True
        try:
            token = await self._read_cached()
            if self._usable(token):
                logger.info("Token refreshed by another instance during lock acquisition")
                return token.access_token

            logger.info("Refreshing OAuth2 token from issuer", token_url=self._issuer.token_url)
            deadline = acquired_at + self._lock_ttl * REFRESH_DEADLINE_FRACTION
            token = await self._fetch_new_token(deadline)
            await self._save(token)
            return token.access_token
        finally:
            self._refreshing = False
            try:
                await self._lock.release(self._lock_key)
            except TransientStoreError as e:
                logger.warning("Token lock release failed, waiting for TTL", error=str(e))

    async def _fetch_new_token(self, deadline: float) -> AccessToken:
        body = await execute_with_retry(
            self._issuer.request_token,
            self._retry_policy,
            breaker=self._breaker,
            deadline=deadline,
            service=ISSUER_SERVICE,
            sleep=self._sleep,
            clock=self._clock,
        )

        expires_in = int(body["expires_in"])
        token = AccessToken(
            access_token=body["access_token"],
            token_type=body.get("token_type", "Bearer"),
            expires_in=expires_in,
            expires_at=self._wall_clock() + expires_in,
        )
        logger.info("OAuth2 token fetched", expires_in=expires_in)
        return token

    async def _save(self, token: AccessToken) -> None:
        # Expire the entry before the token itself so readers refresh early
        ttl = max(token.expires_in - int(self._expiry_buffer), 0) or token.expires_in
        await self._cache.set(self._cache_key, token.to_json(), ttl)
