"""
Client for the external JSON API (JSONPlaceholder in development).

Every request goes through the shared circuit breaker and the retrying
caller. When OAuth is configured the managed bearer token is attached.
"""

from typing import Any

import httpx

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.resilience import CircuitBreaker, RetryPolicy, execute_with_retry
from shared.utils.exceptions import ExternalServiceError, NotFoundError
from rest_api.services.auth import TokenManager

logger = get_logger(__name__)

EXTERNAL_SERVICE = "external-api"


class ExternalApiClient:
    """
    HTTP client with retry and circuit breaker.

    Usage:
        client = ExternalApiClient(breaker=get_breaker("external-api"))
        user = await client.fetch_user("1")
    """

    def __init__(
        self,
        breaker: CircuitBreaker,
        retry_policy: RetryPolicy | None = None,
        token_manager: TokenManager | None = None,
        base_url: str = settings.external_api_base_url,
        timeout: float = settings.external_api_timeout,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._breaker = breaker
        self._retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.external_api_retry_attempts,
            base_delay=settings.external_api_retry_delay,
            total_timeout=settings.external_api_total_timeout,
        )
        self._token_manager = token_manager
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    async def _headers(self) -> dict[str, str]:
        if self._token_manager is None:
            return {}
        token = await self._token_manager.get_access_token()
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        # The token is resolved once per logical call, outside the retry loop
        headers = await self._headers()

        async def send() -> Any:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
            response.raise_for_status()
            return response.json()

        try:
            return await execute_with_retry(
                send,
                self._retry_policy,
                breaker=self._breaker,
                service=EXTERNAL_SERVICE,
            )
        except httpx.HTTPStatusError as e:
            # Only 4xx get here; 5xx end as UpstreamUnavailableError
            code = e.response.status_code
            if code == 404:
                raise NotFoundError("External resource", path) from e
            raise ExternalServiceError(
                EXTERNAL_SERVICE,
                detail=f"External API rejected the request with status {code}",
                status=code,
            ) from e

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, data: Any = None) -> Any:
        return await self._request("POST", path, json=data)

    async def fetch_user(self, user_id: str) -> Any:
        """Fetch one user."""
        logger.info("Fetching user from external API", user_id=user_id)
        return await self.get(f"/users/{user_id}")

    async def fetch_posts(self, limit: int = 10) -> Any:
        """Fetch the first `limit` posts."""
        logger.info("Fetching posts from external API", limit=limit)
        return await self.get("/posts", params={"_limit": limit})

    async def create_post(self, post: dict[str, Any]) -> Any:
        logger.info("Creating post in external API", title=post.get("title"))
        return await self.post("/posts", post)

    async def close(self) -> None:
        """Close the HTTP client. Call on application shutdown."""
        if not self._client.is_closed:
            await self._client.aclose()
