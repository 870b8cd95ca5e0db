"""
FastAPI dependencies and process-wide clients.

Services receive their collaborators through these functions, so tests can
swap any of them with `app.dependency_overrides`.
"""

from functools import lru_cache

import redis.asyncio as redis
from fastapi import Depends
from sqlalchemy.orm import Session

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.infrastructure.cache import CacheStore
from shared.infrastructure.db import get_db
from shared.infrastructure.redis import DistributedLock, get_redis_pool
from shared.resilience import RetryPolicy, get_breaker
from shared.security.request_signing import create_webhook_signer
from rest_api.services.auth import TokenIssuerClient, TokenManager
from rest_api.services.auth.token_manager import ISSUER_SERVICE
from rest_api.services.catalog import CursorCodec, ProductListingService
from rest_api.services.external import EXTERNAL_SERVICE, ExternalApiClient
from rest_api.services.webhooks import WebhookService

logger = get_logger(__name__)

# Built on first use, closed by close_clients() at shutdown
_token_manager: TokenManager | None = None
_issuer_client: TokenIssuerClient | None = None
_external_client: ExternalApiClient | None = None


async def get_redis() -> redis.Redis:
    return await get_redis_pool()


def get_cache_store(redis_client: redis.Redis = Depends(get_redis)) -> CacheStore:
    return CacheStore(redis_client)


@lru_cache
def get_cursor_codec() -> CursorCodec:
    return CursorCodec(settings.cursor_secret)


def get_product_service(
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache_store),
    codec: CursorCodec = Depends(get_cursor_codec),
) -> ProductListingService:
    return ProductListingService(db, cache, codec)


def get_token_manager(redis_client: redis.Redis = Depends(get_redis)) -> TokenManager:
    global _token_manager, _issuer_client
    if _token_manager is None:
        _issuer_client = TokenIssuerClient(
            token_url=settings.oauth_token_url,
            client_id=settings.oauth_client_id,
            client_secret=settings.oauth_client_secret,
            scope=settings.oauth_scope,
            timeout=settings.oauth_request_timeout,
        )
        _token_manager = TokenManager(
            cache=CacheStore(redis_client),
            lock=DistributedLock(redis_client),
            issuer=_issuer_client,
            breaker=get_breaker(ISSUER_SERVICE),
        )
    return _token_manager


def get_external_client(redis_client: redis.Redis = Depends(get_redis)) -> ExternalApiClient:
    global _external_client
    if _external_client is None:
        # Bearer token only when an issuer is configured
        token_manager = get_token_manager(redis_client) if settings.oauth_token_url else None
        _external_client = ExternalApiClient(
            breaker=get_breaker(EXTERNAL_SERVICE),
            retry_policy=RetryPolicy(
                max_attempts=settings.external_api_retry_attempts,
                base_delay=settings.external_api_retry_delay,
                total_timeout=settings.external_api_total_timeout,
            ),
            token_manager=token_manager,
        )
    return _external_client


def get_webhook_service(redis_client: redis.Redis = Depends(get_redis)) -> WebhookService:
    return WebhookService(redis_client, create_webhook_signer())


async def close_clients() -> None:
    """Close outbound HTTP clients. Call on application shutdown."""
    global _token_manager, _issuer_client, _external_client
    if _external_client is not None:
        await _external_client.close()
        _external_client = None
    if _issuer_client is not None:
        await _issuer_client.close()
        _issuer_client = None
    _token_manager = None
    logger.info("Outbound HTTP clients closed")
