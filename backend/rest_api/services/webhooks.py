"""
Inbound webhook handling.

Senders retry until they get a 2xx, so every delivery is acknowledged with
200 unless the request itself is invalid. Duplicates are detected with an
atomic SET NX claim on the idempotency key. A delivery whose processing
fails gives its claim back, so the sender's next retry is processed.
"""

import json
from collections.abc import Awaitable, Callable
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.infrastructure.redis.constants import (
    WEBHOOK_IDEMPOTENCY_TTL,
    get_webhook_idempotency_key,
)
from shared.security.request_signing import RequestSigner
from shared.utils.exceptions import ValidationError

logger = get_logger(__name__)

EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


class WebhookService:
    """
    Verify, deduplicate and dispatch webhook events.

    Handlers are registered per event type; events without a handler are
    logged and acknowledged.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        signer: RequestSigner,
        idempotency_ttl: int = WEBHOOK_IDEMPOTENCY_TTL,
        key_prefix: str | None = None,
    ):
        self._redis = redis_client
        self._signer = signer
        self._ttl = idempotency_ttl
        self._prefix = settings.redis_key_prefix if key_prefix is None else key_prefix
        self._handlers: dict[str, EventHandler] = {}

    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type] = handler

    def _claim_key(self, idempotency_key: str) -> str:
        return f"{self._prefix}{get_webhook_idempotency_key(idempotency_key)}"

    async def _claim(self, idempotency_key: str) -> bool:
        """
        Record the key as seen. Returns False when it already was.

        If Redis is unreachable the event is processed anyway: a possible
        duplicate beats a lost event.
        """
        key = self._claim_key(idempotency_key)
        try:
            return bool(await self._redis.set(key, "1", nx=True, ex=self._ttl))
        except (RedisError, OSError) as e:
            logger.warning("Idempotency claim failed, processing anyway", key=key, error=str(e))
            return True

    async def _unclaim(self, idempotency_key: str) -> None:
        key = self._claim_key(idempotency_key)
        try:
            await self._redis.delete(key)
        except (RedisError, OSError) as e:
            logger.warning("Failed to release idempotency claim", key=key, error=str(e))

    async def _process(self, event: dict[str, Any]) -> None:
        event_type = event.get("type")
        handler = self._handlers.get(event_type) if isinstance(event_type, str) else None
        if handler is None:
            logger.info("No handler for webhook event type", event_type=event_type)
            return
        await handler(event)

    async def handle(
        self,
        body: bytes,
        signature: str | None,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        """
        Handle one delivery and return the response document.

        Raises:
            ValidationError: Bad signature, unparseable body or no idempotency key.
        """
        if not self._signer.verify(body, signature):
            raise ValidationError("Invalid webhook signature")

        try:
            event = json.loads(body)
        except ValueError as e:
            raise ValidationError("Webhook body is not valid JSON") from e
        if not isinstance(event, dict):
            raise ValidationError("Webhook body must be a JSON object")

        key = idempotency_key or event.get("id")
        if not key:
            raise ValidationError("Missing idempotency key")
        key = str(key)

        if not await self._claim(key):
            logger.info("Webhook already processed", idempotency_key=key)
            return {"success": True, "message": "Event already processed"}

        logger.info("Processing webhook event", idempotency_key=key, event_type=event.get("type"))
        try:
            await self._process(event)
        except Exception as e:
            await self._unclaim(key)
            logger.error(
                "Error processing webhook",
                idempotency_key=key,
                error=str(e),
                exc_info=True,
            )
            return {"success": False, "message": "Webhook received but processing failed"}

        return {"success": True, "message": "Webhook processed successfully"}
