"""
Inbound webhook endpoint.
"""

from fastapi import APIRouter, Depends, Header, Request

from rest_api.dependencies import get_webhook_service
from rest_api.schemas import WebhookAck
from rest_api.services.webhooks import WebhookService


router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/events", response_model=WebhookAck)
async def receive_event(
    request: Request,
    x_webhook_signature: str | None = Header(default=None, alias="X-Webhook-Signature"),
    x_idempotency_key: str | None = Header(default=None, alias="X-Idempotency-Key"),
    service: WebhookService = Depends(get_webhook_service),
):
    """
    Receive a signed event.

    The signature is the hex HMAC-SHA256 of the raw body. Duplicates and
    failed processing are both answered with 200; only an invalid request
    gets a 4xx.
    """
    body = await request.body()
    return await service.handle(body, x_webhook_signature, x_idempotency_key)
