"""
Tests for signed, idempotent webhook delivery.
"""

import json

import pytest

from rest_api.dependencies import get_webhook_service
from rest_api.main import app
from rest_api.services.webhooks import WebhookService
from shared.security.request_signing import RequestSigner
from shared.utils.exceptions import ValidationError

SECRET = "test-webhook-secret"
URL = "/api/v1/webhooks/events"


def signed(event: dict) -> tuple[bytes, str]:
    body = json.dumps(event).encode()
    return body, RequestSigner(SECRET).sign(body)


@pytest.fixture
def service(fake_redis):
    return WebhookService(fake_redis, RequestSigner(SECRET), idempotency_ttl=3600)


class TestRequestSigner:

    def test_sign_and_verify(self):
        signer = RequestSigner(SECRET)
        body = b'{"id":"evt-1"}'
        assert signer.verify(body, signer.sign(body))
        assert signer.verify(body, signer.sign(body).upper())

    def test_modified_body_fails(self):
        signer = RequestSigner(SECRET)
        assert not signer.verify(b'{"id":"evt-2"}', signer.sign(b'{"id":"evt-1"}'))

    def test_missing_secret_or_signature_fails(self):
        assert not RequestSigner("").verify(b"{}", "abc")
        assert not RequestSigner(SECRET).verify(b"{}", None)
        assert not RequestSigner("").is_configured


class TestWebhookService:

    @pytest.mark.asyncio
    async def test_dispatches_to_registered_handler(self, service, fake_redis):
        seen = []

        async def on_order(event):
            seen.append(event["id"])

        service.register_handler("order.created", on_order)
        body, signature = signed({"id": "evt-1", "type": "order.created"})

        result = await service.handle(body, signature, "key-1")
        assert result == {"success": True, "message": "Webhook processed successfully"}
        assert seen == ["evt-1"]
        assert 0 < fake_redis.ttl_of("app:webhook:idempotency:key-1") <= 3600

    @pytest.mark.asyncio
    async def test_duplicate_delivery_is_not_processed_twice(self, service):
        seen = []

        async def on_order(event):
            seen.append(event["id"])

        service.register_handler("order.created", on_order)
        body, signature = signed({"id": "evt-1", "type": "order.created"})

        await service.handle(body, signature, "key-1")
        result = await service.handle(body, signature, "key-1")
        assert result == {"success": True, "message": "Event already processed"}
        assert seen == ["evt-1"]

    @pytest.mark.asyncio
    async def test_event_id_is_the_fallback_key(self, service, fake_redis):
        body, signature = signed({"id": "evt-9", "type": "unknown"})
        await service.handle(body, signature)
        assert "app:webhook:idempotency:evt-9" in fake_redis.keys()

    @pytest.mark.asyncio
    async def test_failed_processing_releases_the_claim(self, service, fake_redis):
        attempts = 0

        async def flaky(event):
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RuntimeError("downstream unavailable")

        service.register_handler("order.created", flaky)
        body, signature = signed({"id": "evt-1", "type": "order.created"})

        first = await service.handle(body, signature, "key-1")
        assert first == {"success": False, "message": "Webhook received but processing failed"}
        assert "app:webhook:idempotency:key-1" not in fake_redis.keys()

        second = await service.handle(body, signature, "key-1")
        assert second["message"] == "Webhook processed successfully"
        assert attempts == 2

    @pytest.mark.asyncio
    async def test_unreachable_store_still_processes(self, service, fake_redis):
        seen = []

        async def on_order(event):
            seen.append(event["id"])

        service.register_handler("order.created", on_order)
        fake_redis.fail = True
        body, signature = signed({"id": "evt-1", "type": "order.created"})

        result = await service.handle(body, signature, "key-1")
        assert result["success"] is True
        assert seen == ["evt-1"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body,message",
        [
            (b"not json", "not valid JSON"),
            (b"[1, 2]", "JSON object"),
            (b'{"type": "x"}', "Missing idempotency key"),
        ],
    )
    async def test_invalid_requests(self, service, body, message):
        with pytest.raises(ValidationError, match=message):
            await service.handle(body, RequestSigner(SECRET).sign(body))

    @pytest.mark.asyncio
    async def test_bad_signature(self, service):
        body, _ = signed({"id": "evt-1"})
        with pytest.raises(ValidationError, match="signature"):
            await service.handle(body, "0" * 64, "key-1")


class TestWebhookEndpoint:

    def test_accepts_signed_event(self, client):
        body, signature = signed({"id": "evt-1", "type": "ping"})
        response = client.post(
            URL,
            content=body,
            headers={"X-Webhook-Signature": signature, "X-Idempotency-Key": "key-1"},
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Webhook processed successfully"}

    def test_duplicate_is_acknowledged(self, client):
        body, signature = signed({"id": "evt-1", "type": "ping"})
        headers = {"X-Webhook-Signature": signature, "X-Idempotency-Key": "key-1"}
        client.post(URL, content=body, headers=headers)
        response = client.post(URL, content=body, headers=headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Event already processed"

    def test_rejects_bad_signature(self, client):
        body, _ = signed({"id": "evt-1"})
        response = client.post(URL, content=body, headers={"X-Webhook-Signature": "bad"})
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid webhook signature"}

    def test_rejects_missing_signature(self, client):
        body, _ = signed({"id": "evt-1"})
        response = client.post(URL, content=body)
        assert response.status_code == 400

    def test_processing_failure_is_still_200(self, client, fake_redis):
        service = WebhookService(fake_redis, RequestSigner(SECRET))

        async def broken(event):
            raise RuntimeError("boom")

        service.register_handler("order.created", broken)
        app.dependency_overrides[get_webhook_service] = lambda: service

        body, signature = signed({"id": "evt-1", "type": "order.created"})
        response = client.post(URL, content=body, headers={"X-Webhook-Signature": signature})
        assert response.status_code == 200
        assert response.json()["success"] is False
