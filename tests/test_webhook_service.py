"""
Tests for payhook/services/webhooks.py - recording validated payment webhooks.
"""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from payhook.schemas.webhook_payloads import PaymentWebhookPayload
from payhook.services.event_store import PENDING, StorageError
from payhook.services.webhooks import WebhookService


class TestProcessPaymentWebhook:
    async def test_records_pending_event(self, memory_store, payment_body):
        service = WebhookService(memory_store)

        event = await service.process_payment_webhook(PaymentWebhookPayload.model_validate(payment_body))

        assert event.state == PENDING
        assert event.event_id == "evt_1"
        assert event.type == "payment.completed"
        assert (await memory_store.get(event.id)).state == PENDING

    async def test_payload_is_serialized_payload_json(self, memory_store, payment_body):
        service = WebhookService(memory_store)
        payment_body["currency"] = "  NGN  "

        event = await service.process_payment_webhook(PaymentWebhookPayload.model_validate(payment_body))

        stored = json.loads(event.payload)
        assert stored["currency"] == "NGN"  # stripped on validation
        assert stored["amount"] == "5000"
        assert stored["type"] == "payment.completed"
        assert stored["occurred_at"].startswith("2026-01-10T12:00:00")

    async def test_store_errors_propagate(self, payment_body):
        store = MagicMock()
        store.create = AsyncMock(side_effect=StorageError("disk full"))
        service = WebhookService(store)

        with pytest.raises(StorageError, match="disk full"):
            await service.process_payment_webhook(PaymentWebhookPayload.model_validate(payment_body))

    async def test_passes_event_identity_to_store(self, payment_body):
        store = MagicMock()
        store.create = AsyncMock()
        service = WebhookService(store)

        await service.process_payment_webhook(PaymentWebhookPayload.model_validate(payment_body))

        kwargs = store.create.await_args.kwargs
        assert kwargs["event_id"] == "evt_1"
        assert kwargs["event_type"] == "payment.completed"
        assert isinstance(kwargs["payload"], bytes)
