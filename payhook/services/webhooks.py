"""
Webhook ingestion service - persists validated payment webhooks as pending events.
Processing happens later in the worker pool; ingestion never waits on it.
"""
import logging

from payhook.schemas.webhook_event import StoredEvent
from payhook.schemas.webhook_payloads import PaymentWebhookPayload
from payhook.services.event_store import EventStore

logger = logging.getLogger(__name__)


class WebhookService:
    def __init__(self, store: EventStore):
        self._store = store

    async def process_payment_webhook(self, payload: PaymentWebhookPayload) -> StoredEvent:
        """
        Serialize the payload and record it in the backlog.
        Store errors propagate unchanged so the caller can map them to a 500.
        """
        logger.info(
            "Recording payment webhook %s (%s)",
            payload.event_id, payload.type,
            extra={"event_id": payload.event_id, "event_type": payload.type},
        )

        body = payload.model_dump_json().encode("utf-8")
        event = await self._store.create(
            event_id=payload.event_id,
            event_type=payload.type,
            payload=body,
        )

        logger.debug(
            "Payment webhook stored as %s", str(event.id)[:8],
            extra={"event_id": event.event_id, "webhook_id": str(event.id)},
        )
        return event
