"""
Business processing for claimed webhook events.

The payload is decoded leniently (an unparsable body is treated as empty), then
the event is routed on its type to a registered handler. Types without a
handler run the placeholder work: a fixed, interruptible processing delay that
a real deployment replaces with the side-effecting operation.
"""
import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

from payhook.config import DEFAULT_PROCESS_DELAY_SECONDS
from payhook.schemas.webhook_event import StoredEvent
from payhook.utils.shutdown import wait_for_stop

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "processing cancelled by shutdown"

EventHandler = Callable[[StoredEvent, dict], Awaitable[None]]


class ProcessingError(Exception):
    """Raised by business logic when a claimed event cannot be processed."""
    pass


class ProcessingCancelledError(ProcessingError):
    """Raised when shutdown interrupts processing of a claimed event."""
    pass


def decode_payload(raw: bytes | None) -> dict:
    """Decode a JSON object payload, returning {} for empty or unparsable bodies."""
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except ValueError as e:
        logger.debug("Unparsable webhook payload, treating as empty: %s", str(e))
        return {}
    if not isinstance(decoded, dict):
        logger.debug("Webhook payload is %s, not an object; treating as empty", type(decoded).__name__)
        return {}
    return decoded


class EventProcessor:
    def __init__(
        self,
        process_delay: float = DEFAULT_PROCESS_DELAY_SECONDS,
        handlers: Optional[dict[str, EventHandler]] = None,
    ):
        self.process_delay = process_delay
        self._handlers = dict(handlers or {})

    def register(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type] = handler

    async def process(self, event: StoredEvent, stop_event: asyncio.Event) -> None:
        """Run business processing for one claimed event. Raises on failure."""
        payload = decode_payload(event.payload)

        logger.info(
            "Processing webhook %s (%s)", event.event_id, event.type,
            extra={"event_id": event.event_id, "event_type": event.type, "webhook_id": str(event.id)},
        )

        handler = self._handlers.get(event.type or "")
        if handler is not None:
            await handler(event, payload)
            return

        await self._simulate_work(stop_event)

    async def _simulate_work(self, stop_event: asyncio.Event) -> None:
        if await wait_for_stop(stop_event, self.process_delay):
            raise ProcessingCancelledError(CANCELLED_MESSAGE)
