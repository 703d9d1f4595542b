"""
In-memory event store.

A single lock guards the whole table, which gives claim_next the same
exclusivity guarantee as the database-backed store. The lock is a
threading.Lock and is never held across an await, so the store is safe to
share between event loops and threads.
"""
import threading
import uuid
from collections import deque
from datetime import datetime, timezone

from payhook.schemas.webhook_event import StoredEvent
from payhook.services.event_store import (
    DONE,
    FAILED,
    PENDING,
    PROCESSING,
    ConflictError,
    EmptyBacklogError,
    EventStore,
    NotFoundError,
)


class InMemoryEventStore(EventStore):
    def __init__(self, unique_event_ids: bool = False):
        self._lock = threading.Lock()
        self._events: dict[uuid.UUID, StoredEvent] = {}
        self._pending: deque[uuid.UUID] = deque()
        self._unique_event_ids = unique_event_ids

    async def create(self, event_id: str, event_type: str | None, payload: bytes) -> StoredEvent:
        now = datetime.now(timezone.utc)
        event = StoredEvent(
            id=uuid.uuid4(),
            event_id=event_id,
            type=event_type,
            payload=payload,
            state=PENDING,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            if self._unique_event_ids and any(e.event_id == event_id for e in self._events.values()):
                raise ConflictError(f"duplicate event_id {event_id}")
            self._events[event.id] = event
            self._pending.append(event.id)
        return event

    async def claim_next(self) -> StoredEvent:
        with self._lock:
            if not self._pending:
                raise EmptyBacklogError("no pending webhook events")
            claimed = self._events[self._pending.popleft()].model_copy(
                update={"state": PROCESSING, "updated_at": datetime.now(timezone.utc)}
            )
            self._events[claimed.id] = claimed
        return claimed

    async def mark_done(self, id: uuid.UUID) -> StoredEvent:
        return self._resolve(id, DONE, None)

    async def mark_failed(self, id: uuid.UUID, error_message: str) -> StoredEvent:
        return self._resolve(id, FAILED, error_message)

    def _resolve(self, id: uuid.UUID, state: str, error_message: str | None) -> StoredEvent:
        with self._lock:
            current = self._events.get(id)
            if current is None or current.state != PROCESSING:
                raise NotFoundError(f"webhook {id} is not processing")
            resolved = current.model_copy(
                update={
                    "state": state,
                    "last_error": error_message,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
            self._events[id] = resolved
        return resolved

    async def get(self, id: uuid.UUID) -> StoredEvent:
        with self._lock:
            event = self._events.get(id)
        if event is None:
            raise NotFoundError(f"webhook {id} not found")
        return event

    def count_by_state(self) -> dict[str, int]:
        counts = {PENDING: 0, PROCESSING: 0, DONE: 0, FAILED: 0}
        with self._lock:
            for event in self._events.values():
                counts[event.state] += 1
        return counts
