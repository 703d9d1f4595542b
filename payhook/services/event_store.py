"""
Event store contract - the claim/resolve protocol every backend implements.

State machine:
    pending -> processing -> done | failed

- create() is the only way in, and always lands in "pending".
- claim_next() is the single point of mutual exclusion: it moves exactly one
  pending event to "processing" and hands it to exactly one caller.
- mark_done() / mark_failed() only act on events currently "processing", so
  done and failed can never be overwritten.

Events orphaned in "processing" by a crash between claim and resolve are not
reclaimed automatically.
"""
import uuid
from abc import ABC, abstractmethod

from payhook.schemas.webhook_event import StoredEvent

PENDING = "pending"
PROCESSING = "processing"
DONE = "done"
FAILED = "failed"

ALL_STATES = (PENDING, PROCESSING, DONE, FAILED)
TERMINAL_STATES = frozenset({DONE, FAILED})


class StoreError(Exception):
    """Base class for all event store errors."""
    pass


class EmptyBacklogError(StoreError):
    """No pending event is available to claim. Expected, not a fault."""
    pass


class NotFoundError(StoreError):
    """The event does not exist or is not in the state the operation requires."""
    pass


class ConflictError(StoreError):
    """The store rejected a create because of a uniqueness constraint."""
    pass


class StorageError(StoreError):
    """I/O or connectivity failure in the underlying storage."""
    pass


class EventStore(ABC):
    """Durable record of webhook events and their processing state."""

    @abstractmethod
    async def create(self, event_id: str, event_type: str | None, payload: bytes) -> StoredEvent:
        """Persist a new event in the pending state."""

    @abstractmethod
    async def claim_next(self) -> StoredEvent:
        """
        Atomically move the oldest pending event to processing and return it.
        Raises EmptyBacklogError if nothing is pending.
        """

    @abstractmethod
    async def mark_done(self, id: uuid.UUID) -> StoredEvent:
        """processing -> done. Raises NotFoundError if not processing."""

    @abstractmethod
    async def mark_failed(self, id: uuid.UUID, error_message: str) -> StoredEvent:
        """processing -> failed, recording error_message. Raises NotFoundError if not processing."""

    @abstractmethod
    async def get(self, id: uuid.UUID) -> StoredEvent:
        """Fetch a single event. Raises NotFoundError if unknown."""

    async def ping(self) -> None:
        """Raise StorageError if the backend is unreachable."""
        return None

    async def close(self) -> None:
        """Release any resources held by the store."""
        return None
