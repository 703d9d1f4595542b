"""
SQL-backed event store (async SQLAlchemy).

Claims use a single UPDATE over a FOR UPDATE SKIP LOCKED subquery, so
concurrent workers - in this process or any other sharing the database - skip
rows another transaction is already claiming instead of blocking on them. The
extra `state = 'pending'` guard on the UPDATE keeps it a compare-and-set on
engines that ignore SKIP LOCKED (SQLite).
"""
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from payhook.models.webhook_event import WebhookEvent
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
    StorageError,
    StoreError,
)

logger = logging.getLogger(__name__)


@contextmanager
def _storage_errors(operation: str):
    """Translate driver/ORM exceptions into the store error taxonomy."""
    try:
        yield
    except StoreError:
        raise
    except IntegrityError as e:
        raise ConflictError(f"{operation}: {e.orig}") from e
    except (SQLAlchemyError, OSError) as e:
        raise StorageError(f"{operation}: {e}") from e


class SqlEventStore(EventStore):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: Optional[AsyncEngine] = None,
    ):
        self._session_factory = session_factory
        self._engine = engine

    async def create(self, event_id: str, event_type: str | None, payload: bytes) -> StoredEvent:
        event = WebhookEvent(
            event_id=event_id,
            type=event_type,
            payload=payload,
            state=PENDING,
        )
        with _storage_errors("create webhook"):
            async with self._session_factory() as db:
                db.add(event)
                await db.commit()
                return StoredEvent.model_validate(event)

    async def claim_next(self) -> StoredEvent:
        next_pending = (
            select(WebhookEvent.id)
            .where(WebhookEvent.state == PENDING)
            .order_by(WebhookEvent.created_at)
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(WebhookEvent)
            .where(WebhookEvent.id == next_pending, WebhookEvent.state == PENDING)
            .values(state=PROCESSING, updated_at=datetime.now(timezone.utc))
            .returning(WebhookEvent)
            .execution_options(synchronize_session=False)
        )
        with _storage_errors("claim next webhook"):
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                event = result.scalar_one_or_none()
                if event is None:
                    await db.rollback()
                    raise EmptyBacklogError("no pending webhook events")
                claimed = StoredEvent.model_validate(event)
                await db.commit()
                return claimed

    async def mark_done(self, id: uuid.UUID) -> StoredEvent:
        return await self._resolve(id, DONE, None)

    async def mark_failed(self, id: uuid.UUID, error_message: str) -> StoredEvent:
        return await self._resolve(id, FAILED, error_message)

    async def _resolve(self, id: uuid.UUID, state: str, error_message: str | None) -> StoredEvent:
        stmt = (
            update(WebhookEvent)
            .where(WebhookEvent.id == id, WebhookEvent.state == PROCESSING)
            .values(
                state=state,
                last_error=error_message,
                updated_at=datetime.now(timezone.utc),
            )
            .returning(WebhookEvent)
            .execution_options(synchronize_session=False)
        )
        with _storage_errors(f"mark webhook {state}"):
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                event = result.scalar_one_or_none()
                if event is None:
                    await db.rollback()
                    raise NotFoundError(f"webhook {id} is not processing")
                resolved = StoredEvent.model_validate(event)
                await db.commit()
                return resolved

    async def get(self, id: uuid.UUID) -> StoredEvent:
        with _storage_errors("get webhook"):
            async with self._session_factory() as db:
                event = await db.get(WebhookEvent, id)
                if event is None:
                    raise NotFoundError(f"webhook {id} not found")
                return StoredEvent.model_validate(event)

    async def ping(self) -> None:
        with _storage_errors("ping database"):
            async with self._session_factory() as db:
                await db.execute(text("SELECT 1"))

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database engine disposed")
