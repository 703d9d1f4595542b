"""
WebhookEvent model - durable backlog of inbound payment webhooks.
Each row moves pending -> processing -> done | failed exactly once.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, DateTime, LargeBinary, Index, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from payhook.database import Base


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    # Caller-supplied business identifier (not unique at this layer)
    event_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    type: Mapped[Optional[str]] = mapped_column(
        String(100)
    )  # payment.completed, payment.pending, payment.failed, payment.refunded

    payload: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    state: Mapped[str] = mapped_column(
        String(20), default="pending", nullable=False
    )  # pending, processing, done, failed

    last_error: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    __table_args__ = (
        Index("ix_webhook_events_claim", "state", "created_at"),
        CheckConstraint(
            "state IN ('pending', 'processing', 'done', 'failed')",
            name="ck_webhook_events_state",
        ),
    )

    def __repr__(self) -> str:
        return f"<WebhookEvent {self.event_id} ({self.state})>"
