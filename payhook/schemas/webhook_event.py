"""
Read-side snapshot of a webhook event as returned by every EventStore.
"""
import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class StoredEvent(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    event_id: str
    type: Optional[str] = None
    payload: bytes
    state: str
    last_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
