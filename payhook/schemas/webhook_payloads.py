"""
Webhook payload schemas - raw input to the ingestion endpoint and its responses.
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class PaymentWebhookPayload(BaseModel):
    """Inbound payment provider webhook."""
    model_config = ConfigDict(str_strip_whitespace=True)

    event_id: str = Field(min_length=1)
    type: str = Field(min_length=1)  # payment.completed, payment.pending, ...
    amount: str = Field(min_length=1)  # minor units as a decimal string, e.g. "5000"
    currency: str = Field(min_length=1)  # ISO 4217, e.g. "NGN"
    occurred_at: datetime


class WebhookAckResponse(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    code: int
    message: str
