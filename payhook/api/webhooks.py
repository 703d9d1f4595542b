"""
Webhook ingestion endpoint - accepts payment webhooks and records them as pending.

Responses:
- 400 {"code": 400, "message": ...} for a malformed body or missing fields
- 500 {"code": 500, "message": ...} if the event could not be stored
- 200 {"ok": true} once the event is durably recorded

Processing outcome and queue depth are never reported here; ingestion and
processing are decoupled.
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from payhook.schemas.webhook_payloads import (
    ErrorResponse,
    PaymentWebhookPayload,
    WebhookAckResponse,
)
from payhook.services.event_store import StoreError
from payhook.services.webhooks import WebhookService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])

_MISSING_FIELD_ERRORS = {"missing", "string_too_short"}


def get_webhook_service(request: Request) -> WebhookService:
    """FastAPI dependency - builds the service around the app's shared store."""
    return WebhookService(request.app.state.store)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(code=status_code, message=message).model_dump(),
    )


def _is_missing_fields(error: ValidationError) -> bool:
    # An explicit null counts as missing
    return all(
        e["type"] in _MISSING_FIELD_ERRORS or e.get("input", "") is None
        for e in error.errors()
    )


@router.post(
    "/payments",
    response_model=WebhookAckResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def payment_webhook(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
):
    """Payment provider webhook."""
    try:
        body = await request.json()
    except ValueError:
        return _error(400, "Invalid request body")
    if not isinstance(body, dict):
        return _error(400, "Invalid request body")

    try:
        payload = PaymentWebhookPayload.model_validate(body)
    except ValidationError as e:
        if _is_missing_fields(e):
            return _error(400, "Missing required fields")
        return _error(400, "Invalid request body")

    try:
        await service.process_payment_webhook(payload)
    except StoreError as e:
        logger.error(
            "Failed to store payment webhook %s: %s", payload.event_id, str(e),
            extra={"event_id": payload.event_id, "error": str(e)},
        )
        return _error(500, "Failed to process webhook")

    return WebhookAckResponse(ok=True)
