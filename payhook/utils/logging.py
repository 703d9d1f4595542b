"""
Structured JSON logging with correlation IDs.

One JSON object per line: timestamp, level, process, correlation_id, module,
message, plus any whitelisted extra fields.

The correlation ID lives in a contextvar. The HTTP middleware scopes it to a
request; the worker pool scopes it to one claimed event (the event's row id),
so every line about an event - claim, processing, resolution - can be joined.
"""
import json
import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Iterator, Optional

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Fields copied from `extra=` onto the JSON line; anything else is dropped
EXTRA_FIELDS = ("worker_id", "event_id", "webhook_id", "event_type", "state", "error")

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx")


def get_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()


def generate_correlation_id() -> str:
    """UUID4 hex, 32 chars."""
    return uuid.uuid4().hex


@contextmanager
def correlation_scope(cid: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation ID for the duration of the block, then restore the previous one."""
    cid = cid or generate_correlation_id()
    token = correlation_id_ctx.set(cid)
    try:
        yield cid
    finally:
        correlation_id_ctx.reset(token)


class StructuredJsonFormatter(logging.Formatter):
    def __init__(self, process_name: str = "payhook"):
        super().__init__()
        self.process_name = process_name

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "process": self.process_name,
            "correlation_id": get_correlation_id(),
            "module": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key))
            for key in EXTRA_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def configure_structured_logging(log_level: str = "INFO", process_name: str = "payhook") -> None:
    """
    Route all logging through a single JSON stdout handler.
    Called once by each entrypoint (server app factory, worker CLI).
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter(process_name))
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry error reporting if a DSN is configured. Never fatal."""
    if not dsn:
        return
    logger = logging.getLogger(__name__)
    try:
        import sentry_sdk
        sentry_sdk.init(dsn=dsn, traces_sample_rate=0.1, environment=environment)
    except Exception as e:
        logger.warning("Sentry initialization failed: %s", str(e))
        return
    logger.info("Sentry initialized (env=%s)", environment)
