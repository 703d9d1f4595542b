"""
Test configuration and fixtures.
Uses the in-memory store for worker tests and a file-backed SQLite database
(aiosqlite) for the SQL store. Redis is never contacted.
"""
import os

# Settings are read at import time by payhook.main; give them a harmless default.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "")

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from payhook.database import build_session_factory, ensure_schema
from payhook.services.memory_store import InMemoryEventStore
from payhook.services.sql_store import SqlEventStore


@pytest.fixture
def memory_store():
    """Fresh in-memory event store."""
    return InMemoryEventStore()


async def _make_sql_store(tmp_path) -> SqlEventStore:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payhook.db'}")
    await ensure_schema(engine)
    return SqlEventStore(build_session_factory(engine), engine=engine)


@pytest.fixture
async def sql_store(tmp_path):
    """SQL store over a throwaway SQLite file."""
    store = await _make_sql_store(tmp_path)
    yield store
    await store.close()


@pytest.fixture(params=["memory", "sql"])
async def store(request, tmp_path):
    """Each EventStore implementation, for contract tests."""
    if request.param == "memory":
        store = InMemoryEventStore()
    else:
        store = await _make_sql_store(tmp_path)
    yield store
    await store.close()


@pytest.fixture
def payment_body():
    """A valid payment webhook request body (evt_1, 5000 NGN)."""
    return {
        "event_id": "evt_1",
        "type": "payment.completed",
        "amount": "5000",
        "currency": "NGN",
        "occurred_at": "2026-01-10T12:00:00Z",
    }
