"""
Tests for payhook/services/memory_store.py - claim exclusivity under real concurrency.
"""
import asyncio
import threading

import pytest

from payhook.services.event_store import PROCESSING, ConflictError, EmptyBacklogError
from payhook.services.memory_store import InMemoryEventStore


async def _fill(store, count: int) -> list:
    return [await store.create(f"evt_{i}", "payment.completed", b"{}") for i in range(count)]


async def _claim_until_empty(store) -> list:
    claimed = []
    while True:
        try:
            claimed.append(await store.claim_next())
        except EmptyBacklogError:
            return claimed
        await asyncio.sleep(0)


class TestExclusivity:
    async def test_concurrent_tasks_never_share_an_event(self, memory_store):
        created = await _fill(memory_store, 200)

        results = await asyncio.gather(*(_claim_until_empty(memory_store) for _ in range(8)))

        claimed_ids = [event.id for batch in results for event in batch]
        assert len(claimed_ids) == len(set(claimed_ids))
        assert set(claimed_ids) == {e.id for e in created}

    async def test_concurrent_threads_never_share_an_event(self, memory_store):
        created = await _fill(memory_store, 500)
        results: list[list] = []
        results_lock = threading.Lock()

        def _thread_worker():
            batch = asyncio.run(_claim_until_empty(memory_store))
            with results_lock:
                results.append(batch)

        threads = [threading.Thread(target=_thread_worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        claimed_ids = [event.id for batch in results for event in batch]
        assert len(claimed_ids) == 500
        assert len(set(claimed_ids)) == 500
        assert set(claimed_ids) == {e.id for e in created}
        assert memory_store.count_by_state()[PROCESSING] == 500

    async def test_race_for_single_event(self, memory_store):
        """Two workers race for a backlog of one: one wins, the other sees empty."""
        created = await memory_store.create("evt_1", "payment.completed", b"{}")

        results = await asyncio.gather(
            memory_store.claim_next(),
            memory_store.claim_next(),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert winners[0].id == created.id
        assert len(losers) == 1
        assert isinstance(losers[0], EmptyBacklogError)


class TestUniqueEventIds:
    async def test_duplicates_allowed_by_default(self, memory_store):
        await memory_store.create("evt_1", "payment.completed", b"{}")
        await memory_store.create("evt_1", "payment.completed", b"{}")

        assert sum(memory_store.count_by_state().values()) == 2

    async def test_duplicate_rejected_when_enforced(self):
        store = InMemoryEventStore(unique_event_ids=True)
        await store.create("evt_1", "payment.completed", b"{}")

        with pytest.raises(ConflictError):
            await store.create("evt_1", "payment.completed", b"{}")

        assert sum(store.count_by_state().values()) == 1


class TestCountByState:
    async def test_counts_every_state(self, memory_store):
        await _fill(memory_store, 4)
        first = await memory_store.claim_next()
        second = await memory_store.claim_next()
        await memory_store.claim_next()
        await memory_store.mark_done(first.id)
        await memory_store.mark_failed(second.id, "boom")

        assert memory_store.count_by_state() == {
            "pending": 1,
            "processing": 1,
            "done": 1,
            "failed": 1,
        }
