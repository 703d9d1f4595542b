"""
Worker pool - N competing workers draining the webhook backlog.

Each worker loops: claim one pending event -> process it -> resolve it to
done/failed. All workers share one store and one stop signal; the store's
claim_next() is the only mutual exclusion between them. Worker IDs exist for
logging only - there is no partitioning of work.

Failure policy:
- empty backlog: wait poll_interval (or until stop) and try again
- claim error: fatal for that worker; the pool stops the rest and re-raises
- processing / resolution error: contained to the event, logged, loop continues

Run standalone:
    python -m payhook.workers.worker_pool --workers 5 --poll-interval 2s --process-delay 100ms
"""
import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Optional

from payhook.config import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PROCESS_DELAY_SECONDS,
    DEFAULT_WORKER_COUNT,
    get_settings,
    parse_duration,
)
from payhook.schemas.webhook_event import StoredEvent
from payhook.services.event_store import DONE, FAILED, EmptyBacklogError, EventStore
from payhook.utils.cache import write_heartbeat
from payhook.utils.logging import correlation_scope
from payhook.utils.shutdown import install_stop_handlers, wait_for_stop
from payhook.workers.event_processor import EventProcessor

logger = logging.getLogger(__name__)

HEARTBEAT_NAME = "worker_pool"
HEARTBEAT_INTERVAL_SECONDS = 30


@dataclass
class WorkerSummary:
    """What a worker did before it stopped."""
    worker_id: int
    claimed: int = 0
    done: int = 0
    failed: int = 0
    orphaned: int = 0
    cancelled: bool = False


class Worker:
    def __init__(
        self,
        worker_id: int,
        store: EventStore,
        processor: EventProcessor,
        stop_event: asyncio.Event,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ):
        self.worker_id = worker_id
        self._store = store
        self._processor = processor
        self._stop = stop_event
        self._poll_interval = poll_interval

    async def run(self) -> WorkerSummary:
        """Claim and resolve events until the stop signal is set."""
        summary = WorkerSummary(worker_id=self.worker_id)
        log_extra = {"worker_id": self.worker_id}
        logger.debug("Worker %d started", self.worker_id, extra=log_extra)

        while not self._stop.is_set():
            try:
                event = await self._store.claim_next()
            except EmptyBacklogError:
                logger.debug("Backlog empty, waiting %.3fs", self._poll_interval, extra=log_extra)
                await wait_for_stop(self._stop, self._poll_interval)
                continue
            except Exception as e:
                logger.error(
                    "Worker %d claim failed, stopping: %s", self.worker_id, str(e),
                    extra={**log_extra, "error": str(e)},
                )
                raise

            summary.claimed += 1
            with correlation_scope(str(event.id)):
                logger.debug(
                    "Claimed webhook %s", event.event_id,
                    extra={**log_extra, "event_id": event.event_id, "webhook_id": str(event.id)},
                )
                outcome = await self._handle(event)

            if outcome == DONE:
                summary.done += 1
            elif outcome == FAILED:
                summary.failed += 1
            else:
                summary.orphaned += 1

        summary.cancelled = True
        logger.debug(
            "Worker %d stopped (claimed=%d done=%d failed=%d)",
            self.worker_id, summary.claimed, summary.done, summary.failed,
            extra=log_extra,
        )
        return summary

    async def _handle(self, event: StoredEvent) -> Optional[str]:
        """
        Process one claimed event and drive it to a terminal state.
        Returns the resulting state, or None if it was left in processing.
        """
        extra = {"worker_id": self.worker_id, "event_id": event.event_id, "webhook_id": str(event.id)}

        try:
            await self._processor.process(event, self._stop)
        except Exception as e:
            logger.warning(
                "Processing failed for %s: %s", event.event_id, str(e),
                extra={**extra, "error": str(e)},
            )
            return await self._resolve_failed(event, str(e))

        try:
            await self._store.mark_done(event.id)
        except Exception as e:
            logger.warning(
                "Marking %s done failed: %s", event.event_id, str(e),
                extra={**extra, "error": str(e)},
            )
            return await self._resolve_failed(event, str(e))

        logger.info("Webhook %s marked done", event.event_id, extra={**extra, "state": DONE})
        return DONE

    async def _resolve_failed(self, event: StoredEvent, error_message: str) -> Optional[str]:
        extra = {"worker_id": self.worker_id, "event_id": event.event_id, "webhook_id": str(event.id)}
        try:
            await self._store.mark_failed(event.id, error_message)
        except Exception as e:
            logger.warning(
                "Could not record failure for %s, event left in processing: %s",
                event.event_id, str(e),
                extra={**extra, "error": str(e)},
            )
            return None

        logger.info(
            "Webhook %s marked failed", event.event_id,
            extra={**extra, "state": FAILED, "error": error_message},
        )
        return FAILED


class WorkerPool:
    def __init__(
        self,
        store: EventStore,
        worker_count: int = DEFAULT_WORKER_COUNT,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        process_delay: float = DEFAULT_PROCESS_DELAY_SECONDS,
        processor: Optional[EventProcessor] = None,
        cache=None,
    ):
        if worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {worker_count}")
        self.store = store
        self.worker_count = worker_count
        self.poll_interval = poll_interval
        self.processor = processor or EventProcessor(process_delay=process_delay)
        self._cache = cache
        self._stop = asyncio.Event()

    def stop(self) -> None:
        """Signal every worker to finish its current event and exit."""
        if not self._stop.is_set():
            logger.info("Worker pool stop requested")
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    async def run(self) -> list[WorkerSummary]:
        """
        Run all workers until stop() is called or one of them fails.
        Returns per-worker summaries on a clean stop; re-raises the first fatal
        worker error after the remaining workers have drained.
        """
        logger.info(
            "Starting worker pool: workers=%d poll_interval=%.3fs process_delay=%.3fs",
            self.worker_count, self.poll_interval, self.processor.process_delay,
        )

        workers = [
            Worker(i, self.store, self.processor, self._stop, self.poll_interval)
            for i in range(1, self.worker_count + 1)
        ]
        tasks = [
            asyncio.create_task(w.run(), name=f"payhook-worker-{w.worker_id}")
            for w in workers
        ]
        heartbeat = asyncio.create_task(self._heartbeat_loop()) if self._cache is not None else None

        try:
            try:
                done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            except asyncio.CancelledError:
                self._stop.set()
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

            first_error = next(
                (t.exception() for t in tasks if t in done and not t.cancelled() and t.exception() is not None),
                None,
            )
            if first_error is not None:
                logger.error("Worker failed, shutting down pool: %s", str(first_error))
                self._stop.set()

            results = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            if heartbeat is not None:
                heartbeat.cancel()
                await asyncio.gather(heartbeat, return_exceptions=True)

        if first_error is None:
            first_error = next((r for r in results if isinstance(r, BaseException)), None)
        if first_error is not None:
            raise first_error

        summaries = [r for r in results if isinstance(r, WorkerSummary)]
        logger.info(
            "Worker pool stopped (done=%d failed=%d)",
            sum(s.done for s in summaries), sum(s.failed for s in summaries),
        )
        return summaries

    async def _heartbeat_loop(self) -> None:
        while True:
            await write_heartbeat(self._cache, HEARTBEAT_NAME)
            if await wait_for_stop(self._stop, HEARTBEAT_INTERVAL_SECONDS):
                return


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the payhook webhook worker pool")
    parser.add_argument("--workers", type=int, default=None, help="number of concurrent workers")
    parser.add_argument(
        "--poll-interval", type=parse_duration, default=None,
        help="wait when the backlog is empty (e.g. 2s, 500ms)",
    )
    parser.add_argument(
        "--process-delay", type=parse_duration, default=None,
        help="placeholder per-event processing time (e.g. 100ms)",
    )
    return parser


async def _run(args: argparse.Namespace) -> int:
    """Build the store and cache, run the pool, and map the outcome to an exit code."""
    from payhook.database import build_engine, build_session_factory, ensure_schema
    from payhook.services.sql_store import SqlEventStore
    from payhook.utils.cache import connect_redis
    from payhook.utils.logging import configure_structured_logging, init_sentry

    settings = get_settings()
    configure_structured_logging(settings.log_level, "worker_pool")
    init_sentry(settings.sentry_dsn, settings.app_env)

    worker_count = args.workers if args.workers is not None else settings.worker_pool_size
    if worker_count < 1:
        logger.warning("--workers must be >= 1 (got %d), using %d", worker_count, DEFAULT_WORKER_COUNT)
        worker_count = DEFAULT_WORKER_COUNT
    poll_interval = args.poll_interval if args.poll_interval is not None else settings.worker_poll_interval
    process_delay = args.process_delay if args.process_delay is not None else settings.worker_process_delay

    engine = build_engine(settings)
    await ensure_schema(engine)
    store = SqlEventStore(build_session_factory(engine), engine=engine)
    cache = await connect_redis(settings.redis_url)

    pool = WorkerPool(
        store,
        worker_count=worker_count,
        poll_interval=poll_interval,
        process_delay=process_delay,
        cache=cache,
    )
    install_stop_handlers(pool.stop)

    try:
        await pool.run()
    except Exception as e:
        logger.error("Worker pool stopped with error: %s", str(e), exc_info=True)
        return 1
    finally:
        await store.close()
        if cache is not None:
            await cache.aclose()

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
