"""
payhook - payment webhook ingestion server.
Main FastAPI application entry point.

The event store and the optional Redis cache are built once in the lifespan
(or injected into create_app) and shared through app.state.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from payhook.config import APP_VERSION, get_settings
from payhook.api.router import api_router
from payhook.services.event_store import EventStore
from payhook.utils.logging import (
    configure_structured_logging,
    correlation_scope,
    init_sentry,
)

logger = logging.getLogger("payhook")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Injects a correlation ID into every request context and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        with correlation_scope(request.headers.get("X-Correlation-ID")) as cid:
            response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    logger.info("payhook starting up (env=%s)", settings.app_env)

    init_sentry(settings.sentry_dsn, settings.app_env)

    owns_resources = app.state.store is None
    if owns_resources:
        from payhook.database import build_engine, build_session_factory, ensure_schema
        from payhook.services.sql_store import SqlEventStore
        from payhook.utils.cache import connect_redis

        engine = build_engine(settings)
        await ensure_schema(engine)
        app.state.store = SqlEventStore(build_session_factory(engine), engine=engine)
        app.state.cache = await connect_redis(settings.redis_url)

    yield

    if owns_resources:
        logger.info("payhook shutting down - closing store and cache")
        await app.state.store.close()
        if app.state.cache is not None:
            await app.state.cache.aclose()
        app.state.store = None
        app.state.cache = None
    logger.info("payhook shutdown complete")


def create_app(store: Optional[EventStore] = None, cache=None) -> FastAPI:
    """
    Application factory.

    Pass a store (and optionally a cache) to run against injected dependencies;
    otherwise the lifespan builds a SQL store from settings.
    """
    settings = get_settings()

    configure_structured_logging(settings.log_level, "server")

    application = FastAPI(
        title="payhook",
        description="Payment webhook ingestion with a claim-based worker queue",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    application.state.store = store
    application.state.cache = cache

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Cookie", "X-Correlation-ID"],
    )

    # Correlation ID middleware (must be added AFTER CORS so it runs on every request)
    application.add_middleware(CorrelationIdMiddleware)

    application.include_router(api_router)

    return application


app = create_app()
