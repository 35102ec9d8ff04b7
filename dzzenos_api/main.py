"""
DzzenOS API application.

FastAPI application with structured logging, error handling, the
process-scoped broadcaster and background worker, and the task/run routers.
"""

import argparse
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Optional, Sequence

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dzzenos_api import __version__
from dzzenos_api.api import (
    approvals_router,
    catalog_router,
    chat_router,
    docs_router,
    events_router,
    health_router,
    runs_router,
    tasks_router,
)
from dzzenos_api.config import get_settings
from dzzenos_api.core import (
    RequestContextMiddleware,
    get_logger,
    setup_exception_handlers,
    setup_logging,
)
from dzzenos_api.core.limits.memory import InMemoryRateLimitStore
from dzzenos_api.db import Store
from dzzenos_api.providers import build_completion_client
from dzzenos_api.services.docs import DocsStore
from dzzenos_api.services.run_finder import reap_orphaned_runs
from dzzenos_api.streaming.broadcaster import Broadcaster
from dzzenos_api.workers import BackgroundWorker

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Startup
    setup_logging(
        level=settings.log_level,
        json_output=not settings.debug,
        log_file=settings.log_file or None,
    )
    logger.info(
        "Starting DzzenOS API",
        data={
            "host": settings.host,
            "port": settings.port,
            "environment": settings.environment,
            "provider_mode": settings.provider_mode,
            "cors_origins": settings.cors_origins_list,
        },
    )

    # Store unless provided (useful in tests)
    store_created = False
    if not hasattr(_app.state, "store"):
        _app.state.store = Store.from_url(settings.database_url)
        store_created = True
    store: Store = _app.state.store
    store.create_all()
    if not store.verify_connection():
        logger.warning("Database connection failed", data={"database_url": settings.database_url})
    if settings.seed_defaults:
        store.seed_if_empty()
    if settings.reap_orphaned_runs:
        reaped = reap_orphaned_runs(store)
        if reaped:
            logger.warning("Marked orphaned runs as failed", data={"count": reaped})

    _app.state.start_time = datetime.now(UTC)

    broadcaster = Broadcaster(
        event_name=settings.sse_event_name,
        heartbeat_seconds=settings.sse_heartbeat_seconds,
        queue_size=settings.sse_client_queue_size,
    )
    await broadcaster.start()
    _app.state.broadcaster = broadcaster
    _app.state.worker = BackgroundWorker(history_size=settings.worker_history_size)
    _app.state.rate_limit_store = InMemoryRateLimitStore(window_seconds=60)
    _app.state.docs_store = DocsStore(settings.workspace_dir)

    # Completion client unless provided (useful in tests)
    client_created = False
    if not hasattr(_app.state, "completion_client"):
        _app.state.completion_client = build_completion_client(settings)
        client_created = True
    if not getattr(_app.state.completion_client, "configured", True):
        logger.warning("OPENRESPONSES_URL is not set; runs will fail until it is configured")

    yield

    # Shutdown
    logger.info("Shutting down DzzenOS API")
    await _app.state.worker.stop()
    await broadcaster.stop()
    if client_created:
        await _app.state.completion_client.aclose()
        del _app.state.completion_client
    if store_created:
        store.dispose()
        del _app.state.store


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="DzzenOS API",
        description="Local-first task runs, approvals and realtime change events",
        version=__version__,
        lifespan=lifespan,
        docs_url=settings.docs_url,
        redoc_url=None,
    )

    # Setup exception handlers (must be before middleware)
    setup_exception_handlers(app)

    # Request context (inject request ID, log requests)
    app.add_middleware(RequestContextMiddleware)

    # CORS for the board UI dev server
    allow_origin_regex = None
    if not settings.is_production:
        allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
        allow_origin_regex=allow_origin_regex,
    )

    # Register routers
    app.include_router(health_router)
    app.include_router(events_router)
    app.include_router(catalog_router)
    app.include_router(tasks_router)
    app.include_router(chat_router)
    app.include_router(runs_router)
    app.include_router(approvals_router)
    app.include_router(docs_router)

    return app


def _database_url(value: str) -> str:
    if "://" in value:
        return value
    return f"sqlite:///{os.path.abspath(value)}"


def run(argv: Optional[Sequence[str]] = None) -> None:
    """Command-line entry point: serve the API with uvicorn."""
    parser = argparse.ArgumentParser(prog="dzzenos-api", description="DzzenOS local API server")
    parser.add_argument("--host", help="bind address (default from HOST)")
    parser.add_argument("--port", type=int, help="listen port (default from PORT)")
    parser.add_argument("--db", help="SQLite file path or database URL")
    parser.add_argument("--workspace-dir", help="root of the board docs and memory files")
    args = parser.parse_args(argv)

    if args.host:
        os.environ["HOST"] = args.host
    if args.port:
        os.environ["PORT"] = str(args.port)
    if args.db:
        os.environ["DATABASE_URL"] = _database_url(args.db)
    if args.workspace_dir:
        os.environ["WORKSPACE_DIR"] = os.path.abspath(args.workspace_dir)
    get_settings.cache_clear()
    settings = get_settings()

    uvicorn.run(create_app(), host=settings.host, port=settings.port, log_config=None)


# Create application instance
app = create_app()
