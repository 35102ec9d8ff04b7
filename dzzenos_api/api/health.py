"""
Health check endpoints.

Provides a liveness probe for the local UI and monitoring.
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

from dzzenos_api import __version__
from dzzenos_api.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
@router.get("/healthz")
async def healthcheck(request: Request) -> dict[str, Any]:
    """
    Health check endpoint.

    Reports uptime, database reachability, connected SSE clients and pending
    background jobs. Always 200; ``status`` is ``degraded`` when the
    database cannot be reached.
    """
    settings = get_settings()
    state = request.app.state
    db_ok = state.store.verify_connection()

    return {
        "status": "ok" if db_ok else "degraded",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
        "uptime_seconds": int((datetime.now(UTC) - state.start_time).total_seconds()),
        "environment": settings.environment,
        "provider_mode": settings.provider_mode,
        "provider_configured": bool(getattr(state.completion_client, "configured", True)),
        "database": "ok" if db_ok else "unreachable",
        "sse_clients": state.broadcaster.client_count,
        "pending_jobs": state.worker.pending_count,
    }
