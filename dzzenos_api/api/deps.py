"""Request-scoped access to the process-wide objects created in the lifespan."""

from __future__ import annotations

from fastapi import Request

from dzzenos_api.config import Settings, get_settings
from dzzenos_api.core.exceptions import RateLimitedError
from dzzenos_api.core.limits import RateLimitStore
from dzzenos_api.core.middleware import get_client_ip
from dzzenos_api.db import Store
from dzzenos_api.services.approvals import ApprovalGate
from dzzenos_api.services.catalog import CatalogService
from dzzenos_api.services.chat import ChatService
from dzzenos_api.services.docs import DocsStore
from dzzenos_api.services.run_engine import RunEngine
from dzzenos_api.services.run_finder import RunFinder
from dzzenos_api.services.sessions import SessionManager
from dzzenos_api.services.summaries import SummaryService
from dzzenos_api.services.tasks import TaskService
from dzzenos_api.services.transitions import StatusTransitionTrigger
from dzzenos_api.streaming.broadcaster import Broadcaster


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def get_docs(request: Request) -> DocsStore:
    return request.app.state.docs_store


def get_session_manager(request: Request) -> SessionManager:
    return SessionManager(get_store(request), get_broadcaster(request), get_settings())


def get_run_engine(request: Request) -> RunEngine:
    settings = get_settings()
    return RunEngine(
        get_store(request),
        request.app.state.completion_client,
        get_broadcaster(request),
        get_session_manager(request),
        settings,
    )


def get_summary_service(request: Request) -> SummaryService:
    return SummaryService(
        request.app.state.completion_client,
        get_session_manager(request),
        get_docs(request),
        get_broadcaster(request),
    )


def get_task_service(request: Request) -> TaskService:
    trigger = StatusTransitionTrigger(
        request.app.state.worker,
        get_run_engine(request),
        get_summary_service(request),
    )
    return TaskService(get_store(request), get_broadcaster(request), trigger)


def get_chat_service(request: Request) -> ChatService:
    return ChatService(
        get_store(request),
        request.app.state.completion_client,
        get_session_manager(request),
        get_broadcaster(request),
        get_settings(),
    )


def get_approval_gate(request: Request) -> ApprovalGate:
    return ApprovalGate(get_store(request), get_broadcaster(request), get_settings().runs_list_limit)


def get_run_finder(request: Request) -> RunFinder:
    settings: Settings = get_settings()
    return RunFinder(get_store(request), settings.stuck_minutes_default, settings.runs_list_limit)


def get_catalog(request: Request) -> CatalogService:
    return CatalogService(get_store(request), get_broadcaster(request))


async def enforce_run_rate_limit(request: Request) -> None:
    """Per-client limit on requests that reach the completion provider."""
    limit = get_settings().run_rate_limit_rpm
    store: RateLimitStore = request.app.state.rate_limit_store
    result = await store.hit(f"run:{get_client_ip(request)}", limit, 60)
    if not result.allowed:
        raise RateLimitedError("Rate limit exceeded", retry_after=60)
