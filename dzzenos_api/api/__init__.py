"""API routers."""

from dzzenos_api.api.approvals import router as approvals_router
from dzzenos_api.api.catalog import router as catalog_router
from dzzenos_api.api.chat import router as chat_router
from dzzenos_api.api.docs import router as docs_router
from dzzenos_api.api.events import router as events_router
from dzzenos_api.api.health import router as health_router
from dzzenos_api.api.runs import router as runs_router
from dzzenos_api.api.tasks import router as tasks_router

__all__ = [
    "approvals_router",
    "catalog_router",
    "chat_router",
    "docs_router",
    "events_router",
    "health_router",
    "runs_router",
    "tasks_router",
]
