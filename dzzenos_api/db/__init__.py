"""Database module for the DzzenOS API."""

from dzzenos_api.db.database import Base, Store, make_engine
from dzzenos_api.db.models import (
    Agent,
    AgentRun,
    Approval,
    Board,
    ChecklistItem,
    RunStep,
    Task,
    TaskMessage,
    TaskSession,
    Workspace,
)

__all__ = [
    "Base",
    "Store",
    "make_engine",
    "Workspace",
    "Board",
    "Agent",
    "Task",
    "TaskSession",
    "AgentRun",
    "RunStep",
    "Approval",
    "ChecklistItem",
    "TaskMessage",
]
