"""Task session binding: one durable agent + conversation key per task."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session as DBSession

from dzzenos_api.config import Settings
from dzzenos_api.core.exceptions import NotFoundError, ValidationFailed
from dzzenos_api.core.logging import get_logger
from dzzenos_api.db import Store
from dzzenos_api.db.models import Agent, Board, Task, TaskSession
from dzzenos_api.schemas import SessionView
from dzzenos_api.streaming.broadcaster import SESSION_CHANGED, Broadcaster

logger = get_logger(__name__)

# Distinguishes "agentId not sent" from an explicit null (unbind to auto).
UNSET: Any = object()


@dataclass(frozen=True)
class TaskContext:
    id: str
    board_id: str
    workspace_id: str
    title: str
    description: Optional[str]
    status: str


@dataclass(frozen=True)
class AgentProfile:
    id: str
    display_name: str
    external_id: Optional[str]
    prompt_overrides: dict


def session_key_for(workspace_id: str, board_id: str, task_id: str) -> str:
    return f"project:{workspace_id}:board:{board_id}:task:{task_id}"


def load_task_context(db: DBSession, task_id: str) -> TaskContext | None:
    row = (
        db.query(Task, Board.workspace_id)
        .join(Board, Board.id == Task.board_id)
        .filter(Task.id == task_id)
        .first()
    )
    if row is None:
        return None
    task, workspace_id = row
    return TaskContext(
        id=task.id,
        board_id=task.board_id,
        workspace_id=workspace_id,
        title=task.title,
        description=task.description,
        status=task.status,
    )


def find_enabled_agent(db: DBSession, agent_id: str, workspace_id: str) -> Agent | None:
    """Agents with no workspace are shared by every workspace."""
    return (
        db.query(Agent)
        .filter(
            Agent.id == agent_id,
            Agent.enabled.is_(True),
            or_(Agent.workspace_id == workspace_id, Agent.workspace_id.is_(None)),
        )
        .first()
    )


class SessionManager:
    def __init__(self, store: Store, broadcaster: Broadcaster, settings: Settings):
        self.store = store
        self.broadcaster = broadcaster
        self.settings = settings

    def task_context(self, task_id: str) -> TaskContext:
        with self.store.read() as db:
            ctx = load_task_context(db, task_id)
        if ctx is None:
            raise NotFoundError("Task not found")
        return ctx

    def ensure_session(self, task_id: str, agent_id: Any = UNSET) -> TaskSession:
        """Return the task's session, creating it on first use.

        The stored agent changes only when ``agent_id`` is passed explicitly
        (``None`` unbinds) and differs from the current binding. A stale
        session key is rewritten to the deterministic one.
        """
        changed = False
        with self.store.transaction() as db:
            ctx = load_task_context(db, task_id)
            if ctx is None:
                raise NotFoundError("Task not found")
            if agent_id is not UNSET and agent_id is not None:
                if find_enabled_agent(db, agent_id, ctx.workspace_id) is None:
                    raise ValidationFailed("Invalid agentId")

            expected_key = session_key_for(ctx.workspace_id, ctx.board_id, ctx.id)
            session = db.get(TaskSession, task_id)
            if session is None:
                session = TaskSession(
                    task_id=task_id,
                    agent_id=None if agent_id is UNSET else agent_id,
                    session_key=expected_key,
                    status="idle",
                )
                db.add(session)
                changed = True
            else:
                if agent_id is not UNSET and session.agent_id != agent_id:
                    session.agent_id = agent_id
                    changed = True
                if session.session_key != expected_key:
                    session.session_key = expected_key
                    changed = True
            db.flush()

        if changed:
            logger.info(
                "Task session bound",
                data={"task_id": task_id, "agent_id": session.agent_id},
            )
        return session

    def bind(self, task_id: str, agent_id: Any = UNSET) -> SessionView:
        self.ensure_session(task_id, agent_id)
        self.broadcaster.broadcast(SESSION_CHANGED, {"taskId": task_id})
        return self.get_view(task_id)

    def get_view(self, task_id: str) -> SessionView:
        with self.store.read() as db:
            row = (
                db.query(TaskSession, Agent.display_name, Agent.openclaw_agent_id)
                .outerjoin(Agent, Agent.id == TaskSession.agent_id)
                .filter(TaskSession.task_id == task_id)
                .first()
            )
        if row is None:
            raise NotFoundError("Task session not found")
        session, display_name, external_id = row
        view = SessionView.model_validate(session)
        view.agent_display_name = display_name
        view.agent_openclaw_id = external_id
        return view

    def resolve_agent(self, workspace_id: str, session_agent_id: str | None) -> AgentProfile | None:
        """Session agent, then the configured default agent, then the first enabled one."""
        with self.store.read() as db:
            agent = None
            if session_agent_id:
                agent = find_enabled_agent(db, session_agent_id, workspace_id)
            if agent is None and self.settings.default_agent_id:
                agent = (
                    db.query(Agent)
                    .filter(
                        Agent.openclaw_agent_id == self.settings.default_agent_id,
                        Agent.enabled.is_(True),
                    )
                    .first()
                )
            if agent is None:
                agent = (
                    db.query(Agent)
                    .filter(Agent.enabled.is_(True), Agent.workspace_id == workspace_id)
                    .order_by(Agent.sort_order.asc(), Agent.created_at.asc())
                    .first()
                )
            if agent is None:
                agent = (
                    db.query(Agent)
                    .filter(Agent.enabled.is_(True))
                    .order_by(Agent.sort_order.asc(), Agent.created_at.asc())
                    .first()
                )
        if agent is None:
            return None
        overrides = agent.prompt_overrides if isinstance(agent.prompt_overrides, dict) else {}
        return AgentProfile(
            id=agent.id,
            display_name=agent.display_name,
            external_id=agent.openclaw_agent_id,
            prompt_overrides=overrides,
        )

    def mark_running(self, db: DBSession, task_id: str) -> None:
        db.query(TaskSession).filter(TaskSession.task_id == task_id).update(
            {TaskSession.status: "running"}, synchronize_session=False
        )

    def release(self, task_id: str, last_run_id: str) -> None:
        """Record the latest run and return the session to idle."""
        with self.store.transaction() as db:
            db.query(TaskSession).filter(TaskSession.task_id == task_id).update(
                {TaskSession.last_run_id: last_run_id, TaskSession.status: "idle"},
                synchronize_session=False,
            )
