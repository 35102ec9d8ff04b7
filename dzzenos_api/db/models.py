"""SQLAlchemy database models."""

import secrets

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from dzzenos_api.core.time import utcnow
from dzzenos_api.db.database import Base

TASK_STATUSES = ("ideas", "todo", "doing", "review", "release", "done", "archived")
RUN_STATUSES = ("running", "succeeded", "failed", "cancelled")
APPROVAL_STATUSES = ("pending", "approved", "rejected")
CHECKLIST_STATES = ("todo", "doing", "done")


def generate_id() -> str:
    """Generate a unique ID."""
    return secrets.token_urlsafe(16)


class Workspace(Base):
    __tablename__ = "workspaces"

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Workspace {self.name}>"


class Board(Base):
    __tablename__ = "boards"

    id = Column(String(32), primary_key=True, default=generate_id)
    workspace_id = Column(
        String(32), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    position = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Board {self.name}>"


class Agent(Base):
    """Agent profile a task session can be bound to."""

    __tablename__ = "agents"

    id = Column(String(32), primary_key=True, default=generate_id)
    workspace_id = Column(
        String(32), ForeignKey("workspaces.id", ondelete="SET NULL"), nullable=True, index=True
    )
    display_name = Column(String(255), nullable=False)
    # Identity passed to the completion provider as x-openclaw-agent-id
    openclaw_agent_id = Column(String(255), unique=True, nullable=True)
    description = Column(Text, nullable=True)
    enabled = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    # Optional per-mode prompt text: {"system", "plan", "execute", "report", "chat"}
    prompt_overrides = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Agent {self.display_name}>"


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(32), primary_key=True, default=generate_id)
    board_id = Column(
        String(32), ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(16), default="ideas", nullable=False)
    position = Column(Float, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (Index("ix_tasks_board_status_position", "board_id", "status", "position"),)

    def __repr__(self) -> str:
        return f"<Task {self.id[:8]}... {self.status}>"


class TaskSession(Base):
    """Durable binding of a task to an agent and a provider conversation key."""

    __tablename__ = "task_sessions"

    task_id = Column(String(32), ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True)
    agent_id = Column(String(32), ForeignKey("agents.id", ondelete="SET NULL"), nullable=True)
    session_key = Column(String(255), unique=True, nullable=False)
    status = Column(String(16), default="idle", nullable=False)
    last_run_id = Column(
        String(32), ForeignKey("agent_runs.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class AgentRun(Base):
    __tablename__ = "agent_runs"

    id = Column(String(32), primary_key=True, default=generate_id)
    workspace_id = Column(
        String(32), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    board_id = Column(String(32), ForeignKey("boards.id", ondelete="CASCADE"), nullable=True)
    task_id = Column(
        String(32), ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True
    )
    agent_name = Column(String(255), nullable=False)
    status = Column(String(16), default="running", nullable=False)
    started_at = Column(DateTime, default=utcnow, nullable=False)
    finished_at = Column(DateTime, nullable=True)
    input_tokens = Column(Integer, nullable=True)
    output_tokens = Column(Integer, nullable=True)
    total_tokens = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (Index("ix_agent_runs_status_created", "status", "created_at"),)

    def __repr__(self) -> str:
        return f"<AgentRun {self.id[:8]}... {self.status}>"


class RunStep(Base):
    __tablename__ = "run_steps"

    id = Column(String(32), primary_key=True, default=generate_id)
    run_id = Column(
        String(32), ForeignKey("agent_runs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_index = Column(Integer, nullable=False)
    kind = Column(String(32), nullable=False)
    status = Column(String(16), default="running", nullable=False)
    input_json = Column(JSON, nullable=True)
    output_json = Column(JSON, nullable=True)
    started_at = Column(DateTime, default=utcnow, nullable=False)
    finished_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("run_id", "step_index", name="uq_run_steps_run_index"),)


class Approval(Base):
    __tablename__ = "approvals"

    id = Column(String(32), primary_key=True, default=generate_id)
    run_id = Column(
        String(32), ForeignKey("agent_runs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_id = Column(String(32), ForeignKey("run_steps.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(16), default="pending", nullable=False, index=True)
    request_title = Column(String(500), nullable=True)
    request_body = Column(Text, nullable=True)
    requested_at = Column(DateTime, default=utcnow, nullable=False)
    decided_at = Column(DateTime, nullable=True)
    decided_by = Column(String(255), nullable=True)
    decision_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class ChecklistItem(Base):
    __tablename__ = "task_checklist_items"

    id = Column(String(32), primary_key=True, default=generate_id)
    task_id = Column(
        String(32), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(500), nullable=False)
    state = Column(String(16), default="todo", nullable=False)
    position = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class TaskMessage(Base):
    __tablename__ = "task_messages"

    id = Column(String(32), primary_key=True, default=generate_id)
    task_id = Column(
        String(32), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
