"""Read models returned by services and serialized by the API.

Field names mirror the table columns (snake_case); request bodies use the
camelCase names the board UI sends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Row(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class BoardView(_Row):
    id: str
    workspace_id: str
    name: str
    description: Optional[str] = None
    position: int
    created_at: datetime
    updated_at: datetime


class AgentView(_Row):
    id: str
    workspace_id: Optional[str] = None
    display_name: str
    openclaw_agent_id: Optional[str] = None
    description: Optional[str] = None
    enabled: bool
    sort_order: int
    prompt_overrides: Optional[dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class TaskView(_Row):
    id: str
    board_id: str
    title: str
    description: Optional[str] = None
    status: str
    position: float
    created_at: datetime
    updated_at: datetime


class SessionView(_Row):
    task_id: str
    agent_id: Optional[str] = None
    session_key: str
    status: str
    last_run_id: Optional[str] = None
    agent_display_name: Optional[str] = None
    agent_openclaw_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class StepView(_Row):
    id: str
    run_id: str
    step_index: int
    kind: str
    status: str
    input_json: Optional[Any] = None
    output_json: Optional[Any] = None
    started_at: datetime
    finished_at: Optional[datetime] = None
    created_at: datetime


class RunView(_Row):
    id: str
    workspace_id: str
    board_id: Optional[str] = None
    task_id: Optional[str] = None
    task_title: Optional[str] = None
    agent_name: str
    status: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    is_stuck: bool = False
    steps: Optional[List[StepView]] = None


class ApprovalView(_Row):
    id: str
    run_id: str
    step_id: Optional[str] = None
    status: str
    request_title: Optional[str] = None
    request_body: Optional[str] = None
    requested_at: datetime
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
    decision_reason: Optional[str] = None
    created_at: datetime
    task_id: Optional[str] = None
    board_id: Optional[str] = None
    task_title: Optional[str] = None


class ChecklistItemView(_Row):
    id: str
    task_id: str
    title: str
    state: str
    position: int
    created_at: datetime
    updated_at: datetime


class MessageView(_Row):
    id: str
    task_id: str
    role: str
    content: str
    created_at: datetime


class RunResult(BaseModel):
    """Response of an explicit run request."""

    model_config = ConfigDict(populate_by_name=True)

    run_id: str = Field(alias="runId")
    output_text: str = Field(alias="outputText")
    parsed: Optional[dict[str, Any]] = None
    status: str = "succeeded"


class ChatReply(BaseModel):
    reply: str
    messages: List[MessageView]
