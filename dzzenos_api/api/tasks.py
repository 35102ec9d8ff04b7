"""Task endpoints: CRUD, explicit runs, session binding and approval requests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from dzzenos_api.api.deps import (
    enforce_run_rate_limit,
    get_approval_gate,
    get_run_engine,
    get_run_finder,
    get_session_manager,
    get_task_service,
)
from dzzenos_api.schemas import (
    ApprovalView,
    ChecklistItemView,
    RunResult,
    RunView,
    SessionView,
    TaskView,
)
from dzzenos_api.services.approvals import ApprovalGate
from dzzenos_api.services.run_engine import RunEngine
from dzzenos_api.services.run_finder import RunFinder
from dzzenos_api.services.sessions import UNSET, SessionManager
from dzzenos_api.services.tasks import TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"])


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TaskCreate(_Body):
    title: str
    description: Optional[str] = None
    board_id: Optional[str] = Field(default=None, alias="boardId")
    status: str = "ideas"


class RunRequest(_Body):
    mode: str
    agent_id: Optional[str] = Field(default=None, alias="agentId")


class SessionBind(_Body):
    agent_id: Optional[str] = Field(default=None, alias="agentId")


class ApprovalRequest(_Body):
    title: Optional[str] = None
    body: Optional[str] = None
    step_id: Optional[str] = Field(default=None, alias="stepId")


class ChecklistCreate(_Body):
    title: str
    state: str = "todo"


def explicit_agent(body: Optional[_Body]) -> Any:
    """``agentId`` as sent: UNSET when absent, ``None`` when sent as null."""
    if body is None or "agent_id" not in body.model_fields_set:
        return UNSET
    return body.agent_id


@router.get("", response_model=List[TaskView])
async def list_tasks(
    board_id: Optional[str] = Query(default=None, alias="boardId"),
    tasks: TaskService = Depends(get_task_service),
) -> List[TaskView]:
    return tasks.list_tasks(board_id)


@router.post("", response_model=TaskView, status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreate,
    tasks: TaskService = Depends(get_task_service),
) -> TaskView:
    return tasks.create_task(body.title, body.description, body.board_id, body.status)


@router.get("/{task_id}", response_model=TaskView)
async def get_task(task_id: str, tasks: TaskService = Depends(get_task_service)) -> TaskView:
    return tasks.get_task(task_id)


@router.patch("/{task_id}", response_model=TaskView)
async def update_task(
    task_id: str,
    changes: Dict[str, Any] = Body(...),
    tasks: TaskService = Depends(get_task_service),
) -> TaskView:
    return tasks.update_task(task_id, changes)


@router.delete("/{task_id}")
async def delete_task(task_id: str, tasks: TaskService = Depends(get_task_service)) -> dict:
    tasks.delete_task(task_id)
    return {"ok": True}


@router.post(
    "/{task_id}/run",
    response_model=RunResult,
    dependencies=[Depends(enforce_run_rate_limit)],
)
async def run_task(
    task_id: str,
    body: RunRequest,
    engine: RunEngine = Depends(get_run_engine),
) -> RunResult:
    return await engine.run_task(task_id, body.mode, explicit_agent(body))


@router.get("/{task_id}/runs", response_model=List[RunView])
async def list_task_runs(
    task_id: str,
    stuck_minutes: Optional[int] = Query(default=None, alias="stuckMinutes"),
    finder: RunFinder = Depends(get_run_finder),
) -> List[RunView]:
    return finder.list_task_runs(task_id, stuck_minutes)


@router.get("/{task_id}/session", response_model=SessionView)
async def get_session(
    task_id: str,
    sessions: SessionManager = Depends(get_session_manager),
) -> SessionView:
    return sessions.get_view(task_id)


@router.post("/{task_id}/session", response_model=SessionView)
async def bind_session(
    task_id: str,
    body: Optional[SessionBind] = None,
    sessions: SessionManager = Depends(get_session_manager),
) -> SessionView:
    return sessions.bind(task_id, explicit_agent(body))


@router.post(
    "/{task_id}/request-approval",
    response_model=ApprovalView,
    status_code=status.HTTP_201_CREATED,
)
async def request_approval(
    task_id: str,
    body: Optional[ApprovalRequest] = None,
    gate: ApprovalGate = Depends(get_approval_gate),
) -> ApprovalView:
    body = body or ApprovalRequest()
    return gate.request_approval(task_id, body.title, body.body, body.step_id)


@router.get("/{task_id}/checklist", response_model=List[ChecklistItemView])
async def list_checklist(
    task_id: str,
    tasks: TaskService = Depends(get_task_service),
) -> List[ChecklistItemView]:
    return tasks.list_checklist(task_id)


@router.post(
    "/{task_id}/checklist",
    response_model=ChecklistItemView,
    status_code=status.HTTP_201_CREATED,
)
async def add_checklist_item(
    task_id: str,
    body: ChecklistCreate,
    tasks: TaskService = Depends(get_task_service),
) -> ChecklistItemView:
    return tasks.add_checklist_item(task_id, body.title, body.state)


@router.patch("/{task_id}/checklist/{item_id}", response_model=ChecklistItemView)
async def update_checklist_item(
    task_id: str,
    item_id: str,
    changes: Dict[str, Any] = Body(...),
    tasks: TaskService = Depends(get_task_service),
) -> ChecklistItemView:
    return tasks.update_checklist_item(task_id, item_id, changes)


@router.delete("/{task_id}/checklist/{item_id}")
async def delete_checklist_item(
    task_id: str,
    item_id: str,
    tasks: TaskService = Depends(get_task_service),
) -> dict:
    tasks.delete_checklist_item(task_id, item_id)
    return {"ok": True}
