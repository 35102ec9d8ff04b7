"""Human approval gate attached to agent runs."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session as DBSession

from dzzenos_api.core.exceptions import ConflictError, NotFoundError, ValidationFailed
from dzzenos_api.core.logging import get_logger
from dzzenos_api.core.time import utcnow
from dzzenos_api.db import Store
from dzzenos_api.db.models import APPROVAL_STATUSES, AgentRun, Approval, RunStep, Task
from dzzenos_api.schemas import ApprovalView
from dzzenos_api.services.sessions import load_task_context
from dzzenos_api.streaming.broadcaster import APPROVALS_CHANGED, Broadcaster

logger = get_logger(__name__)

DECISIONS = {"approve": "approved", "reject": "rejected"}
# Owner of the synthetic run created when approval is requested before any run
PLACEHOLDER_AGENT = "user"


def _approval_query(db: DBSession):
    return (
        db.query(Approval, AgentRun.task_id, AgentRun.board_id, Task.title)
        .join(AgentRun, AgentRun.id == Approval.run_id)
        .outerjoin(Task, Task.id == AgentRun.task_id)
    )


def _to_view(row) -> ApprovalView:
    approval, task_id, board_id, task_title = row
    view = ApprovalView.model_validate(approval)
    view.task_id = task_id
    view.board_id = board_id
    view.task_title = task_title
    return view


class ApprovalGate:
    def __init__(self, store: Store, broadcaster: Broadcaster, list_limit: int = 200):
        self.store = store
        self.broadcaster = broadcaster
        self.list_limit = list_limit

    def get(self, approval_id: str) -> ApprovalView:
        with self.store.read() as db:
            row = _approval_query(db).filter(Approval.id == approval_id).first()
        if row is None:
            raise NotFoundError("Approval not found")
        return _to_view(row)

    def list_approvals(self, status: Optional[str] = None) -> List[ApprovalView]:
        if status is not None and status not in APPROVAL_STATUSES:
            raise ValidationFailed("Invalid status")
        with self.store.read() as db:
            query = _approval_query(db)
            if status is not None:
                query = query.filter(Approval.status == status)
            rows = query.order_by(Approval.requested_at.desc()).limit(self.list_limit).all()
        return [_to_view(row) for row in rows]

    def request_approval(
        self,
        task_id: str,
        title: Optional[str] = None,
        body: Optional[str] = None,
        step_id: Optional[str] = None,
    ) -> ApprovalView:
        """Open a pending approval on the task's latest run.

        Tasks that never ran get a placeholder ``running`` run owned by the
        ``user`` agent so the approval always has a parent run.
        """
        with self.store.transaction() as db:
            ctx = load_task_context(db, task_id)
            if ctx is None:
                raise NotFoundError("Task not found")

            run = (
                db.query(AgentRun)
                .filter(AgentRun.task_id == task_id)
                .order_by(AgentRun.created_at.desc())
                .first()
            )
            if run is None:
                run = AgentRun(
                    workspace_id=ctx.workspace_id,
                    board_id=ctx.board_id,
                    task_id=task_id,
                    agent_name=PLACEHOLDER_AGENT,
                    status="running",
                )
                db.add(run)
                db.flush()
                logger.info("Placeholder run created for approval", data={"task_id": task_id, "run_id": run.id})

            if step_id is not None:
                step = db.get(RunStep, step_id)
                if step is None or step.run_id != run.id:
                    raise ValidationFailed("Invalid stepId")

            approval = Approval(
                run_id=run.id,
                step_id=step_id,
                status="pending",
                request_title=(title or "").strip() or f"Approval requested for: {ctx.title}",
                request_body=body,
            )
            db.add(approval)
            db.flush()
            approval_id = approval.id

        self.broadcaster.broadcast(
            APPROVALS_CHANGED,
            {"approvalId": approval_id, "status": "pending", "taskId": ctx.id, "boardId": ctx.board_id},
        )
        return self.get(approval_id)

    def decide(
        self,
        approval_id: str,
        action: str,
        decided_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> ApprovalView:
        """Resolve a pending approval exactly once.

        The conditional UPDATE is the only guard: of any number of concurrent
        callers, one sees a changed row and every other one gets a conflict.
        """
        status = DECISIONS.get(action)
        if status is None:
            raise ValidationFailed("Invalid action")
        decided_by = (decided_by or "").strip() or None

        with self.store.transaction() as db:
            changed = (
                db.query(Approval)
                .filter(Approval.id == approval_id, Approval.status == "pending")
                .update(
                    {
                        Approval.status: status,
                        Approval.decided_at: utcnow(),
                        Approval.decided_by: decided_by,
                        Approval.decision_reason: reason,
                    },
                    synchronize_session=False,
                )
            )
            exists = changed or db.query(Approval.id).filter(Approval.id == approval_id).first()

        if not exists:
            raise NotFoundError("Approval not found")
        if not changed:
            raise ConflictError("Approval already decided")

        view = self.get(approval_id)
        logger.info(
            "Approval decided",
            data={"approval_id": approval_id, "status": status, "decided_by": decided_by},
        )
        self.broadcaster.broadcast(
            APPROVALS_CHANGED,
            {
                "approvalId": approval_id,
                "status": status,
                "taskId": view.task_id,
                "boardId": view.board_id,
            },
        )
        return view
