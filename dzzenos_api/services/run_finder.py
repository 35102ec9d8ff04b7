"""Run listings with stuck-run flagging, plus the startup sweep for orphaned runs."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import and_, case, literal

from dzzenos_api.core.exceptions import NotFoundError, ValidationFailed
from dzzenos_api.core.time import utcnow
from dzzenos_api.db import Store
from dzzenos_api.db.models import RUN_STATUSES, AgentRun, RunStep, Task, TaskSession
from dzzenos_api.schemas import RunView, StepView


def stuck_cutoff(stuck_minutes: int, now: datetime | None = None) -> datetime:
    return (now or utcnow()) - timedelta(minutes=stuck_minutes)


def _stuck_expr(cutoff: datetime):
    return case(
        (and_(AgentRun.status == "running", AgentRun.created_at < cutoff), literal(True)),
        else_=literal(False),
    )


class RunFinder:
    """Runs still ``running`` and older than the threshold are reported as stuck.

    Nothing here changes state; abandoned runs are only surfaced.
    """

    def __init__(self, store: Store, default_stuck_minutes: int = 5, list_limit: int = 200):
        self.store = store
        self.default_stuck_minutes = default_stuck_minutes
        self.list_limit = list_limit

    def list_runs(
        self,
        status: Optional[str] = None,
        stuck_minutes: Optional[int] = None,
    ) -> List[RunView]:
        """Cross-task listing, newest first.

        With ``stuck_minutes`` only stuck runs are returned; without it every
        run is returned and ``is_stuck`` uses the default window.
        """
        if status is not None and status not in RUN_STATUSES:
            raise ValidationFailed("Invalid status")
        if stuck_minutes is not None and stuck_minutes < 0:
            raise ValidationFailed("Invalid stuckMinutes")

        window = self.default_stuck_minutes if stuck_minutes is None else stuck_minutes
        cutoff = stuck_cutoff(window)
        with self.store.read() as db:
            query = (
                db.query(AgentRun, Task.title, _stuck_expr(cutoff))
                .outerjoin(Task, Task.id == AgentRun.task_id)
            )
            if status is not None:
                query = query.filter(AgentRun.status == status)
            if stuck_minutes is not None:
                query = query.filter(AgentRun.status == "running", AgentRun.created_at < cutoff)
            rows = query.order_by(AgentRun.created_at.desc()).limit(self.list_limit).all()

        views = []
        for run, task_title, is_stuck in rows:
            view = RunView.model_validate(run)
            view.task_title = task_title
            view.is_stuck = bool(is_stuck)
            views.append(view)
        return views

    def list_task_runs(self, task_id: str, stuck_minutes: Optional[int] = None) -> List[RunView]:
        """Runs of one task with their steps nested in ``step_index`` order."""
        if stuck_minutes is not None and stuck_minutes < 0:
            raise ValidationFailed("Invalid stuckMinutes")
        window = self.default_stuck_minutes if stuck_minutes is None else stuck_minutes
        cutoff = stuck_cutoff(window)

        with self.store.read() as db:
            task = db.get(Task, task_id)
            if task is None:
                raise NotFoundError("Task not found")
            rows = (
                db.query(AgentRun, _stuck_expr(cutoff))
                .filter(AgentRun.task_id == task_id)
                .order_by(AgentRun.created_at.desc())
                .limit(self.list_limit)
                .all()
            )
            run_ids = [run.id for run, _ in rows]
            steps = (
                db.query(RunStep)
                .filter(RunStep.run_id.in_(run_ids))
                .order_by(RunStep.run_id, RunStep.step_index.asc())
                .all()
                if run_ids
                else []
            )

        steps_by_run = defaultdict(list)
        for step in steps:
            steps_by_run[step.run_id].append(StepView.model_validate(step))

        views = []
        for run, is_stuck in rows:
            view = RunView.model_validate(run)
            view.task_title = task.title
            view.is_stuck = bool(is_stuck)
            view.steps = steps_by_run.get(run.id, [])
            views.append(view)
        return views


ABANDONED_ERROR = "abandoned: process restarted"


def reap_orphaned_runs(store: Store) -> int:
    """Fail runs left ``running`` by a previous process.

    Only runs with a step still ``running`` are touched; placeholder runs
    created for approvals have no steps and stay as they are. Sessions left
    ``running`` go back to ``idle``.
    """
    now = utcnow()
    with store.transaction() as db:
        orphaned = [
            run_id
            for (run_id,) in db.query(RunStep.run_id)
            .join(AgentRun, AgentRun.id == RunStep.run_id)
            .filter(AgentRun.status == "running", RunStep.status == "running")
            .distinct()
            .all()
        ]
        if orphaned:
            db.query(RunStep).filter(
                RunStep.run_id.in_(orphaned), RunStep.status == "running"
            ).update(
                {
                    RunStep.status: "failed",
                    RunStep.output_json: {"error": ABANDONED_ERROR},
                    RunStep.finished_at: now,
                },
                synchronize_session=False,
            )
            db.query(AgentRun).filter(
                AgentRun.id.in_(orphaned), AgentRun.status == "running"
            ).update(
                {AgentRun.status: "failed", AgentRun.finished_at: now},
                synchronize_session=False,
            )
        db.query(TaskSession).filter(TaskSession.status == "running").update(
            {TaskSession.status: "idle"}, synchronize_session=False
        )
    return len(orphaned)
