"""Task and checklist CRUD."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import func

from dzzenos_api.core.exceptions import NotFoundError, ValidationFailed
from dzzenos_api.core.logging import get_logger
from dzzenos_api.db import Store
from dzzenos_api.db.models import CHECKLIST_STATES, TASK_STATUSES, Board, ChecklistItem, Task
from dzzenos_api.schemas import ChecklistItemView, TaskView
from dzzenos_api.services.transitions import StatusTransitionTrigger
from dzzenos_api.streaming.broadcaster import CHECKLIST_CHANGED, TASKS_CHANGED, Broadcaster

logger = get_logger(__name__)

TASK_FIELDS = ("status", "title", "description", "position")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_task_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only recognised task fields, rejecting bad values."""
    cleaned: Dict[str, Any] = {}
    if "title" in changes:
        title = changes["title"]
        if not isinstance(title, str) or not title.strip():
            raise ValidationFailed("Invalid title")
        cleaned["title"] = title.strip()
    if "description" in changes:
        description = changes["description"]
        if description is not None and not isinstance(description, str):
            raise ValidationFailed("Invalid description")
        cleaned["description"] = description
    if "status" in changes:
        if changes["status"] not in TASK_STATUSES:
            raise ValidationFailed("Invalid status")
        cleaned["status"] = changes["status"]
    if "position" in changes:
        if not _is_number(changes["position"]):
            raise ValidationFailed("Invalid position")
        cleaned["position"] = float(changes["position"])
    if not cleaned:
        raise ValidationFailed("No valid fields to update (status/title/description/position)")
    return cleaned


class TaskService:
    def __init__(
        self,
        store: Store,
        broadcaster: Broadcaster,
        trigger: Optional[StatusTransitionTrigger] = None,
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.trigger = trigger

    def list_tasks(self, board_id: Optional[str] = None) -> List[TaskView]:
        with self.store.read() as db:
            query = db.query(Task)
            if board_id:
                query = query.filter(Task.board_id == board_id)
            tasks = query.order_by(Task.status, Task.position.asc(), Task.created_at.asc()).all()
        return [TaskView.model_validate(t) for t in tasks]

    def get_task(self, task_id: str) -> TaskView:
        with self.store.read() as db:
            task = db.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return TaskView.model_validate(task)

    def create_task(
        self,
        title: str,
        description: Optional[str] = None,
        board_id: Optional[str] = None,
        status: str = "ideas",
    ) -> TaskView:
        if not isinstance(title, str) or not title.strip():
            raise ValidationFailed("title is required")
        if status not in TASK_STATUSES:
            raise ValidationFailed("Invalid status")

        with self.store.transaction() as db:
            if board_id:
                board = db.get(Board, board_id)
                if board is None:
                    raise NotFoundError("Board not found")
            else:
                board = db.query(Board).order_by(Board.position.asc(), Board.created_at.asc()).first()
                if board is None:
                    raise ValidationFailed("No board available")
            last = (
                db.query(func.max(Task.position))
                .filter(Task.board_id == board.id, Task.status == status)
                .scalar()
            )
            task = Task(
                board_id=board.id,
                title=title.strip(),
                description=description,
                status=status,
                position=(last + 1) if last is not None else 0,
            )
            db.add(task)
            db.flush()

        self.broadcaster.broadcast(TASKS_CHANGED, {"taskId": task.id, "boardId": task.board_id})
        return TaskView.model_validate(task)

    def update_task(self, task_id: str, changes: Dict[str, Any]) -> TaskView:
        """Apply a partial update; a status change feeds the transition trigger."""
        cleaned = validate_task_changes(changes)
        with self.store.transaction() as db:
            task = db.get(Task, task_id)
            if task is None:
                raise NotFoundError("Task not found")
            previous_status = task.status
            for field, value in cleaned.items():
                setattr(task, field, value)
            db.flush()

        self.broadcaster.broadcast(TASKS_CHANGED, {"taskId": task.id, "boardId": task.board_id})
        if "status" in cleaned and self.trigger is not None:
            self.trigger.on_status_change(task.id, previous_status, task.status)
        return TaskView.model_validate(task)

    def delete_task(self, task_id: str) -> None:
        with self.store.transaction() as db:
            task = db.get(Task, task_id)
            if task is None:
                raise NotFoundError("Task not found")
            board_id = task.board_id
            db.delete(task)
        self.broadcaster.broadcast(TASKS_CHANGED, {"taskId": task_id, "boardId": board_id})

    # Checklist

    def _require_task(self, db, task_id: str) -> Task:
        task = db.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    def list_checklist(self, task_id: str) -> List[ChecklistItemView]:
        with self.store.read() as db:
            self._require_task(db, task_id)
            items = (
                db.query(ChecklistItem)
                .filter(ChecklistItem.task_id == task_id)
                .order_by(ChecklistItem.position.asc(), ChecklistItem.created_at.asc())
                .all()
            )
        return [ChecklistItemView.model_validate(i) for i in items]

    def add_checklist_item(self, task_id: str, title: str, state: str = "todo") -> ChecklistItemView:
        if not isinstance(title, str) or not title.strip():
            raise ValidationFailed("title is required")
        if state not in CHECKLIST_STATES:
            raise ValidationFailed("Invalid state")
        with self.store.transaction() as db:
            self._require_task(db, task_id)
            last = (
                db.query(func.max(ChecklistItem.position))
                .filter(ChecklistItem.task_id == task_id)
                .scalar()
            )
            item = ChecklistItem(
                task_id=task_id,
                title=title.strip(),
                state=state,
                position=(last + 1) if last is not None else 0,
            )
            db.add(item)
            db.flush()
        self.broadcaster.broadcast(CHECKLIST_CHANGED, {"taskId": task_id})
        return ChecklistItemView.model_validate(item)

    def update_checklist_item(
        self, task_id: str, item_id: str, changes: Dict[str, Any]
    ) -> ChecklistItemView:
        cleaned: Dict[str, Any] = {}
        if "title" in changes:
            title = changes["title"]
            if not isinstance(title, str) or not title.strip():
                raise ValidationFailed("Invalid title")
            cleaned["title"] = title.strip()
        if "state" in changes:
            if changes["state"] not in CHECKLIST_STATES:
                raise ValidationFailed("Invalid state")
            cleaned["state"] = changes["state"]
        if "position" in changes:
            if not _is_number(changes["position"]):
                raise ValidationFailed("Invalid position")
            cleaned["position"] = int(changes["position"])
        if not cleaned:
            raise ValidationFailed("No valid fields to update (title/state/position)")

        with self.store.transaction() as db:
            item = (
                db.query(ChecklistItem)
                .filter(ChecklistItem.id == item_id, ChecklistItem.task_id == task_id)
                .first()
            )
            if item is None:
                raise NotFoundError("Checklist item not found")
            for field, value in cleaned.items():
                setattr(item, field, value)
            db.flush()
        self.broadcaster.broadcast(CHECKLIST_CHANGED, {"taskId": task_id})
        return ChecklistItemView.model_validate(item)

    def delete_checklist_item(self, task_id: str, item_id: str) -> None:
        with self.store.transaction() as db:
            deleted = (
                db.query(ChecklistItem)
                .filter(ChecklistItem.id == item_id, ChecklistItem.task_id == task_id)
                .delete(synchronize_session=False)
            )
        if not deleted:
            raise NotFoundError("Checklist item not found")
        self.broadcaster.broadcast(CHECKLIST_CHANGED, {"taskId": task_id})
