"""Agent run orchestration.

A run is one plan/execute/report invocation against a task. It is recorded
as an ``AgentRun`` with a single ``RunStep``; the completion provider is
called outside any open transaction, and the run's terminal state is
written exactly once (``running`` -> ``succeeded``/``failed``/``cancelled``).
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session as DBSession

from dzzenos_api.config import Settings
from dzzenos_api.core.exceptions import ValidationFailed
from dzzenos_api.core.logging import get_logger
from dzzenos_api.core.time import utcnow
from dzzenos_api.db import Store
from dzzenos_api.db.models import AgentRun, ChecklistItem, RunStep, Task
from dzzenos_api.providers.base import CompletionClient, CompletionUsage
from dzzenos_api.providers.parsing import try_parse_json
from dzzenos_api.schemas import RunResult
from dzzenos_api.services.sessions import UNSET, AgentProfile, SessionManager, TaskContext
from dzzenos_api.streaming.broadcaster import (
    CHECKLIST_CHANGED,
    RUNS_CHANGED,
    TASKS_CHANGED,
    Broadcaster,
)

logger = get_logger(__name__)

RUN_MODES = ("plan", "execute", "report")

MODE_PROMPTS: Dict[str, str] = {
    "plan": (
        "You are a task planner. "
        'Return JSON: { "description": "...", "checklist": ["..."] }.'
    ),
    "execute": (
        "You are executing the task. "
        'Return JSON: { "status": "review" | "doing", "report": "..." }.'
    ),
    "report": "Summarize the completion for changelog. Return bullet points.",
    "chat": "You are helping in task chat. Be concise and actionable.",
}


def build_prompt(
    mode: str,
    task: TaskContext,
    agent: AgentProfile | None = None,
    extra_sections: Optional[List[str]] = None,
) -> str:
    """Assemble the provider input: system profile, mode instructions, task."""
    overrides = agent.prompt_overrides if agent else {}
    sections: List[str] = []
    system_prompt = overrides.get("system")
    if isinstance(system_prompt, str) and system_prompt.strip():
        sections.append(f"System profile:\n{system_prompt.strip()}")
    mode_prompt = overrides.get(mode)
    if not (isinstance(mode_prompt, str) and mode_prompt.strip()):
        mode_prompt = MODE_PROMPTS[mode]
    sections.append(mode_prompt.strip())
    sections.append(f"Task title: {task.title}\nTask description: {task.description or ''}")
    sections.extend(extra_sections or [])
    return "\n\n".join(sections)


def replace_checklist(db: DBSession, task_id: str, titles: List[str]) -> int:
    """Replace every checklist row of a task; positions follow list order."""
    db.query(ChecklistItem).filter(ChecklistItem.task_id == task_id).delete(
        synchronize_session=False
    )
    position = 0
    for raw in titles:
        title = str(raw).strip()
        if not title:
            continue
        db.add(ChecklistItem(task_id=task_id, title=title, state="todo", position=position))
        position += 1
    return position


def _error_text(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class RunEngine:
    def __init__(
        self,
        store: Store,
        provider: CompletionClient,
        broadcaster: Broadcaster,
        sessions: SessionManager,
        settings: Settings,
    ):
        self.store = store
        self.provider = provider
        self.broadcaster = broadcaster
        self.sessions = sessions
        self.settings = settings

    async def run_task(self, task_id: str, mode: str, agent_id: Any = UNSET) -> RunResult:
        """Run ``mode`` against a task and apply its side effects.

        Provider failures mark the run and step ``failed`` (error text kept
        as step output) and are re-raised to the caller.
        """
        if mode not in RUN_MODES:
            raise ValidationFailed("Invalid mode")

        task = self.sessions.task_context(task_id)
        session = self.sessions.ensure_session(task_id, agent_id)
        agent = self.sessions.resolve_agent(task.workspace_id, session.agent_id)
        agent_name = agent.display_name if agent else "orchestrator"
        external_id = (agent.external_id if agent else None) or self.settings.default_agent_id or None
        prompt = build_prompt(mode, task, agent)

        with self.store.transaction() as db:
            self.sessions.mark_running(db, task.id)
            run = AgentRun(
                workspace_id=task.workspace_id,
                board_id=task.board_id,
                task_id=task.id,
                agent_name=agent_name,
                status="running",
            )
            db.add(run)
            db.flush()
            step = RunStep(
                run_id=run.id,
                step_index=0,
                kind=mode,
                status="running",
                input_json={"mode": mode},
            )
            db.add(step)
            db.flush()
            run_id, step_id = run.id, step.id

        logger.info(
            "Run started",
            data={"run_id": run_id, "task_id": task.id, "mode": mode, "agent": agent_name},
        )

        output_text = ""
        parsed: dict | None = None
        terminal = "failed"
        try:
            try:
                result = await self.provider.complete(
                    session.session_key, prompt, agent_external_id=external_id
                )
                output_text = result.text
                parsed = try_parse_json(output_text)
                self._finish(
                    run_id,
                    step_id,
                    "succeeded",
                    {"text": output_text, "parsed": parsed, "usage": result.usage.as_dict()},
                    usage=result.usage,
                )
                terminal = "succeeded"
            except asyncio.CancelledError:
                terminal = "cancelled"
                self._finish(run_id, step_id, "cancelled", {"error": "cancelled"})
                raise
            except Exception as exc:
                self._finish(run_id, step_id, "failed", {"error": _error_text(exc)})
                logger.warning(
                    "Run failed",
                    data={"run_id": run_id, "task_id": task.id, "mode": mode, "error": _error_text(exc)},
                )
                raise
            finally:
                self.sessions.release(task.id, run_id)

            self._apply_side_effects(task, mode, parsed)
        finally:
            self.broadcaster.broadcast(
                RUNS_CHANGED, {"runId": run_id, "taskId": task.id, "status": terminal}
            )

        logger.info("Run finished", data={"run_id": run_id, "task_id": task.id, "mode": mode})
        return RunResult(run_id=run_id, output_text=output_text, parsed=parsed)

    def _finish(
        self,
        run_id: str,
        step_id: str,
        status: str,
        output: dict,
        usage: CompletionUsage | None = None,
    ) -> None:
        """Move step and run out of ``running``; later calls are no-ops."""
        now = utcnow()
        with self.store.transaction() as db:
            db.query(RunStep).filter(RunStep.id == step_id, RunStep.status == "running").update(
                {RunStep.status: status, RunStep.output_json: output, RunStep.finished_at: now},
                synchronize_session=False,
            )
            values: dict = {AgentRun.status: status, AgentRun.finished_at: now}
            if usage is not None:
                values[AgentRun.input_tokens] = usage.input_tokens or None
                values[AgentRun.output_tokens] = usage.output_tokens or None
                values[AgentRun.total_tokens] = usage.total_tokens or None
            db.query(AgentRun).filter(AgentRun.id == run_id, AgentRun.status == "running").update(
                values, synchronize_session=False
            )

    def _apply_side_effects(self, task: TaskContext, mode: str, parsed: dict | None) -> None:
        payload = {"taskId": task.id, "boardId": task.board_id}
        if mode == "plan":
            checklist_replaced = False
            with self.store.transaction() as db:
                description = parsed.get("description") if parsed else None
                if isinstance(description, str) and description.strip():
                    db.query(Task).filter(Task.id == task.id).update(
                        {Task.description: description.strip()}, synchronize_session=False
                    )
                checklist = parsed.get("checklist") if parsed else None
                if isinstance(checklist, list) and checklist:
                    replace_checklist(db, task.id, [str(c) for c in checklist])
                    checklist_replaced = True
            if checklist_replaced:
                self.broadcaster.broadcast(CHECKLIST_CHANGED, {"taskId": task.id})
            self.broadcaster.broadcast(TASKS_CHANGED, payload)

        elif mode == "execute":
            if parsed and parsed.get("status") == "review":
                with self.store.transaction() as db:
                    db.query(Task).filter(Task.id == task.id).update(
                        {Task.status: "review"}, synchronize_session=False
                    )
                logger.info("Task moved to review by run", data=payload)
                self.broadcaster.broadcast(TASKS_CHANGED, payload)
