"""Completion summaries written to board docs when a task is done."""

from __future__ import annotations

from dzzenos_api.core.logging import get_logger
from dzzenos_api.providers.base import CompletionClient
from dzzenos_api.services.docs import DocsStore
from dzzenos_api.services.sessions import SessionManager, TaskContext
from dzzenos_api.streaming.broadcaster import DOCS_CHANGED, Broadcaster

logger = get_logger(__name__)

SUMMARY_PROMPT = (
    "Summarize the completed task for changelog and memory. "
    "Return 2-5 concise bullet points (Markdown)."
)


def fallback_summary(title: str, description: str | None) -> str:
    body = description.strip() if description and description.strip() else "Task completed."
    return f'Summary for "{title}"\n\n{body}'


class SummaryService:
    def __init__(
        self,
        provider: CompletionClient,
        sessions: SessionManager,
        docs: DocsStore,
        broadcaster: Broadcaster,
    ):
        self.provider = provider
        self.sessions = sessions
        self.docs = docs
        self.broadcaster = broadcaster

    async def generate_summary(self, task: TaskContext) -> str:
        """Ask the provider for a summary; any failure yields the fallback text."""
        fallback = fallback_summary(task.title, task.description)
        if not getattr(self.provider, "configured", True):
            return fallback
        try:
            session = self.sessions.ensure_session(task.id)
            agent = self.sessions.resolve_agent(task.workspace_id, session.agent_id)
            external_id = agent.external_id if agent else None
            result = await self.provider.complete(
                session.session_key,
                f"{SUMMARY_PROMPT}\n\nTask title: {task.title}\nTask description: {task.description or ''}",
                agent_external_id=external_id or self.sessions.settings.default_agent_id or None,
            )
        except Exception as exc:
            logger.warning(
                "Summary generation failed, using fallback",
                data={"task_id": task.id, "error": str(exc)},
            )
            return fallback
        text = (result.text or "").strip()
        return text or fallback

    async def record_completion(self, task_id: str) -> str:
        task = self.sessions.task_context(task_id)
        summary = await self.generate_summary(task)
        self.docs.append_board_summary(task.board_id, task.title, summary)
        self.broadcaster.broadcast(DOCS_CHANGED, {"boardId": task.board_id})
        return summary
