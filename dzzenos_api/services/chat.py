"""Per-task chat through the task's provider session."""

from __future__ import annotations

from typing import Any, List

from dzzenos_api.config import Settings
from dzzenos_api.core.exceptions import NotFoundError, ValidationFailed
from dzzenos_api.core.logging import get_logger
from dzzenos_api.db import Store
from dzzenos_api.db.models import Task, TaskMessage
from dzzenos_api.providers.base import CompletionClient
from dzzenos_api.schemas import ChatReply, MessageView
from dzzenos_api.services.run_engine import build_prompt
from dzzenos_api.services.sessions import UNSET, SessionManager
from dzzenos_api.streaming.broadcaster import CHAT_CHANGED, Broadcaster

logger = get_logger(__name__)


class ChatService:
    def __init__(
        self,
        store: Store,
        provider: CompletionClient,
        sessions: SessionManager,
        broadcaster: Broadcaster,
        settings: Settings,
    ):
        self.store = store
        self.provider = provider
        self.sessions = sessions
        self.broadcaster = broadcaster
        self.settings = settings

    def list_messages(self, task_id: str) -> List[MessageView]:
        with self.store.read() as db:
            if db.get(Task, task_id) is None:
                raise NotFoundError("Task not found")
            rows = (
                db.query(TaskMessage)
                .filter(TaskMessage.task_id == task_id)
                .order_by(TaskMessage.created_at.asc())
                .all()
            )
        return [MessageView.model_validate(m) for m in rows]

    def _store_message(self, task_id: str, role: str, content: str) -> TaskMessage:
        with self.store.transaction() as db:
            message = TaskMessage(task_id=task_id, role=role, content=content)
            db.add(message)
            db.flush()
        return message

    async def send(self, task_id: str, text: str, agent_id: Any = UNSET) -> ChatReply:
        """Store the user message, ask the provider, store the reply.

        A provider failure becomes the reply text instead of an error.
        """
        text = (text or "").strip() if isinstance(text, str) else ""
        if not text:
            raise ValidationFailed("text is required")

        task = self.sessions.task_context(task_id)
        session = self.sessions.ensure_session(task_id, agent_id)
        agent = self.sessions.resolve_agent(task.workspace_id, session.agent_id)
        external_id = (agent.external_id if agent else None) or self.settings.default_agent_id or None
        prompt = build_prompt("chat", task, agent, extra_sections=[f"User message: {text}"])

        user_message = self._store_message(task_id, "user", text)
        try:
            result = await self.provider.complete(
                session.session_key, prompt, agent_external_id=external_id
            )
            reply = result.text
        except Exception as exc:
            logger.warning("Chat completion failed", data={"task_id": task_id, "error": str(exc)})
            reply = f"OpenResponses error: {exc}"
        assistant_message = self._store_message(task_id, "assistant", reply)

        self.broadcaster.broadcast(CHAT_CHANGED, {"taskId": task_id})
        return ChatReply(
            reply=reply,
            messages=[
                MessageView.model_validate(user_message),
                MessageView.model_validate(assistant_message),
            ],
        )
