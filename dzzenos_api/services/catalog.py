"""Boards and agent profiles."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from dzzenos_api.core.exceptions import ConflictError, NotFoundError, ValidationFailed
from dzzenos_api.db import Store
from dzzenos_api.db.models import Agent, Board, Workspace
from dzzenos_api.schemas import AgentView, BoardView
from dzzenos_api.streaming.broadcaster import AGENTS_CHANGED, Broadcaster

PROMPT_OVERRIDE_KEYS = ("system", "plan", "execute", "report", "chat")


def clean_prompt_overrides(raw: Any) -> Dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationFailed("Invalid promptOverrides")
    cleaned = {}
    for key in PROMPT_OVERRIDE_KEYS:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            cleaned[key] = value.strip()
    return cleaned


class CatalogService:
    def __init__(self, store: Store, broadcaster: Broadcaster):
        self.store = store
        self.broadcaster = broadcaster

    def list_boards(self, workspace_id: Optional[str] = None) -> List[BoardView]:
        with self.store.read() as db:
            query = db.query(Board)
            if workspace_id:
                query = query.filter(Board.workspace_id == workspace_id)
            boards = query.order_by(Board.position.asc(), Board.created_at.asc()).all()
        return [BoardView.model_validate(b) for b in boards]

    def get_board(self, board_id: str) -> BoardView:
        with self.store.read() as db:
            board = db.get(Board, board_id)
        if board is None:
            raise NotFoundError("Board not found")
        return BoardView.model_validate(board)

    def list_agents(self) -> List[AgentView]:
        with self.store.read() as db:
            agents = db.query(Agent).order_by(Agent.sort_order.asc(), Agent.created_at.asc()).all()
        return [AgentView.model_validate(a) for a in agents]

    def create_agent(
        self,
        display_name: str,
        openclaw_agent_id: Optional[str] = None,
        description: Optional[str] = None,
        enabled: bool = True,
        sort_order: int = 0,
        prompt_overrides: Any = None,
        workspace_id: Optional[str] = None,
    ) -> AgentView:
        if not isinstance(display_name, str) or not display_name.strip():
            raise ValidationFailed("displayName is required")
        overrides = clean_prompt_overrides(prompt_overrides)
        try:
            with self.store.transaction() as db:
                if workspace_id and db.get(Workspace, workspace_id) is None:
                    raise NotFoundError("Workspace not found")
                agent = Agent(
                    display_name=display_name.strip(),
                    openclaw_agent_id=(openclaw_agent_id or "").strip() or None,
                    description=description,
                    enabled=enabled,
                    sort_order=sort_order,
                    prompt_overrides=overrides or None,
                    workspace_id=workspace_id,
                )
                db.add(agent)
                db.flush()
        except IntegrityError as exc:
            raise ConflictError("Agent with this openclawAgentId already exists") from exc
        self.broadcaster.broadcast(AGENTS_CHANGED, {"agentId": agent.id})
        return AgentView.model_validate(agent)
