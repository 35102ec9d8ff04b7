"""Task chat endpoints."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from dzzenos_api.api.deps import enforce_run_rate_limit, get_chat_service
from dzzenos_api.schemas import ChatReply, MessageView
from dzzenos_api.services.chat import ChatService
from dzzenos_api.services.sessions import UNSET

router = APIRouter(prefix="/tasks", tags=["chat"])


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    agent_id: Optional[str] = Field(default=None, alias="agentId")


@router.get("/{task_id}/chat", response_model=List[MessageView])
async def list_messages(
    task_id: str,
    chat: ChatService = Depends(get_chat_service),
) -> List[MessageView]:
    return chat.list_messages(task_id)


@router.post(
    "/{task_id}/chat",
    response_model=ChatReply,
    dependencies=[Depends(enforce_run_rate_limit)],
)
async def send_message(
    task_id: str,
    payload: ChatRequest,
    chat: ChatService = Depends(get_chat_service),
) -> ChatReply:
    agent_id = payload.agent_id if "agent_id" in payload.model_fields_set else UNSET
    return await chat.send(task_id, payload.text, agent_id)
