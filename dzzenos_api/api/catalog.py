"""Boards and agent profiles."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from dzzenos_api.api.deps import get_catalog
from dzzenos_api.schemas import AgentView, BoardView
from dzzenos_api.services.catalog import CatalogService

router = APIRouter(tags=["catalog"])


class AgentCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: str = Field(alias="displayName")
    openclaw_agent_id: Optional[str] = Field(default=None, alias="openclawAgentId")
    description: Optional[str] = None
    enabled: bool = True
    sort_order: int = Field(default=0, alias="sortOrder")
    prompt_overrides: Optional[Dict[str, Any]] = Field(default=None, alias="promptOverrides")
    workspace_id: Optional[str] = Field(default=None, alias="workspaceId")


@router.get("/boards", response_model=List[BoardView])
async def list_boards(
    workspace_id: Optional[str] = Query(default=None, alias="workspaceId"),
    catalog: CatalogService = Depends(get_catalog),
) -> List[BoardView]:
    return catalog.list_boards(workspace_id)


@router.get("/agents", response_model=List[AgentView])
async def list_agents(catalog: CatalogService = Depends(get_catalog)) -> List[AgentView]:
    return catalog.list_agents()


@router.post("/agents", response_model=AgentView, status_code=status.HTTP_201_CREATED)
async def create_agent(
    body: AgentCreate,
    catalog: CatalogService = Depends(get_catalog),
) -> AgentView:
    return catalog.create_agent(
        display_name=body.display_name,
        openclaw_agent_id=body.openclaw_agent_id,
        description=body.description,
        enabled=body.enabled,
        sort_order=body.sort_order,
        prompt_overrides=body.prompt_overrides,
        workspace_id=body.workspace_id,
    )
