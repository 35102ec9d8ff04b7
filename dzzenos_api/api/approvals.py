"""Approval listing and decisions."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from dzzenos_api.api.deps import get_approval_gate
from dzzenos_api.schemas import ApprovalView
from dzzenos_api.services.approvals import ApprovalGate

router = APIRouter(prefix="/approvals", tags=["approvals"])


class DecisionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    decided_by: Optional[str] = Field(default=None, alias="decidedBy")
    reason: Optional[str] = None


@router.get("", response_model=List[ApprovalView])
async def list_approvals(
    approval_status: Optional[str] = Query(default=None, alias="status"),
    gate: ApprovalGate = Depends(get_approval_gate),
) -> List[ApprovalView]:
    return gate.list_approvals(approval_status)


@router.get("/{approval_id}", response_model=ApprovalView)
async def get_approval(
    approval_id: str,
    gate: ApprovalGate = Depends(get_approval_gate),
) -> ApprovalView:
    return gate.get(approval_id)


@router.post("/{approval_id}/approve", response_model=ApprovalView)
async def approve(
    approval_id: str,
    body: Optional[DecisionRequest] = None,
    gate: ApprovalGate = Depends(get_approval_gate),
) -> ApprovalView:
    body = body or DecisionRequest()
    return gate.decide(approval_id, "approve", body.decided_by, body.reason)


@router.post("/{approval_id}/reject", response_model=ApprovalView)
async def reject(
    approval_id: str,
    body: Optional[DecisionRequest] = None,
    gate: ApprovalGate = Depends(get_approval_gate),
) -> ApprovalView:
    body = body or DecisionRequest()
    return gate.decide(approval_id, "reject", body.decided_by, body.reason)
