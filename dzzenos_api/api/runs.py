"""Cross-task run listing for dashboards."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from dzzenos_api.api.deps import get_run_finder
from dzzenos_api.schemas import RunView
from dzzenos_api.services.run_finder import RunFinder

router = APIRouter(prefix="/runs", tags=["runs"])


@router.get("", response_model=List[RunView])
async def list_runs(
    run_status: Optional[str] = Query(default=None, alias="status"),
    stuck_minutes: Optional[int] = Query(default=None, alias="stuckMinutes"),
    finder: RunFinder = Depends(get_run_finder),
) -> List[RunView]:
    """Newest first; ``stuckMinutes`` narrows to runs still running past that age."""
    return finder.list_runs(run_status, stuck_minutes)
