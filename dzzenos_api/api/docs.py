"""Read access to the per-board documents."""

from fastapi import APIRouter, Depends

from dzzenos_api.api.deps import get_catalog, get_docs
from dzzenos_api.services.catalog import CatalogService
from dzzenos_api.services.docs import DocsStore

router = APIRouter(prefix="/docs", tags=["docs"])


@router.get("/boards/{board_id}")
async def get_board_doc(
    board_id: str,
    docs: DocsStore = Depends(get_docs),
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    catalog.get_board(board_id)
    return {"boardId": board_id, "content": docs.read_board_doc(board_id)}


@router.get("/boards/{board_id}/changelog")
async def get_board_changelog(
    board_id: str,
    docs: DocsStore = Depends(get_docs),
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    catalog.get_board(board_id)
    return {"boardId": board_id, "content": docs.read_changelog(board_id)}


@router.get("/boards/{board_id}/memory")
async def get_board_memory(
    board_id: str,
    docs: DocsStore = Depends(get_docs),
    catalog: CatalogService = Depends(get_catalog),
) -> dict:
    catalog.get_board(board_id)
    return {"boardId": board_id, "content": docs.read_memory(board_id)}
