"""Server-Sent Events stream of change notifications."""

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from dzzenos_api.api.deps import get_broadcaster
from dzzenos_api.streaming.broadcaster import Broadcaster
from dzzenos_api.streaming.sse import SSE_HEADERS

router = APIRouter(tags=["events"])


@router.get("/events")
async def events(broadcaster: Broadcaster = Depends(get_broadcaster)) -> StreamingResponse:
    client = broadcaster.register()
    return StreamingResponse(
        broadcaster.stream(client),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
