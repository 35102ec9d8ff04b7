"""SSE (Server-Sent Events) formatting utilities."""

import json
from typing import Any, Dict

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse_event(event_name: str, data: Dict[str, Any]) -> str:
    """Format a single SSE frame.

    Args:
        event_name: Value of the ``event:`` field (one name for every frame;
            the change kind travels inside ``data["type"]``)
        data: JSON-serializable frame body

    Returns:
        Frame text terminated by the blank line that ends an SSE event
    """
    return f"event: {event_name}\ndata: {json.dumps(data, default=str)}\n\n"


def format_sse_comment(text: str) -> str:
    """Comment frame; ignored by EventSource but keeps proxies from idling out."""
    return f": {text}\n\n"
