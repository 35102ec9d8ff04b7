"""SSE framing and fan-out."""

from dzzenos_api.streaming.broadcaster import Broadcaster
from dzzenos_api.streaming.sse import SSE_HEADERS, format_sse_comment, format_sse_event

__all__ = ["Broadcaster", "SSE_HEADERS", "format_sse_comment", "format_sse_event"]
