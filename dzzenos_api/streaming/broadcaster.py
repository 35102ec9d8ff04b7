"""Fan-out of change events to every open SSE connection."""

from __future__ import annotations

import asyncio
import secrets
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from dzzenos_api.core.logging import get_logger
from dzzenos_api.core.time import epoch_ms, utcnow
from dzzenos_api.streaming.sse import format_sse_comment, format_sse_event

logger = get_logger(__name__)

# Change kinds carried in the "type" field of each frame
RUNS_CHANGED = "runs.changed"
APPROVALS_CHANGED = "approvals.changed"
TASKS_CHANGED = "tasks.changed"
CHECKLIST_CHANGED = "task.checklist.changed"
SESSION_CHANGED = "task.session.changed"
CHAT_CHANGED = "task.chat.changed"
DOCS_CHANGED = "docs.changed"
AGENTS_CHANGED = "agents.changed"


@dataclass
class SseClient:
    id: str
    queue: asyncio.Queue
    connected_at: Any = field(default_factory=utcnow)
    closed: bool = False


class Broadcaster:
    """Process-scoped registry of SSE clients.

    Each client owns a bounded queue of pre-formatted frames. ``broadcast``
    never blocks and never raises: a client whose queue is full is dropped
    and the remaining clients still receive the frame. A heartbeat comment is
    pushed every ``heartbeat_seconds`` while the broadcaster is started.
    """

    def __init__(
        self,
        event_name: str = "dzzenos",
        heartbeat_seconds: float = 15.0,
        queue_size: int = 256,
    ):
        self.event_name = event_name
        self.heartbeat_seconds = heartbeat_seconds
        self.queue_size = queue_size
        self._clients: dict[str, SseClient] = {}
        self._heartbeat_task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        if self._heartbeat_task is None:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    async def stop(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None
        for client in list(self._clients.values()):
            self._close(client)
        logger.info("Broadcaster stopped")

    def register(self) -> SseClient:
        client = SseClient(id=secrets.token_hex(8), queue=asyncio.Queue(maxsize=self.queue_size))
        self._clients[client.id] = client
        logger.info("SSE client connected", data={"client_id": client.id, "clients": self.client_count})
        return client

    def unregister(self, client_id: str) -> None:
        client = self._clients.pop(client_id, None)
        if client is not None:
            client.closed = True
            logger.info(
                "SSE client disconnected",
                data={"client_id": client_id, "clients": self.client_count},
            )

    def frame(self, event_type: str, payload: dict[str, Any] | None = None) -> str:
        data: dict[str, Any] = {"ts": epoch_ms(), "type": event_type}
        if payload is not None:
            data["payload"] = payload
        return format_sse_event(self.event_name, data)

    def broadcast(self, event_type: str, payload: dict[str, Any] | None = None) -> None:
        """Queue a change event for every connected client.

        Safe to call from worker threads: delivery is handed to the loop the
        broadcaster was started on.
        """
        frame = self.frame(event_type, payload)
        loop = self._loop
        if loop is not None and not loop.is_closed() and not _on_loop(loop):
            loop.call_soon_threadsafe(self._deliver, frame)
        else:
            self._deliver(frame)

    def _deliver(self, frame: str) -> int:
        delivered = 0
        for client in list(self._clients.values()):
            try:
                client.queue.put_nowait(frame)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(
                    "SSE client too slow, dropping connection",
                    data={"client_id": client.id, "queue_size": self.queue_size},
                )
                self._close(client)
            except Exception as exc:
                logger.warning(
                    "SSE write failed",
                    data={"client_id": client.id, "error": str(exc)},
                )
                self._close(client)
        return delivered

    def _close(self, client: SseClient) -> None:
        self.unregister(client.id)
        # Wake the reader so its stream ends; it may be full, in which case
        # the closed flag alone terminates it.
        try:
            client.queue.put_nowait(None)
        except asyncio.QueueFull:
            pass

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_seconds)
            self._deliver(format_sse_comment(f"ping {epoch_ms()}"))

    async def stream(self, client: SseClient) -> AsyncIterator[str]:
        """Frames for one connection: a hello frame, then queued frames until closed."""
        try:
            yield self.frame("hello")
            while not client.closed:
                item = await client.queue.get()
                if item is None:
                    break
                yield item
        finally:
            self.unregister(client.id)


def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False
