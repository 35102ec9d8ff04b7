"""Shared fixtures: a throwaway SQLite store, a scripted provider and the app."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from dzzenos_api.config import get_settings
from dzzenos_api.db import Store
from dzzenos_api.db.models import Board, Task
from dzzenos_api.main import create_app
from dzzenos_api.providers.base import CompletionResult, CompletionUsage
from dzzenos_api.services.sessions import SessionManager
from dzzenos_api.streaming.broadcaster import Broadcaster


class ScriptedProvider:
    """Completion client returning queued replies; an exception in the queue is raised."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[dict] = []
        self.configured = True
        self.closed = False

    async def complete(self, session_key, text, agent_external_id=None, model=None):
        self.calls.append(
            {"session_key": session_key, "text": text, "agent_external_id": agent_external_id}
        )
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, BaseException):
            raise reply
        return CompletionResult(
            text=reply,
            raw={"output_text": reply},
            usage=CompletionUsage(input_tokens=3, output_tokens=2, total_tokens=5),
        )

    async def aclose(self):
        self.closed = True


class RecordingBroadcaster(Broadcaster):
    """Broadcaster that also keeps every (type, payload) it was asked to send."""

    def __init__(self):
        super().__init__(event_name="dzzenos", heartbeat_seconds=15, queue_size=16)
        self.events: list[tuple[str, dict | None]] = []

    def broadcast(self, event_type, payload=None):
        self.events.append((event_type, payload))
        super().broadcast(event_type, payload)

    def types(self) -> list[str]:
        return [t for t, _ in self.events]


def _configure(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{(tmp_path / 'dzzenos.db').as_posix()}")
    monkeypatch.setenv("WORKSPACE_DIR", str(tmp_path / "workspace"))
    monkeypatch.setenv("PROVIDER_MODE", "mock")
    monkeypatch.setenv("DEFAULT_AGENT_ID", "")
    monkeypatch.setenv("RUN_RATE_LIMIT_RPM", "1000")
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path, monkeypatch):
    _configure(tmp_path, monkeypatch)
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def store(settings):
    store = Store.from_url(settings.database_url)
    store.create_all()
    store.seed_if_empty()
    yield store
    store.dispose()


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def sessions(store, broadcaster, settings):
    return SessionManager(store, broadcaster, settings)


@pytest.fixture
def board_id(store):
    with store.read() as db:
        return db.query(Board.id).first()[0]


@pytest.fixture
def make_task(store, board_id):
    def _make(title="Write release notes", status="todo", description=None):
        with store.transaction() as db:
            task = Task(board_id=board_id, title=title, status=status, description=description)
            db.add(task)
            db.flush()
            return task.id

    return _make


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def app(store, provider):
    app = create_app()
    app.state.store = store
    app.state.completion_client = provider
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
