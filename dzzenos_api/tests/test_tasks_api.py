"""HTTP tests for task CRUD, runs, sessions and checklist endpoints."""

import json

from dzzenos_api.config import get_settings
from dzzenos_api.db.models import Agent


def _create(client, title="Write docs", **extra):
    res = client.post("/tasks", json={"title": title, **extra})
    assert res.status_code == 201, res.text
    return res.json()


def test_create_list_get_delete(client, board_id):
    task = _create(client, description="first")
    second = _create(client, title="Second")

    assert task["board_id"] == board_id
    assert task["status"] == "ideas"
    assert task["position"] == 0
    assert second["position"] == 1
    assert set(task) == {
        "id", "board_id", "title", "description", "status", "position", "created_at", "updated_at"
    }

    listed = client.get("/tasks", params={"boardId": board_id}).json()
    assert [t["id"] for t in listed] == [task["id"], second["id"]]
    assert client.get(f"/tasks/{task['id']}").json()["description"] == "first"

    assert client.delete(f"/tasks/{task['id']}").json() == {"ok": True}
    assert client.get(f"/tasks/{task['id']}").status_code == 404


def test_create_requires_title(client):
    res = client.post("/tasks", json={"description": "no title"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "E4000"


def test_patch_validation_and_envelope(client):
    task = _create(client)

    res = client.patch(f"/tasks/{task['id']}", json={"color": "red"})
    assert res.status_code == 400
    body = res.json()
    assert body["detail"] == "No valid fields to update (status/title/description/position)"
    assert body["error"]["message"] == body["detail"]
    assert "request_id" in body["error"]

    assert client.patch(f"/tasks/{task['id']}", json={"status": "bogus"}).status_code == 400
    assert client.patch(f"/tasks/{task['id']}", json={"position": "x"}).status_code == 400
    assert client.patch("/tasks/missing", json={"title": "x"}).status_code == 404

    res = client.patch(f"/tasks/{task['id']}", json={"title": "Renamed", "position": 2.5})
    assert res.status_code == 200
    assert res.json()["title"] == "Renamed"
    assert res.json()["position"] == 2.5


def test_request_id_is_echoed(client):
    res = client.get("/tasks/missing", headers={"X-Request-ID": "req-123"})
    assert res.status_code == 404
    assert res.headers["X-Request-ID"] == "req-123"
    assert res.json()["error"]["request_id"] == "req-123"


def test_run_endpoint_returns_result_and_records_runs(client, provider):
    task = _create(client)
    provider.replies.append(json.dumps({"description": "Planned", "checklist": ["one", "two"]}))

    res = client.post(f"/tasks/{task['id']}/run", json={"mode": "plan"})
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["outputText"].startswith("{")
    assert body["parsed"]["checklist"] == ["one", "two"]

    checklist = client.get(f"/tasks/{task['id']}/checklist").json()
    assert [(c["title"], c["position"]) for c in checklist] == [("one", 0), ("two", 1)]

    runs = client.get(f"/tasks/{task['id']}/runs").json()
    assert [r["id"] for r in runs] == [body["runId"]]
    assert runs[0]["status"] == "succeeded"
    assert runs[0]["is_stuck"] is False
    assert runs[0]["steps"][0]["kind"] == "plan"


def test_run_endpoint_errors(client, provider):
    from dzzenos_api.core.exceptions import ProviderError

    task = _create(client)
    assert client.post(f"/tasks/{task['id']}/run", json={"mode": "deploy"}).status_code == 400
    assert client.post("/tasks/missing/run", json={"mode": "plan"}).status_code == 404
    assert (
        client.post(f"/tasks/{task['id']}/run", json={"mode": "plan", "agentId": "nope"}).status_code
        == 400
    )

    provider.replies.append(ProviderError("upstream down"))
    res = client.post(f"/tasks/{task['id']}/run", json={"mode": "execute"})
    assert res.status_code == 500
    assert res.json()["detail"] == "upstream down"
    runs = client.get(f"/tasks/{task['id']}/runs").json()
    assert runs[0]["status"] == "failed"
    assert runs[0]["steps"][0]["output_json"] == {"error": "upstream down"}


def test_session_binding(client, store):
    task = _create(client)
    with store.transaction() as db:
        agent = Agent(display_name="Writer", openclaw_agent_id="writer")
        db.add(agent)
        db.flush()
        agent_id = agent.id

    assert client.get(f"/tasks/{task['id']}/session").status_code == 404

    res = client.post(f"/tasks/{task['id']}/session", json={"agentId": agent_id})
    assert res.status_code == 200
    assert res.json()["agent_id"] == agent_id
    assert res.json()["agent_display_name"] == "Writer"
    key = res.json()["session_key"]

    # Empty body leaves the binding alone
    assert client.post(f"/tasks/{task['id']}/session", json={}).json()["agent_id"] == agent_id
    res = client.post(f"/tasks/{task['id']}/session", json={"agentId": None})
    assert res.json()["agent_id"] is None
    assert res.json()["session_key"] == key
    assert client.get(f"/tasks/{task['id']}/session").json()["session_key"] == key


def test_checklist_crud(client):
    task = _create(client)
    base = f"/tasks/{task['id']}/checklist"

    first = client.post(base, json={"title": "Draft"}).json()
    second = client.post(base, json={"title": "Review"}).json()
    assert (first["position"], second["position"]) == (0, 1)
    assert first["state"] == "todo"

    res = client.patch(f"{base}/{first['id']}", json={"state": "done"})
    assert res.json()["state"] == "done"
    assert client.patch(f"{base}/{first['id']}", json={"state": "blocked"}).status_code == 400
    assert client.patch(f"{base}/missing", json={"state": "done"}).status_code == 404

    assert client.delete(f"{base}/{second['id']}").json() == {"ok": True}
    assert client.delete(f"{base}/{second['id']}").status_code == 404
    assert [c["title"] for c in client.get(base).json()] == ["Draft"]


def test_chat_stores_both_messages(client, provider):
    task = _create(client)
    provider.replies.append("Here is my answer")

    res = client.post(f"/tasks/{task['id']}/chat", json={"text": "What next?"})
    assert res.status_code == 200
    body = res.json()
    assert body["reply"] == "Here is my answer"
    assert [m["role"] for m in body["messages"]] == ["user", "assistant"]
    assert "User message: What next?" in provider.calls[0]["text"]

    history = client.get(f"/tasks/{task['id']}/chat").json()
    assert [m["content"] for m in history] == ["What next?", "Here is my answer"]


def test_chat_provider_error_becomes_reply(client, provider):
    from dzzenos_api.core.exceptions import ProviderError

    task = _create(client)
    provider.replies.append(ProviderError("agent offline"))

    res = client.post(f"/tasks/{task['id']}/chat", json={"text": "hello"})
    assert res.status_code == 200
    assert res.json()["reply"] == "OpenResponses error: agent offline"
    assert client.post(f"/tasks/{task['id']}/chat", json={"text": "  "}).status_code == 400


def test_run_rate_limit(monkeypatch, client, provider):
    monkeypatch.setenv("RUN_RATE_LIMIT_RPM", "2")
    get_settings.cache_clear()
    task = _create(client)

    statuses = [
        client.post(f"/tasks/{task['id']}/run", json={"mode": "report"}).status_code
        for _ in range(3)
    ]

    assert statuses == [200, 200, 429]
    res = client.post(f"/tasks/{task['id']}/chat", json={"text": "hi"})
    assert res.status_code == 429
    assert res.headers["Retry-After"] == "60"
    assert res.json()["error"]["code"] == "E4290"


def test_patch_to_doing_queues_auto_run(client, app):
    task = _create(client, status="todo")

    res = client.patch(f"/tasks/{task['id']}", json={"status": "doing"})
    assert res.status_code == 200
    client.portal.call(app.state.worker.drain, 5)

    runs = client.get(f"/tasks/{task['id']}/runs").json()
    assert len(runs) == 1
    assert runs[0]["steps"][0]["kind"] == "execute"

    client.patch(f"/tasks/{task['id']}", json={"status": "doing"})
    client.portal.call(app.state.worker.drain, 5)
    assert len(client.get(f"/tasks/{task['id']}/runs").json()) == 1
