"""HTTP tests for runs listing, catalog, docs, health and application startup."""

from datetime import timedelta

from fastapi.testclient import TestClient

from dzzenos_api.core.time import utcnow
from dzzenos_api.db.models import AgentRun, Board, RunStep, Task
from dzzenos_api.main import create_app


def _seed_run(store, board_id, status, age_minutes, with_step=True):
    created = utcnow() - timedelta(minutes=age_minutes)
    with store.transaction() as db:
        board = db.get(Board, board_id)
        task = Task(board_id=board_id, title=f"{status} {age_minutes}m", status="doing")
        db.add(task)
        db.flush()
        run = AgentRun(
            workspace_id=board.workspace_id,
            board_id=board_id,
            task_id=task.id,
            agent_name="orchestrator",
            status=status,
            created_at=created,
            started_at=created,
        )
        db.add(run)
        db.flush()
        if with_step:
            db.add(RunStep(run_id=run.id, step_index=0, kind="execute", status=status))
        return run.id


def test_runs_stuck_query(client, store, board_id):
    finished = _seed_run(store, board_id, "succeeded", 30)
    old_running = _seed_run(store, board_id, "running", 30, with_step=False)
    _seed_run(store, board_id, "running", 1, with_step=False)

    res = client.get("/runs", params={"status": "running", "stuckMinutes": 10})
    assert res.status_code == 200
    body = res.json()
    assert [r["id"] for r in body] == [old_running]
    assert body[0]["is_stuck"] is True
    assert body[0]["task_title"] == "running 30m"

    all_runs = client.get("/runs").json()
    assert {r["id"] for r in all_runs} >= {finished, old_running}
    assert client.get("/runs", params={"stuckMinutes": "soon"}).status_code == 400
    assert client.get("/runs", params={"status": "exploded"}).status_code == 400


def test_startup_sweep_runs_in_lifespan(store, provider, board_id):
    orphan = _seed_run(store, board_id, "running", 3)
    placeholder = _seed_run(store, board_id, "running", 3, with_step=False)

    app = create_app()
    app.state.store = store
    app.state.completion_client = provider
    with TestClient(app) as client:
        statuses = {r["id"]: r["status"] for r in client.get("/runs").json()}

    assert statuses[orphan] == "failed"
    assert statuses[placeholder] == "running"


def test_boards_and_agents(client, board_id):
    boards = client.get("/boards").json()
    assert [b["id"] for b in boards] == [board_id]
    assert boards[0]["name"] == "Main"

    res = client.post(
        "/agents",
        json={
            "displayName": "Writer",
            "openclawAgentId": "writer",
            "promptOverrides": {"system": "Be brief.", "unknown": "dropped"},
        },
    )
    assert res.status_code == 201
    agent = res.json()
    assert agent["prompt_overrides"] == {"system": "Be brief."}
    assert agent["enabled"] is True

    assert client.post("/agents", json={"displayName": "Copy", "openclawAgentId": "writer"}).status_code == 409
    assert client.post("/agents", json={"displayName": "  "}).status_code == 400
    assert [a["display_name"] for a in client.get("/agents").json()] == ["Writer"]


def test_board_docs_after_done(client, app, board_id, provider):
    task_id = client.post("/tasks", json={"title": "Publish", "status": "review"}).json()["id"]
    provider.replies.append("- Published")

    client.patch(f"/tasks/{task_id}", json={"status": "done"})
    client.portal.call(app.state.worker.drain, 5)

    doc = client.get(f"/docs/boards/{board_id}").json()
    assert doc["boardId"] == board_id
    assert "## Publish\n\n- Published" in doc["content"]
    assert "Publish\n- Published" in client.get(f"/docs/boards/{board_id}/changelog").json()["content"]
    assert "- Published" in client.get(f"/docs/boards/{board_id}/memory").json()["content"]
    assert client.get("/docs/boards/missing").status_code == 404


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"
    assert body["sse_clients"] == 0
    assert body["pending_jobs"] == 0
    assert body["environment"] == "test"


def test_unknown_route_uses_envelope(client):
    res = client.get("/nope")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "E4040"


def test_wrong_method_uses_envelope(client):
    res = client.put("/health")
    assert res.status_code == 405
    body = res.json()
    assert body["detail"] == "Method Not Allowed"
    assert body["error"]["code"] == "E4050"
