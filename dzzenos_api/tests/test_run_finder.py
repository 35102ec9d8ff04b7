"""Tests for run listings, stuck-run flagging and the startup sweep."""

from datetime import timedelta

import pytest

from dzzenos_api.core.exceptions import NotFoundError, ValidationFailed
from dzzenos_api.core.time import utcnow
from dzzenos_api.db.models import AgentRun, Board, RunStep, TaskSession
from dzzenos_api.services.run_finder import ABANDONED_ERROR, RunFinder, reap_orphaned_runs


@pytest.fixture
def finder(store):
    return RunFinder(store, default_stuck_minutes=5)


@pytest.fixture
def add_run(store, board_id):
    with store.read() as db:
        workspace_id = db.get(Board, board_id).workspace_id

    def _add(task_id, status="running", age_minutes=0, with_step=True):
        created = utcnow() - timedelta(minutes=age_minutes)
        with store.transaction() as db:
            run = AgentRun(
                workspace_id=workspace_id,
                board_id=board_id,
                task_id=task_id,
                agent_name="orchestrator",
                status=status,
                started_at=created,
                created_at=created,
            )
            db.add(run)
            db.flush()
            if with_step:
                db.add(RunStep(run_id=run.id, step_index=0, kind="execute", status=status))
            return run.id

    return _add


def test_stuck_filter_returns_only_old_running_runs(finder, add_run, make_task):
    task_id = make_task()
    old_running = add_run(task_id, "running", age_minutes=30)
    add_run(task_id, "running", age_minutes=1)
    add_run(task_id, "succeeded", age_minutes=30)

    runs = finder.list_runs(status="running", stuck_minutes=10)

    assert [r.id for r in runs] == [old_running]
    assert runs[0].is_stuck is True
    assert runs[0].task_title == "Write release notes"


def test_listing_flags_stuck_with_default_window(finder, add_run, make_task):
    task_id = make_task()
    stuck = add_run(task_id, "running", age_minutes=6)
    fresh = add_run(task_id, "running", age_minutes=0)
    finished = add_run(task_id, "failed", age_minutes=60)

    flags = {r.id: r.is_stuck for r in finder.list_runs()}

    assert flags == {stuck: True, fresh: False, finished: False}


def test_listing_is_newest_first_and_filtered_by_status(finder, add_run, make_task):
    task_id = make_task()
    older = add_run(task_id, "failed", age_minutes=3)
    newer = add_run(task_id, "failed", age_minutes=1)
    add_run(task_id, "succeeded", age_minutes=2)

    assert [r.id for r in finder.list_runs(status="failed")] == [newer, older]


def test_invalid_filters(finder):
    with pytest.raises(ValidationFailed):
        finder.list_runs(status="exploded")
    with pytest.raises(ValidationFailed):
        finder.list_runs(stuck_minutes=-1)


def test_task_runs_nest_steps(finder, add_run, make_task):
    task_id = make_task()
    run_id = add_run(task_id, "running", age_minutes=20)

    (run,) = finder.list_task_runs(task_id, stuck_minutes=10)

    assert run.id == run_id
    assert run.is_stuck is True
    assert [s.kind for s in run.steps] == ["execute"]
    with pytest.raises(NotFoundError):
        finder.list_task_runs("missing")


def test_startup_sweep_fails_orphaned_engine_runs(store, sessions, add_run, make_task):
    task_id = make_task()
    orphan = add_run(task_id, "running", age_minutes=2)
    placeholder = add_run(task_id, "running", with_step=False)
    done = add_run(task_id, "succeeded")
    sessions.ensure_session(task_id)
    with store.transaction() as db:
        db.get(TaskSession, task_id).status = "running"

    assert reap_orphaned_runs(store) == 1

    with store.read() as db:
        assert db.get(AgentRun, orphan).status == "failed"
        assert db.get(AgentRun, orphan).finished_at is not None
        step = db.query(RunStep).filter(RunStep.run_id == orphan).one()
        assert step.status == "failed"
        assert step.output_json == {"error": ABANDONED_ERROR}
        assert db.get(AgentRun, placeholder).status == "running"
        assert db.get(AgentRun, done).status == "succeeded"
        assert db.get(TaskSession, task_id).status == "idle"

    assert reap_orphaned_runs(store) == 0
