"""Side effects fired by task status changes."""

from __future__ import annotations

from typing import List

from dzzenos_api.core.logging import get_logger
from dzzenos_api.services.run_engine import RunEngine
from dzzenos_api.services.summaries import SummaryService
from dzzenos_api.workers import BackgroundWorker, Job

logger = get_logger(__name__)

AUTO_RUN_JOB = "auto-run"
DONE_SUMMARY_JOB = "done-summary"


class StatusTransitionTrigger:
    """Moving a task into ``doing`` starts an execute run; into ``done`` writes a summary.

    Both are queued on the background worker, so the status change itself
    never waits for or fails because of them.
    """

    def __init__(self, worker: BackgroundWorker, engine: RunEngine, summaries: SummaryService):
        self.worker = worker
        self.engine = engine
        self.summaries = summaries

    def on_status_change(self, task_id: str, previous: str, current: str) -> List[Job]:
        if previous == current:
            return []

        jobs = []
        if current == "doing":
            logger.info("Queueing auto-run", data={"task_id": task_id, "from": previous})
            jobs.append(
                self.worker.submit(
                    AUTO_RUN_JOB,
                    lambda: self.engine.run_task(task_id, "execute"),
                    meta={"task_id": task_id},
                )
            )
        elif current == "done":
            jobs.append(
                self.worker.submit(
                    DONE_SUMMARY_JOB,
                    lambda: self.summaries.record_completion(task_id),
                    meta={"task_id": task_id},
                )
            )
        return jobs
