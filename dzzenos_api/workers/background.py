"""In-process background job runner for fire-and-forget side effects."""

from __future__ import annotations

import asyncio
import secrets
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from dzzenos_api.core.logging import get_logger
from dzzenos_api.core.time import utcnow

logger = get_logger(__name__)

JobFactory = Callable[[], Awaitable[Any]]


@dataclass
class Job:
    id: str
    name: str
    status: str = "pending"  # pending | running | succeeded | failed
    attempts: int = 0
    max_attempts: int = 1
    error: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "error": self.error,
            "meta": self.meta,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class BackgroundWorker:
    """Runs submitted coroutines on the event loop behind an error boundary.

    Submission never blocks the caller. Failures are logged and recorded on
    the job rather than propagated; a job is retried only when submitted
    with ``max_attempts > 1``. Recent jobs are kept for inspection.
    """

    def __init__(self, history_size: int = 500, retry_delay_seconds: float = 1.0):
        self.history_size = history_size
        self.retry_delay_seconds = retry_delay_seconds
        self._jobs: OrderedDict[str, Job] = OrderedDict()
        self._tasks: set[asyncio.Task] = set()
        self._stopped = False

    def submit(
        self,
        name: str,
        factory: JobFactory,
        *,
        max_attempts: int = 1,
        meta: dict[str, Any] | None = None,
    ) -> Job:
        if self._stopped:
            raise RuntimeError("BackgroundWorker is stopped")
        job = Job(
            id=secrets.token_hex(8),
            name=name,
            max_attempts=max(1, max_attempts),
            meta=dict(meta or {}),
        )
        self._remember(job)
        task = asyncio.get_running_loop().create_task(self._run(job, factory))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Job submitted", data={"job_id": job.id, "job": name, **job.meta})
        return job

    async def _run(self, job: Job, factory: JobFactory) -> None:
        job.status = "running"
        job.started_at = utcnow()
        while True:
            job.attempts += 1
            try:
                await factory()
            except asyncio.CancelledError:
                job.status = "failed"
                job.error = "cancelled"
                job.finished_at = utcnow()
                raise
            except Exception as exc:
                job.error = f"{type(exc).__name__}: {exc}"
                if job.attempts < job.max_attempts:
                    logger.warning(
                        "Background job failed, retrying",
                        data={"job_id": job.id, "job": job.name, "attempt": job.attempts, "error": job.error},
                    )
                    await asyncio.sleep(self.retry_delay_seconds)
                    continue
                job.status = "failed"
                job.finished_at = utcnow()
                logger.error(
                    "Background job failed",
                    data={"job_id": job.id, "job": job.name, "error": job.error, **job.meta},
                    exc_info=True,
                )
                return
            job.status = "succeeded"
            job.error = None
            job.finished_at = utcnow()
            return

    def _remember(self, job: Job) -> None:
        self._jobs[job.id] = job
        while len(self._jobs) > self.history_size:
            self._jobs.popitem(last=False)

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def jobs(self, name: str | None = None) -> list[Job]:
        return [j for j in self._jobs.values() if name is None or j.name == name]

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait until every submitted job (including ones submitted meanwhile) is done."""

        async def _wait_all() -> None:
            while self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)

        if timeout is None:
            await _wait_all()
        else:
            await asyncio.wait_for(_wait_all(), timeout=timeout)

    async def stop(self, timeout: float = 5.0) -> None:
        """Refuse new jobs, give running ones ``timeout`` seconds, cancel the rest."""
        self._stopped = True
        if not self._tasks:
            return
        _, pending = await asyncio.wait(list(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("Cancelled unfinished background jobs", data={"count": len(pending)})
