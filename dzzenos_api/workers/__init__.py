"""Background workers."""

from dzzenos_api.workers.background import BackgroundWorker, Job

__all__ = ["BackgroundWorker", "Job"]
