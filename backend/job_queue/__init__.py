"""Background job queue.

Package named 'job_queue' (not 'queue') to avoid shadowing Python's
stdlib queue module, which is used by concurrent.futures.

Only an in-process backend exists: library scans are short-lived and
their durable state lives in the jobs table, so nothing needs to survive
a restart beyond what the database already records.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    """Execution state of a queued callable."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class JobInfo:
    """Snapshot of a queued callable's execution state."""

    id: str
    func_name: str
    status: JobStatus
    enqueued_at: str
    started_at: str | None = None
    completed_at: str | None = None
    result: Any | None = None
    error: str | None = None


class QueueBackend(ABC):
    """Abstract base class for job queue backends."""

    @abstractmethod
    def enqueue(self, func: Callable, *args, job_id: str = None, **kwargs) -> str:
        """Submit a function for background execution.

        Args:
            func: The callable to execute.
            *args: Positional arguments for the callable.
            job_id: Optional custom job ID. Auto-generated if not provided.
            **kwargs: Keyword arguments for the callable.

        Returns:
            The job ID (str).
        """

    @abstractmethod
    def get_job(self, job_id: str) -> JobInfo | None:
        """Get execution state for a job, or None if unknown."""

    @abstractmethod
    def get_queue_length(self) -> int:
        """Get number of pending (queued) jobs."""

    @abstractmethod
    def get_backend_info(self) -> dict:
        """Get backend type and status information."""

    @abstractmethod
    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work and release worker threads."""


def create_job_queue(max_workers: int = 2) -> QueueBackend:
    """Create the job queue backend used by the application."""
    from job_queue.memory_queue import MemoryJobQueue

    logger.info("Using in-process job queue (%d workers)", max_workers)
    return MemoryJobQueue(max_workers=max_workers)
