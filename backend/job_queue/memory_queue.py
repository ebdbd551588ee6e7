"""In-memory job queue using ThreadPoolExecutor.

Jobs run in a bounded thread pool inside the server process. Execution
metadata is kept for a day so status queries keep working; the durable
job record (status, details, error) lives in the jobs table.
"""

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime

from job_queue import JobInfo, JobStatus, QueueBackend

logger = logging.getLogger(__name__)

_JOB_RETENTION_SECONDS = 24 * 60 * 60

# Prune finished entries every N enqueue calls
_CLEANUP_INTERVAL = 50

_FINISHED = (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class MemoryJobQueue(QueueBackend):
    """QueueBackend backed by a ThreadPoolExecutor.

    Jobs in flight when the process stops are lost; the scan job marks
    its database row as running first, so an interrupted scan shows up
    as a job that never finished.
    """

    def __init__(self, max_workers: int = 2):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="foursubs-job")
        self._max_workers = max_workers
        self._jobs: dict[str, dict] = {}
        self._lock = threading.Lock()
        self._enqueue_count = 0

    def enqueue(self, func, *args, job_id: str = None, **kwargs) -> str:
        if job_id is None:
            job_id = uuid.uuid4().hex[:8]
        func_name = getattr(func, "__name__", str(func))

        with self._lock:
            self._jobs[job_id] = {
                "status": JobStatus.QUEUED,
                "func_name": func_name,
                "enqueued_at": datetime.now(UTC).isoformat(),
                "started_at": None,
                "completed_at": None,
                "result": None,
                "error": None,
            }
            self._enqueue_count += 1
            prune = self._enqueue_count % _CLEANUP_INTERVAL == 0

        future = self._executor.submit(self._run_job, job_id, func, *args, **kwargs)
        future.add_done_callback(lambda f: self._on_complete(job_id, f))
        logger.debug("Enqueued job %s: %s", job_id, func_name)

        if prune:
            self._cleanup_old_jobs()
        return job_id

    def _run_job(self, job_id: str, func, *args, **kwargs):
        with self._lock:
            meta = self._jobs.get(job_id)
            if meta is not None:
                meta["status"] = JobStatus.RUNNING
                meta["started_at"] = datetime.now(UTC).isoformat()
        return func(*args, **kwargs)

    def _on_complete(self, job_id: str, future: Future) -> None:
        with self._lock:
            meta = self._jobs.get(job_id)
            if meta is None:
                return
            meta["completed_at"] = datetime.now(UTC).isoformat()
            if future.cancelled():
                meta["status"] = JobStatus.CANCELLED
                return
            exc = future.exception()
            if exc is not None:
                meta["status"] = JobStatus.FAILED
                meta["error"] = str(exc)
                logger.error("Background job %s (%s) failed: %s", job_id, meta["func_name"], exc)
            else:
                meta["status"] = JobStatus.COMPLETED
                meta["result"] = future.result()

    def get_job(self, job_id: str) -> JobInfo | None:
        with self._lock:
            meta = self._jobs.get(job_id)
            if meta is None:
                return None
            return JobInfo(id=job_id, **meta)

    def get_queue_length(self) -> int:
        with self._lock:
            return sum(1 for meta in self._jobs.values() if meta["status"] == JobStatus.QUEUED)

    def get_backend_info(self) -> dict:
        with self._lock:
            counts = {status.value: 0 for status in JobStatus}
            for meta in self._jobs.values():
                counts[meta["status"].value] += 1
        return {
            "type": "memory",
            "max_workers": self._max_workers,
            "active": counts["running"],
            "queued": counts["queued"],
            "total_tracked": sum(counts.values()),
        }

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def _cleanup_old_jobs(self) -> None:
        """Drop finished entries older than the retention window."""
        cutoff = time.time() - _JOB_RETENTION_SECONDS
        with self._lock:
            old_ids = []
            for jid, meta in self._jobs.items():
                if meta["status"] not in _FINISHED or not meta["completed_at"]:
                    continue
                if datetime.fromisoformat(meta["completed_at"]).timestamp() < cutoff:
                    old_ids.append(jid)
            for jid in old_ids:
                del self._jobs[jid]
        if old_ids:
            logger.debug("Pruned %d finished jobs from memory queue", len(old_ids))
