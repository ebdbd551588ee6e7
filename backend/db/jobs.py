"""Job database operations -- delegating to SQLAlchemy repository."""

from typing import Optional

from db.repositories.jobs import JobRepository

_repo = None


def _get_repo():
    global _repo
    if _repo is None:
        _repo = JobRepository()
    return _repo


def create_job(job_type: str, details: str = "") -> dict:
    """Create a queued job row."""
    return _get_repo().create_job(job_type, details)


def update_job(job_id: str, status: str, details: Optional[str] = None,
               error: str = "") -> Optional[dict]:
    """Update a job's status; details are kept when None."""
    return _get_repo().update_job(job_id, status, details=details, error=error)


def get_job(job_id: str) -> Optional[dict]:
    return _get_repo().get_job(job_id)


def list_jobs(limit: int = 50) -> list[dict]:
    """Most recent jobs first."""
    return _get_repo().list_jobs(limit)
