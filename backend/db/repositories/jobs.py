"""Jobs repository using SQLAlchemy ORM."""

import uuid
import logging
from typing import Optional

from sqlalchemy import select

from db.models.core import Job
from db.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

JOB_LIST_DEFAULT = 50
JOB_LIST_MAX = 500


class JobRepository(BaseRepository):
    """Repository for jobs table operations."""

    def create_job(self, job_type: str, details: str = "") -> dict:
        """Create a new queued job."""
        now = self._now()
        job = Job(
            id=str(uuid.uuid4()),
            type=job_type,
            status="queued",
            details=details,
            error="",
            created_at=now,
            updated_at=now,
        )
        self.session.add(job)
        self._commit()
        return self._to_dict(job)

    def update_job(self, job_id: str, status: str, details: Optional[str] = None,
                   error: str = "") -> Optional[dict]:
        """Update a job's status, optional details and error text."""
        job = self.session.get(Job, job_id)
        if job is None:
            logger.warning("update_job: job %s not found", job_id)
            return None
        job.status = status
        job.error = error or ""
        if details is not None:
            job.details = details
        job.updated_at = self._now()
        self._commit()
        return self._to_dict(job)

    def get_job(self, job_id: str) -> Optional[dict]:
        return self._to_dict(self.session.get(Job, job_id))

    def list_jobs(self, limit: int = JOB_LIST_DEFAULT) -> list[dict]:
        """Most recent jobs first. limit is clamped to 1..500."""
        if limit <= 0:
            limit = JOB_LIST_DEFAULT
        limit = min(limit, JOB_LIST_MAX)
        stmt = select(Job).order_by(Job.created_at.desc()).limit(limit)
        return [self._to_dict(j) for j in self.session.execute(stmt).scalars().all()]
