"""Library scan job: walk the media roots and persist what was found.

start_scan() creates the job row and hands run_scan_job() to the app's
job queue. The worker opens its own application context because it runs
outside the request that queued it.
"""

import logging
import time
from typing import Optional

from config import get_settings
from db.jobs import create_job, update_job
from db.library import upsert_media_items
from error_handler import FoursubsError
from events import emit_event
from library import scan_paths

logger = logging.getLogger(__name__)

SCAN_JOB_TYPE = "scan"
SCAN_JOB_DETAILS = "Scan media library for missing subtitles"


def start_scan(app) -> dict:
    """Create a scan job and queue it. Returns the job row."""
    job = create_job(SCAN_JOB_TYPE, SCAN_JOB_DETAILS)
    emit_event("job_created", job)
    app.job_queue.enqueue(_run_in_context, app, job["id"], job_id=job["id"])
    logger.info("Queued library scan job %s", job["id"])
    return job


def _run_in_context(app, job_id: str) -> dict:
    with app.app_context():
        return run_scan_job(job_id)


def run_scan_job(job_id: str) -> Optional[dict]:
    """Scan every configured media root and upsert the results.

    Roots that fail are reported in the job error while the items found
    under the other roots are still saved. Any other failure marks the job
    failed. Returns the final job row.
    """
    try:
        return _scan_and_store(job_id)
    except FoursubsError as e:
        logger.error("Scan job %s failed: %s", job_id, e)
        return _fail(job_id, str(e))
    except Exception as e:
        logger.exception("Scan job %s failed unexpectedly", job_id)
        return _fail(job_id, str(e) or type(e).__name__)


def _scan_and_store(job_id: str) -> dict:
    settings = get_settings()
    update_job(job_id, "running")
    emit_event("job_updated", {"id": job_id, "status": "running"})

    deadline = time.monotonic() + settings.scan_timeout_seconds
    result = scan_paths(settings.get_media_paths(), deadline=deadline)
    inserted, updated = upsert_media_items([item.to_dict() for item in result.items])

    details = (
        f"Scanned {result.scanned_video_files} video files, "
        f"missing subtitles {result.missing_subtitle_files}, "
        f"inserted {inserted}, updated {updated}"
    )
    payload = {
        "id": job_id,
        "scanned_video": result.scanned_video_files,
        "missing_subtitles": result.missing_subtitle_files,
        "inserted": inserted,
        "updated": updated,
    }

    if result.errors:
        error = "; ".join(str(e) for e in result.errors)
        logger.warning("Scan job %s finished with %d root errors", job_id, len(result.errors))
        job = update_job(job_id, "failed", details=details, error=error)
        emit_event("job_updated", {**payload, "status": "failed", "failed_roots": len(result.errors)})
        return job

    logger.info("Scan job %s: %s", job_id, details)
    job = update_job(job_id, "completed", details=details)
    emit_event("job_updated", {**payload, "status": "completed"})
    return job


def _fail(job_id: str, error: str) -> Optional[dict]:
    """Mark the job failed; the row may be unwritable if storage itself broke."""
    from extensions import db

    db.session.rollback()
    try:
        job = update_job(job_id, "failed", error=error)
    except FoursubsError as e:
        logger.error("Scan job %s: could not record failure: %s", job_id, e)
        job = None
    emit_event("job_updated", {"id": job_id, "status": "failed", "error": error})
    return job
