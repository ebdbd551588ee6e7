"""Subtitle candidate database operations -- delegating to SQLAlchemy repository."""

from typing import Optional

from db.repositories.candidates import CandidateRepository

_repo = None


def _get_repo():
    global _repo
    if _repo is None:
        _repo = CandidateRepository()
    return _repo


def replace_candidates(media_id: Optional[int], candidates: list[dict]) -> int:
    """Atomically replace the stored candidate set of a media item."""
    return _get_repo().replace_candidates(media_id, candidates)


def list_candidates(media_id: int, limit: int = 100) -> list[dict]:
    return _get_repo().list_candidates(media_id, limit)


def get_candidate(media_id: int, row_id: int) -> Optional[dict]:
    return _get_repo().get_candidate(media_id, row_id)
