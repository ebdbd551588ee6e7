"""Subtitle candidate repository using SQLAlchemy ORM.

After a search the candidate set of a media item is exactly what that
search returned: replace_candidates deletes and inserts in one transaction.
"""

import json
import logging
from datetime import UTC, datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select

from db.models.providers import SubtitleCandidate
from db.repositories.base import BaseRepository
from transaction_manager import transaction

logger = logging.getLogger(__name__)

CANDIDATE_LIST_DEFAULT = 100
CANDIDATE_LIST_MAX = 1000
CANDIDATE_TTL_HOURS = 24


class CandidateRepository(BaseRepository):
    """Repository for subtitle_candidates table operations."""

    def replace_candidates(self, media_id: Optional[int], candidates: list[dict]) -> int:
        """Replace every stored candidate of a media item with the given list.

        Each candidate dict must carry provider, candidate_id, language and
        score; the whole dict is kept in payload_json.

        Returns:
            Number of rows inserted.
        """
        now = datetime.now(UTC)
        created = now.isoformat()
        expires = (now + timedelta(hours=CANDIDATE_TTL_HOURS)).isoformat()
        with transaction() as session:
            session.execute(
                delete(SubtitleCandidate).where(SubtitleCandidate.media_item_id == media_id)
            )
            for cand in candidates:
                session.add(SubtitleCandidate(
                    media_item_id=media_id,
                    provider_name=cand["provider"],
                    candidate_id=str(cand["candidate_id"]),
                    score=float(cand["score"]),
                    language=cand.get("language", ""),
                    payload_json=json.dumps(cand, ensure_ascii=False),
                    expires_at=expires,
                    created_at=created,
                ))
        logger.debug("Stored %d candidates for media %s", len(candidates), media_id)
        return len(candidates)

    def list_candidates(self, media_id: int, limit: int = CANDIDATE_LIST_DEFAULT) -> list[dict]:
        """Stored candidates for a media item, best score first."""
        if limit <= 0:
            limit = CANDIDATE_LIST_DEFAULT
        limit = min(limit, CANDIDATE_LIST_MAX)
        stmt = (
            select(SubtitleCandidate)
            .where(SubtitleCandidate.media_item_id == media_id)
            .order_by(SubtitleCandidate.score.desc(), SubtitleCandidate.id)
            .limit(limit)
        )
        return [self._row_to_dict(r) for r in self.session.execute(stmt).scalars().all()]

    def get_candidate(self, media_id: int, row_id: int) -> Optional[dict]:
        row = self.session.get(SubtitleCandidate, row_id)
        if row is None or row.media_item_id != media_id:
            return None
        return self._row_to_dict(row)

    def _row_to_dict(self, row: SubtitleCandidate) -> dict:
        payload = self._load_json(row.payload_json, {})
        payload.update({
            "id": row.id,
            "media_item_id": row.media_item_id,
            "provider": row.provider_name,
            "candidate_id": row.candidate_id,
            "score": row.score,
            "language": row.language or "",
            "expires_at": row.expires_at,
            "created_at": row.created_at,
        })
        return payload
