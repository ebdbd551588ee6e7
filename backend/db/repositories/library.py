"""Library repository using SQLAlchemy ORM.

Media items are keyed by absolute file path. A rescan updates rows in
place and never deletes them.
"""

import logging
from typing import Optional

from sqlalchemy import select

from db.models.library import MediaItem, SubtitleFile
from db.repositories.base import BaseRepository
from error_handler import NotFoundError
from transaction_manager import transaction

logger = logging.getLogger(__name__)

MEDIA_LIST_DEFAULT = 200
MEDIA_LIST_MAX = 1000

# SQLite bound-parameter headroom for IN (...) lookups
_LOOKUP_CHUNK = 500

_IDENTITY_FIELDS = ("media_type", "title", "year", "season", "episode")


class LibraryRepository(BaseRepository):
    """Repository for media_items and subtitle_files table operations."""

    def upsert_media_items(self, items: list[dict]) -> tuple[int, int]:
        """Insert or update scanned media items in one transaction.

        Each item dict carries media_type, title, year, season, episode,
        file_path and has_subtitle. Rows that already have a recorded
        subtitle file keep has_subtitle set.

        Returns:
            (inserted, updated) counts.
        """
        if not items:
            return 0, 0

        by_path = {}
        for item in items:
            by_path[item["file_path"]] = item
        paths = list(by_path)

        inserted = 0
        updated = 0
        now = self._now()
        with transaction() as session:
            existing = {}
            for start in range(0, len(paths), _LOOKUP_CHUNK):
                chunk = paths[start:start + _LOOKUP_CHUNK]
                stmt = select(MediaItem).where(MediaItem.file_path.in_(chunk))
                for row in session.execute(stmt).scalars():
                    existing[row.file_path] = row

            with_saved = self._media_ids_with_subtitle_files(
                session, [row.id for row in existing.values()]
            )

            for path in paths:
                item = by_path[path]
                row = existing.get(path)
                if row is None:
                    session.add(MediaItem(
                        file_path=path,
                        media_hash=item.get("media_hash"),
                        has_subtitle=int(bool(item.get("has_subtitle"))),
                        created_at=now,
                        updated_at=now,
                        **{f: item.get(f) for f in _IDENTITY_FIELDS},
                    ))
                    inserted += 1
                    continue
                for field in _IDENTITY_FIELDS:
                    setattr(row, field, item.get(field))
                row.has_subtitle = int(bool(item.get("has_subtitle")) or row.id in with_saved)
                row.updated_at = now
                updated += 1

        logger.info("Upserted media items: %d inserted, %d updated", inserted, updated)
        return inserted, updated

    def get_media_item(self, media_id: int) -> Optional[dict]:
        return self._item_to_dict(self.session.get(MediaItem, media_id))

    def list_media_items(self, missing_only: bool = False,
                         limit: int = MEDIA_LIST_DEFAULT) -> list[dict]:
        """List media items by title, optionally only those without subtitles."""
        if limit <= 0:
            limit = MEDIA_LIST_DEFAULT
        limit = min(limit, MEDIA_LIST_MAX)
        stmt = select(MediaItem)
        if missing_only:
            stmt = stmt.where(MediaItem.has_subtitle == 0)
        stmt = stmt.order_by(MediaItem.title, MediaItem.season, MediaItem.episode,
                             MediaItem.file_path).limit(limit)
        return [self._item_to_dict(r) for r in self.session.execute(stmt).scalars().all()]

    def record_subtitle_file(self, media_id: int, language: str, provider_name: str,
                             file_path: str, release_name: str = "",
                             checksum: str = "") -> dict:
        """Store a saved subtitle and mark its media item as covered, atomically."""
        now = self._now()
        with transaction() as session:
            media = session.get(MediaItem, media_id)
            if media is None:
                raise NotFoundError("media not found", context={"media_id": media_id})
            media.has_subtitle = 1
            media.updated_at = now
            entry = SubtitleFile(
                media_item_id=media_id,
                language=language,
                provider_name=provider_name,
                release_name=release_name,
                file_path=file_path,
                checksum=checksum,
                created_at=now,
            )
            session.add(entry)
            session.flush()
            result = self._to_dict(entry)
        return result

    def list_subtitle_files(self, media_id: int) -> list[dict]:
        stmt = (
            select(SubtitleFile)
            .where(SubtitleFile.media_item_id == media_id)
            .order_by(SubtitleFile.created_at.desc())
        )
        return [self._to_dict(r) for r in self.session.execute(stmt).scalars().all()]

    @staticmethod
    def _media_ids_with_subtitle_files(session, media_ids) -> set:
        found = set()
        for start in range(0, len(media_ids), _LOOKUP_CHUNK):
            chunk = media_ids[start:start + _LOOKUP_CHUNK]
            stmt = select(SubtitleFile.media_item_id).where(
                SubtitleFile.media_item_id.in_(chunk)
            ).distinct()
            found.update(session.execute(stmt).scalars())
        return found

    def _item_to_dict(self, row) -> Optional[dict]:
        data = self._to_dict(row)
        if data is not None:
            data["has_subtitle"] = bool(data["has_subtitle"])
        return data
