"""Media library database operations -- delegating to SQLAlchemy repository."""

from typing import Optional

from db.repositories.library import LibraryRepository

_repo = None


def _get_repo():
    global _repo
    if _repo is None:
        _repo = LibraryRepository()
    return _repo


def upsert_media_items(items: list[dict]) -> tuple[int, int]:
    """Insert or update scanned items by file path. Returns (inserted, updated)."""
    return _get_repo().upsert_media_items(items)


def get_media_item(media_id: int) -> Optional[dict]:
    return _get_repo().get_media_item(media_id)


def list_media_items(missing_only: bool = False, limit: int = 200) -> list[dict]:
    return _get_repo().list_media_items(missing_only=missing_only, limit=limit)


def record_subtitle_file(media_id: int, language: str, provider_name: str,
                         file_path: str, release_name: str = "",
                         checksum: str = "") -> dict:
    """Record a saved subtitle file and flag the media item as covered."""
    return _get_repo().record_subtitle_file(
        media_id, language, provider_name, file_path,
        release_name=release_name, checksum=checksum,
    )


def list_subtitle_files(media_id: int) -> list[dict]:
    return _get_repo().list_subtitle_files(media_id)
