"""Provider credential database operations -- delegating to SQLAlchemy repository."""

from typing import Optional

from db.repositories.providers import ProviderRepository

_repo = None


def _get_repo():
    global _repo
    if _repo is None:
        _repo = ProviderRepository()
    return _repo


def get_credential_blob(name: str) -> Optional[str]:
    """Stored (still encoded) credential blob, or None for an unknown provider."""
    return _get_repo().get_credential_blob(name)


def save_credential_blob(name: str, blob: str) -> None:
    _get_repo().save_credential_blob(name, blob)


def list_credential_rows() -> list[dict]:
    return _get_repo().list_credential_rows()
