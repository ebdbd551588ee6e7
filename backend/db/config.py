"""Runtime settings database operations -- delegating to SQLAlchemy repository."""

from db.repositories.config import SettingsRepository

_repo = None


def _get_repo():
    global _repo
    if _repo is None:
        _repo = SettingsRepository()
    return _repo


def get_app_settings() -> dict:
    """Return language_priority, auto_replace_existing and subtitle_output_path."""
    return _get_repo().get_settings()


def update_app_settings(language_priority, subtitle_output_path: str,
                        auto_replace_existing: bool = False) -> dict:
    """Validate and store settings. Raises ValidationError on bad input."""
    return _get_repo().update_settings(
        language_priority, subtitle_output_path, auto_replace_existing
    )
