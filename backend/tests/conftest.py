"""Shared pytest fixtures for all tests."""

import os
from pathlib import Path

import pytest

from config import reload_settings

_TEST_ENV_KEYS = (
    "FOURSUBS_DATA_DIR",
    "FOURSUBS_DB_PATH",
    "FOURSUBS_SUBTITLE_OUTPUT_PATH",
    "FOURSUBS_MEDIA_PATHS",
    "FOURSUBS_APP_SECRET",
    "FOURSUBS_LOG_LEVEL",
)


@pytest.fixture
def temp_env(tmp_path):
    """Point every on-disk setting at a temporary directory."""
    data_dir = tmp_path / "data"
    media_dir = tmp_path / "media"
    media_dir.mkdir()

    os.environ["FOURSUBS_DATA_DIR"] = str(data_dir)
    os.environ["FOURSUBS_DB_PATH"] = str(data_dir / "4subs.db")
    os.environ["FOURSUBS_SUBTITLE_OUTPUT_PATH"] = str(tmp_path / "subtitles")
    os.environ["FOURSUBS_MEDIA_PATHS"] = str(media_dir)
    os.environ["FOURSUBS_APP_SECRET"] = "test-secret"
    os.environ["FOURSUBS_LOG_LEVEL"] = "ERROR"  # Reduce log noise in tests
    reload_settings()

    yield tmp_path

    for key in _TEST_ENV_KEYS:
        os.environ.pop(key, None)
    reload_settings()


@pytest.fixture
def app(temp_env):
    """Flask app bound to a fresh temporary database, with an app context pushed."""
    from app import create_app
    from extensions import db

    application = create_app(testing=True)
    ctx = application.app_context()
    ctx.push()

    yield application

    application.job_queue.shutdown(wait=True)
    db.session.remove()
    ctx.pop()
    with application.app_context():
        db.engine.dispose()


@pytest.fixture
def client(app):
    """Test client for the Flask app."""
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture
def media_dir(temp_env):
    return temp_env / "media"


@pytest.fixture
def make_media_file():
    """Factory fixture: create an empty file (and its parents) under a root."""
    def _create(root: Path, relative: str) -> Path:
        path = Path(root) / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"")
        return path

    return _create


@pytest.fixture
def mock_provider_manager(monkeypatch):
    """Replace the ProviderManager singleton with a MagicMock."""
    from unittest.mock import MagicMock

    manager = MagicMock()
    manager.get_provider_status.return_value = []
    monkeypatch.setattr("providers.get_provider_manager", lambda: manager)
    return manager
