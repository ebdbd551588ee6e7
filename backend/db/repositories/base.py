"""Shared helpers for the foursubs repositories.

Repositories work on the Flask-SQLAlchemy scoped session of the current
app context. Multi-row writes go through transaction_manager.transaction();
single-row writes use _commit().
"""

import json
import logging
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError

from error_handler import StorageError
from extensions import db

logger = logging.getLogger(__name__)


class BaseRepository:
    """Session access, commit with rollback, row conversion and timestamps."""

    @property
    def session(self):
        return db.session

    def _commit(self):
        """Commit, or roll back and raise StorageError."""
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Commit failed in %s: %s", type(self).__name__, exc)
            raise StorageError(str(exc), context={"db_error": type(exc).__name__}) from exc

    def _to_dict(self, model_instance, columns=None):
        if model_instance is None:
            return None
        if columns is None:
            columns = [c.key for c in model_instance.__table__.columns]
        return {col: getattr(model_instance, col) for col in columns}

    @staticmethod
    def _load_json(raw, default):
        """Decode a JSON text column; unreadable values give default."""
        if not raw:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            return default

    def _now(self) -> str:
        """UTC timestamp in ISO 8601, as stored in every *_at column."""
        return datetime.now(UTC).isoformat()
