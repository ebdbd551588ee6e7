"""Settings repository using SQLAlchemy ORM.

The app_settings table holds a single row (id=1) created by init_db().
"""

import json
import logging

from db.models.core import AppSettings
from db.repositories.base import BaseRepository
from error_handler import StorageError, ValidationError

logger = logging.getLogger(__name__)


class SettingsRepository(BaseRepository):
    """Repository for the singleton app_settings row."""

    def ensure_defaults(self, language_priority: list, subtitle_output_path: str) -> bool:
        """Insert the settings row if missing. Returns True when a row was created."""
        if self.session.get(AppSettings, 1) is not None:
            return False
        self.session.add(AppSettings(
            id=1,
            language_priority=json.dumps(language_priority),
            auto_replace_existing=0,
            subtitle_output_path=subtitle_output_path,
            updated_at=self._now(),
        ))
        self._commit()
        return True

    def get_settings(self) -> dict:
        row = self.session.get(AppSettings, 1)
        if row is None:
            raise StorageError("settings row missing; was init_db() called?")
        return self._row_to_dict(row)

    def update_settings(self, language_priority, subtitle_output_path: str,
                        auto_replace_existing: bool = False) -> dict:
        """Validate and persist new settings.

        Priority entries are trimmed and lowercased; blanks are dropped.
        The auto-replace policy is stored but always held off.

        Raises:
            ValidationError: If the priority list or output path is empty.
        """
        if not isinstance(language_priority, (list, tuple)):
            raise ValidationError("language_priority must be a list")
        priority = [
            str(lang).strip().lower() for lang in language_priority if str(lang).strip()
        ]
        if not priority:
            raise ValidationError("language_priority cannot be empty")
        output_path = (subtitle_output_path or "").strip()
        if not output_path:
            raise ValidationError("subtitle_output_path cannot be empty")
        if auto_replace_existing:
            logger.warning("auto_replace_existing requested but automatic replacement is disabled")

        row = self.session.get(AppSettings, 1)
        if row is None:
            row = AppSettings(id=1)
            self.session.add(row)
        row.language_priority = json.dumps(priority)
        row.auto_replace_existing = 0
        row.subtitle_output_path = output_path
        row.updated_at = self._now()
        self._commit()
        return self._row_to_dict(row)

    def _row_to_dict(self, row: AppSettings) -> dict:
        return {
            "language_priority": self._load_json(row.language_priority, []),
            "auto_replace_existing": bool(row.auto_replace_existing),
            "subtitle_output_path": row.subtitle_output_path,
            "updated_at": row.updated_at,
        }
