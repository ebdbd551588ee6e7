"""SQLAlchemy ORM models for the foursubs database.

All models use Flask-SQLAlchemy's db.Model as the base class.
Import all models from here so db.create_all() sees every table.
"""

from db.models.core import AppSettings, Job
from db.models.library import MediaItem, SubtitleFile
from db.models.providers import ProviderCredential, SubtitleCandidate

__all__ = [
    # core
    "AppSettings",
    "Job",
    # library
    "MediaItem",
    "SubtitleFile",
    # providers
    "ProviderCredential",
    "SubtitleCandidate",
]
