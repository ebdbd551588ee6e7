"""Repository pattern for foursubs database operations using SQLAlchemy ORM.

Module-level convenience functions in the db/ package delegate to
lazily created instances of these classes.
"""

from db.repositories.base import BaseRepository
from db.repositories.candidates import CandidateRepository
from db.repositories.config import SettingsRepository
from db.repositories.jobs import JobRepository
from db.repositories.library import LibraryRepository
from db.repositories.providers import ProviderRepository

__all__ = [
    "BaseRepository",
    "CandidateRepository",
    "SettingsRepository",
    "JobRepository",
    "LibraryRepository",
    "ProviderRepository",
]
