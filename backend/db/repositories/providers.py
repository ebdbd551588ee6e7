"""Provider credential repository using SQLAlchemy ORM.

Only opaque blobs pass through here; encryption and parsing live in
credential_vault.
"""

import logging
from typing import Optional

from sqlalchemy import select

from db.models.providers import ProviderCredential
from db.repositories.base import BaseRepository
from error_handler import NotFoundError

logger = logging.getLogger(__name__)


class ProviderRepository(BaseRepository):
    """Repository for provider_credentials table operations."""

    def ensure_credential_rows(self, names) -> list[str]:
        """Create an empty credential row for each provider that lacks one."""
        created = []
        now = self._now()
        for name in names:
            if self.session.get(ProviderCredential, name) is None:
                self.session.add(ProviderCredential(name=name, secret_blob="", updated_at=now))
                created.append(name)
        if created:
            self._commit()
        return created

    def get_credential_blob(self, name: str) -> Optional[str]:
        """Return the stored blob, or None if the provider has no row."""
        row = self.session.get(ProviderCredential, name)
        return row.secret_blob if row else None

    def save_credential_blob(self, name: str, blob: str) -> None:
        """Replace the blob of an existing provider row.

        Raises:
            NotFoundError: If the provider has no credential row.
        """
        row = self.session.get(ProviderCredential, name)
        if row is None:
            raise NotFoundError(f"unknown provider: {name}", context={"provider": name})
        row.secret_blob = blob
        row.updated_at = self._now()
        self._commit()

    def list_credential_rows(self) -> list[dict]:
        """Return name, configured flag and updated_at for every row, by name."""
        stmt = select(ProviderCredential).order_by(ProviderCredential.name)
        return [
            {
                "name": row.name,
                "configured": bool((row.secret_blob or "").strip()),
                "updated_at": row.updated_at,
            }
            for row in self.session.execute(stmt).scalars().all()
        ]
