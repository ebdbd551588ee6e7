"""Database package: initialization and default seeding.

Tables are created through Flask-SQLAlchemy (db.create_all() in app.py).
Domain modules in this package are thin wrappers around the repositories
in db.repositories.
"""

import logging

from config import get_settings

logger = logging.getLogger(__name__)


def init_db(provider_names=None) -> None:
    """Seed the settings row, provider credential rows and env credentials.

    Must run inside an application context after db.create_all().
    Existing rows are never overwritten, except that env credentials are
    written into rows that are still empty.
    """
    from db.repositories import ProviderRepository, SettingsRepository

    settings = get_settings()
    if provider_names is None:
        from providers import get_provider_names
        provider_names = get_provider_names()

    if SettingsRepository().ensure_defaults(
        settings.get_default_language_priority(), settings.subtitle_output_path
    ):
        logger.info("Created default settings row")

    providers_repo = ProviderRepository()
    created = providers_repo.ensure_credential_rows(provider_names)
    if created:
        logger.info("Created credential rows for: %s", ", ".join(created))

    for name, fields in _env_credentials(settings).items():
        if name not in provider_names:
            continue
        if (providers_repo.get_credential_blob(name) or "").strip():
            continue
        from credential_vault import seal_credential
        providers_repo.save_credential_blob(name, seal_credential(fields, settings.app_secret))
        logger.info("Seeded %s credentials from environment", name)


def _env_credentials(settings) -> dict:
    """Provider credentials supplied through FOURSUBS_* environment variables."""
    seeds = {}
    if settings.assrt_token.strip():
        seeds["assrt"] = {"token": settings.assrt_token.strip()}
    if settings.opensubtitles_api_key.strip():
        fields = {
            "api_key": settings.opensubtitles_api_key,
            "username": settings.opensubtitles_username,
            "password": settings.opensubtitles_password,
            "user_agent": settings.opensubtitles_user_agent,
        }
        seeds["opensubtitles"] = {k: v.strip() for k, v in fields.items() if v.strip()}
    return seeds
