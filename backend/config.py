"""Centralized configuration using Pydantic Settings.

All settings can be overridden via environment variables with the FOURSUBS_ prefix,
or via a .env file. Example: FOURSUBS_PORT=9090
"""

import os
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """foursubs application settings."""

    # General
    port: int = 8080
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"
    log_file: str = ""  # Empty = console only
    data_dir: str = "/app/data"
    db_path: str = "/app/data/4subs.db"
    database_url: str = ""  # Empty = sqlite at db_path

    # Library
    media_paths: str = "/media"  # Comma-separated root directories
    subtitle_output_path: str = "/app/subtitles"
    scan_timeout_seconds: int = 30

    # Credential encryption. Empty = "plain:" bootstrap mode (not secure at rest)
    app_secret: str = ""

    # ASSRT (legacy raw token)
    assrt_token: str = ""

    # OpenSubtitles.com (API v1 REST)
    opensubtitles_api_key: str = ""
    opensubtitles_username: str = ""
    opensubtitles_password: str = ""
    opensubtitles_user_agent: str = "4subs v0.1.0"

    # Search
    default_language_priority: str = "bilingual,zh-cn,zh-tw"
    provider_search_timeout: float = 25.0  # Per provider task
    search_timeout: float = 30.0  # Whole fan-out
    provider_request_timeout: int = 20  # Single HTTP request
    search_result_limit: int = 20

    model_config = {
        "env_prefix": "FOURSUBS_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def get_media_paths(self) -> list[str]:
        """Split the comma-separated media_paths into trimmed, non-empty roots."""
        return [p.strip() for p in self.media_paths.split(",") if p.strip()]

    def get_default_language_priority(self) -> list[str]:
        return [
            lang.strip().lower()
            for lang in self.default_language_priority.split(",")
            if lang.strip()
        ]

    def get_database_url(self) -> str:
        """SQLAlchemy URL: explicit database_url wins, else sqlite file at db_path."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.db_path}"

    def get_safe_config(self) -> dict:
        """Get config dict without sensitive values (secrets, tokens, passwords)."""
        data = self.model_dump()
        for key in list(data.keys()):
            parts = key.split("_")
            if "key" in parts or "secret" in parts or "token" in parts or "password" in parts:
                data[key] = "***configured***" if data[key] else ""
        return data

    def ensure_dirs(self) -> None:
        """Create data and subtitle output directories if missing."""
        for path in (self.data_dir, os.path.dirname(self.db_path), self.subtitle_output_path):
            if path:
                os.makedirs(path, exist_ok=True)


# Singleton settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the singleton Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings(overrides: dict = None) -> Settings:
    """Force reload settings from environment/file, with optional overrides.

    Args:
        overrides: Dict of key-value pairs applied on top of the env/file
                   settings. Unknown keys and unconvertible values are skipped.
    """
    global _settings
    base = Settings()

    if overrides:
        base_data = base.model_dump()
        update = {}
        for key, value in overrides.items():
            if key not in base_data:
                continue
            expected_type = type(base_data[key])
            try:
                if expected_type is bool:
                    update[key] = value.lower() in ("true", "1", "yes") if isinstance(value, str) else bool(value)
                elif expected_type is int:
                    update[key] = int(value)
                elif expected_type is float:
                    update[key] = float(value)
                else:
                    update[key] = str(value)
            except (ValueError, TypeError):
                continue  # Skip invalid values

        _settings = base.model_copy(update=update) if update else base
    else:
        _settings = base

    return _settings
