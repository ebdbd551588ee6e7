"""Core ORM models: the singleton settings row and background jobs.

Timestamp columns use Text holding ISO-8601 UTC strings.
"""

from typing import Optional

from sqlalchemy import CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from extensions import db


class AppSettings(db.Model):
    """Runtime settings. Exactly one row (id=1) exists."""

    __tablename__ = "app_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    language_priority: Mapped[str] = mapped_column(Text, nullable=False)  # JSON list
    auto_replace_existing: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subtitle_output_path: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (CheckConstraint("id = 1", name="ck_app_settings_singleton"),)


class Job(db.Model):
    """Background job tracking (library scans)."""

    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="queued")
    details: Mapped[Optional[str]] = mapped_column(Text, default="")
    error: Mapped[Optional[str]] = mapped_column(Text, default="")
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        Index("idx_jobs_status", "status"),
        Index("idx_jobs_created", "created_at"),
    )
