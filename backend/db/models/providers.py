"""Provider-related ORM models: stored credentials and ranked search candidates."""

from typing import Optional

from sqlalchemy import Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from extensions import db


class ProviderCredential(db.Model):
    """Encrypted credential blob for one catalog. Empty blob = not configured."""

    __tablename__ = "provider_credentials"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    secret_blob: Mapped[str] = mapped_column(Text, nullable=False, default="")
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)


class SubtitleCandidate(db.Model):
    """One ranked search result for a media item."""

    __tablename__ = "subtitle_candidates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    media_item_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    provider_name: Mapped[str] = mapped_column(String(50), nullable=False)
    candidate_id: Mapped[str] = mapped_column(Text, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    language: Mapped[Optional[str]] = mapped_column(String(50), default="")
    payload_json: Mapped[Optional[str]] = mapped_column(Text, default="{}")
    expires_at: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        Index("idx_subtitle_candidates_media", "media_item_id"),
        Index("idx_subtitle_candidates_score", "media_item_id", "score"),
    )
