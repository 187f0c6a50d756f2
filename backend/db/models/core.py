"""Core ORM models: translation requests and runtime config entries.

Timestamp columns use Text (ISO 8601 UTC strings), matching the rest of the
schema. completed_at stays NULL until a request reaches a terminal status.
"""

from typing import Optional

from sqlalchemy import Index, Integer, Text, String
from sqlalchemy.orm import Mapped, mapped_column

from extensions import db


class TranslationRequest(db.Model):
    """One subtitle-translate intent and its lifecycle status."""

    __tablename__ = "translation_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    subtitle_to_translate: Mapped[str] = mapped_column(Text, nullable=False)
    source_language: Mapped[str] = mapped_column(String(10), nullable=False)
    target_language: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    output_path: Mapped[Optional[str]] = mapped_column(Text, default="")
    error: Mapped[Optional[str]] = mapped_column(Text, default="")
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)
    completed_at: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_translation_requests_status", "status"),
        Index("idx_translation_requests_job", "job_id"),
        Index("idx_translation_requests_created", "created_at"),
    )


class ConfigEntry(db.Model):
    """Runtime configuration stored in database (the settings store)."""

    __tablename__ = "config_entries"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)
