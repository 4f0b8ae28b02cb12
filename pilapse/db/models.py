"""Database models."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class PhotoState:
    """Lifecycle states a photo moves through."""

    CAPTURED = "captured"
    UPLOAD_FAILED = "upload_failed"
    UPLOADED = "uploaded"
    BACKED_UP = "backed_up"
    BACKUP_FAILED = "backup_failed"
    ALREADY_REMOTE = "already_remote"
    RECONCILED = "reconciled"
    QUARANTINED = "quarantined"
    DELETED_LOCALLY = "deleted_locally"

    ALL = (
        CAPTURED,
        UPLOAD_FAILED,
        UPLOADED,
        BACKED_UP,
        BACKUP_FAILED,
        ALREADY_REMOTE,
        RECONCILED,
        QUARANTINED,
        DELETED_LOCALLY,
    )


class PhotoRecord(Base):
    """Where one photo is and what last happened to it."""

    __tablename__ = "photos"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    filename: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    capture_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    project_name: Mapped[str] = mapped_column(String(200), nullable=False)
    current_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    digest: Mapped[str | None] = mapped_column(String(64), nullable=True)
    state: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    remote_verified: Mapped[bool] = mapped_column(default=False, nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_photos_state_capture_date", "state", "capture_date"),
    )
