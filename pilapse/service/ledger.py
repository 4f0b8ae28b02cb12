"""Photo lifecycle ledger kept in the local database."""

from __future__ import annotations

from pathlib import Path
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from pilapse.db import PhotoRecord, get_session
from pilapse.photo import Photo


LOGGER = logging.getLogger("pilapse.service.ledger")


class PhotoLedger:
    """Best-effort record of each photo's state; database errors are logged, not raised."""

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url

    def record(
        self,
        photo: Photo,
        state: str,
        error: Exception | str | None = None,
        remote_verified: bool | None = None,
    ) -> None:
        try:
            with get_session(self.database_url) as session:
                row = session.execute(
                    select(PhotoRecord).where(PhotoRecord.filename == photo.filename)
                ).scalar_one_or_none()
                if row is None:
                    row = PhotoRecord(
                        filename=photo.filename,
                        sequence=photo.sequence,
                        capture_date=photo.capture_date,
                        project_name=photo.project_name,
                        state=state,
                    )
                    session.add(row)
                row.state = state
                row.current_path = str(photo.path)
                row.digest = photo.digest or row.digest
                row.error = None if error is None else str(error)
                if remote_verified is not None:
                    row.remote_verified = remote_verified
        except (SQLAlchemyError, OSError) as exc:
            LOGGER.warning("Ledger update for %s failed: %s", photo.filename, exc)

    def mark(self, filename: str, state: str, path: Path | None = None, error: str | None = None) -> None:
        """Move an already-known photo to ``state``; unknown filenames are ignored."""
        try:
            with get_session(self.database_url) as session:
                row = session.execute(
                    select(PhotoRecord).where(PhotoRecord.filename == filename)
                ).scalar_one_or_none()
                if row is None:
                    return
                row.state = state
                row.current_path = None if path is None else str(path)
                row.error = error
        except (SQLAlchemyError, OSError) as exc:
            LOGGER.warning("Ledger update for %s failed: %s", filename, exc)

    def is_remote_verified(self, filename: str) -> bool:
        try:
            with get_session(self.database_url) as session:
                verified = session.execute(
                    select(PhotoRecord.remote_verified).where(PhotoRecord.filename == filename)
                ).scalar_one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            LOGGER.warning("Ledger lookup for %s failed: %s", filename, exc)
            return False
        return bool(verified)

    def state_of(self, filename: str) -> str | None:
        try:
            with get_session(self.database_url) as session:
                return session.execute(
                    select(PhotoRecord.state).where(PhotoRecord.filename == filename)
                ).scalar_one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            LOGGER.warning("Ledger lookup for %s failed: %s", filename, exc)
            return None

    def counts_by_state(self) -> dict[str, int]:
        try:
            with get_session(self.database_url) as session:
                rows = session.execute(
                    select(PhotoRecord.state, func.count(PhotoRecord.id)).group_by(PhotoRecord.state)
                ).all()
        except (SQLAlchemyError, OSError) as exc:
            LOGGER.warning("Ledger summary failed: %s", exc)
            return {}
        return {state: int(count) for state, count in rows}
