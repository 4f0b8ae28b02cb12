"""Move photos into the date-partitioned backup tree with digest verification."""

from __future__ import annotations

from pathlib import Path
import logging
import shutil

from pilapse.checksum import digests_match, file_digest
from pilapse.notify import NotificationSink
from pilapse.photo import Photo, day_folder
from pilapse.storage import (
    BackupChecksumMismatchError,
    BackupError,
    DirectoryCreateFailedError,
    MoveFailedError,
)

from .results import StageResult


LOGGER = logging.getLogger("pilapse.service.backup")
STAGE = "backup"


class LocalBackupManager:
    """Terminal placement for a photo under normal operation.

    The photo is moved, never copied, so a successful backup leaves no
    staging copy behind. Any failure leaves the file where the failed
    operation put it and raises an insistent alert.
    """

    def __init__(self, backup_dir: Path, notifier: NotificationSink) -> None:
        self.backup_dir = Path(backup_dir)
        self.notifier = notifier

    def destination_for(self, photo: Photo) -> Path:
        return self.backup_dir / day_folder(photo.capture_date)

    def backup(self, photo: Photo) -> StageResult:
        LOGGER.info("Moving photo to local backup: %s", photo.path)
        try:
            moved = self._move_verified(photo)
        except BackupError as exc:
            LOGGER.error("Backup failed for %s: %s", photo.filename, exc)
            self.notifier.notify(self._failure_message(photo, exc), insistent=True)
            return StageResult.failure(STAGE, exc, photo=photo)

        LOGGER.info("Photo moved to backup and verified: %s", moved.path)
        return StageResult.success(STAGE, photo=moved, path=moved.path)

    def _move_verified(self, photo: Photo) -> Photo:
        try:
            original_digest = file_digest(photo.path)
        except OSError as exc:
            raise MoveFailedError(f"Cannot read {photo.path}: {exc}") from exc

        target_dir = self.destination_for(photo)
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DirectoryCreateFailedError(f"Failed to create backup directory {target_dir}: {exc}") from exc

        target = target_dir / photo.filename
        try:
            shutil.move(str(photo.path), str(target))
        except OSError as exc:
            raise MoveFailedError(f"Failed to move {photo.path} to {target}: {exc}") from exc

        try:
            backup_digest = file_digest(target)
        except OSError as exc:
            raise MoveFailedError(f"Cannot read moved file {target}: {exc}") from exc
        if not digests_match(original_digest, backup_digest):
            raise BackupChecksumMismatchError(photo.filename, original_digest, backup_digest)
        return photo.moved_to(target, digest=backup_digest)

    def _failure_message(self, photo: Photo, error: BackupError) -> str:
        if isinstance(error, DirectoryCreateFailedError):
            headline = "Failed to create backup directory"
        elif isinstance(error, BackupChecksumMismatchError):
            headline = "Backup verification failed"
        else:
            headline = "Failed to move photo to backup"
        return (
            f"{headline}: {photo.filename}\n"
            f"Destination: {self.destination_for(photo)}\n"
            f"Error: {error}\n"
            "Possible storage hardware fault."
        )
