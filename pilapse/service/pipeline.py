"""One capture invocation: sequence, capture, upload, thumbnail, backup."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable
import logging

from pilapse.db import PhotoState
from pilapse.lock import exclusive_invocation
from pilapse.photo import PHOTOS_FOLDER, Photo, photo_filename, photo_from_path, staging_folder

from .backup import LocalBackupManager
from .capture import CaptureController
from .ledger import PhotoLedger
from .results import StageResult
from .sequence import SequenceAuthority
from .thumbnails import ThumbnailBuilder
from .upload import UploadManager


LOGGER = logging.getLogger("pilapse.service.pipeline")


@dataclass(frozen=True)
class CaptureOutcome:
    sequence: int
    results: list[StageResult] = field(default_factory=list)

    @property
    def captured(self) -> bool:
        return bool(self.results) and self.results[0].ok

    @property
    def failed_stages(self) -> list[str]:
        return [result.stage for result in self.results if not result.ok]


class CapturePipeline:
    """Orchestrates a capture invocation and decides continuation per stage.

    A failed capture ends the cycle. A failed upload does not block backup.
    Photos left in the staging tree by an earlier failed backup are pushed
    through again before the new capture.
    """

    def __init__(
        self,
        authority: SequenceAuthority,
        controller: CaptureController,
        uploader: UploadManager,
        thumbnails: ThumbnailBuilder,
        backup: LocalBackupManager,
        ledger: PhotoLedger,
        photo_dir: Path,
        project_name: str,
        lock_file: Path,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.authority = authority
        self.controller = controller
        self.uploader = uploader
        self.thumbnails = thumbnails
        self.backup = backup
        self.ledger = ledger
        self.photo_dir = Path(photo_dir)
        self.project_name = project_name
        self.lock_file = lock_file
        self.clock = clock

    def run(self) -> CaptureOutcome:
        """Run one locked capture cycle; raises InvocationLockedError if one is already running."""
        with exclusive_invocation(self.lock_file):
            self.retry_stranded()

            sequence = self.authority.next()
            captured_at = self.clock()
            folder = staging_folder(self.photo_dir, self.project_name, captured_at.date())
            try:
                folder.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                LOGGER.error("Cannot create staging folder %s: %s", folder, exc)
            destination = folder / photo_filename(sequence, captured_at)

            captured = self.controller.capture(destination)
            if not captured.ok or captured.photo is None:
                return CaptureOutcome(sequence=sequence, results=[captured])

            self.ledger.record(captured.photo, PhotoState.CAPTURED)
            results = [captured, *self.process(captured.photo)]

        outcome = CaptureOutcome(sequence=sequence, results=results)
        if outcome.failed_stages:
            LOGGER.warning("Capture %s finished with failed stages: %s", sequence, ", ".join(outcome.failed_stages))
        else:
            LOGGER.info("Capture %s completed.", sequence)
        return outcome

    def process(self, photo: Photo, skip_upload: bool = False) -> list[StageResult]:
        """Upload, thumbnail and back up a captured photo, recording each step."""
        results: list[StageResult] = []
        if skip_upload:
            LOGGER.info("Skipping upload of %s; already verified on remote.", photo.filename)
        else:
            uploaded = self.uploader.upload(photo)
            results.append(uploaded)
            self.ledger.record(
                uploaded.photo or photo,
                PhotoState.UPLOADED if uploaded.ok else PhotoState.UPLOAD_FAILED,
                error=uploaded.error,
                remote_verified=uploaded.ok,
            )

        results.append(self.thumbnails.thumbnail(photo))

        backed_up = self.backup.backup(photo)
        results.append(backed_up)
        self.ledger.record(
            backed_up.photo or photo,
            PhotoState.BACKED_UP if backed_up.ok else PhotoState.BACKUP_FAILED,
            error=backed_up.error,
        )
        return results

    def stranded_photos(self) -> list[Photo]:
        """Pipeline-named photos still sitting in the staging tree."""
        root = self.photo_dir / self.project_name / PHOTOS_FOLDER
        if not root.is_dir():
            return []
        photos = []
        for path in sorted(root.rglob("*.jpg")):
            photo = photo_from_path(path, self.project_name)
            if photo is not None:
                photos.append(photo)
        return photos

    def retry_stranded(self) -> list[StageResult]:
        results: list[StageResult] = []
        for photo in self.stranded_photos():
            LOGGER.warning("Retrying stranded photo: %s", photo.path)
            results.extend(self.process(photo, skip_upload=self.ledger.is_remote_verified(photo.filename)))
        return results
