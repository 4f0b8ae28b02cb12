"""Replicate photos to the cloud remote and verify them there."""

from __future__ import annotations

from pathlib import Path
import logging

from pilapse.checksum import digests_match, file_digest
from pilapse.notify import NotificationSink
from pilapse.photo import Photo, format_sequence, parse_sequence_text, remote_photo_folder
from pilapse.remote import (
    NotFoundAfterUploadError,
    RemoteError,
    RemoteStore,
    TransportFailedError,
    UploadChecksumMismatchError,
    UploadError,
)

from .results import StageResult
from .sequence import cloud_marker_path


LOGGER = logging.getLogger("pilapse.service.upload")
STAGE = "upload"


class UploadManager:
    def __init__(self, remote: RemoteStore, notifier: NotificationSink, project_name: str) -> None:
        self.remote = remote
        self.notifier = notifier
        self.project_name = project_name

    def remote_folder_for(self, photo: Photo) -> str:
        return remote_photo_folder(self.project_name, photo.capture_date)

    def copy_and_verify(self, local_path: Path, folder: str) -> str:
        """Copy one file into ``folder`` and prove it arrived intact.

        Returns the verified digest. The transport's own exit status is not
        trusted: the file must be listed remotely with a matching MD5.
        """
        try:
            self.remote.copy_file(local_path, folder)
        except RemoteError as exc:
            raise TransportFailedError(str(exc)) from exc

        name = local_path.name
        if not self.remote.exists(f"{folder}/{name}"):
            raise NotFoundAfterUploadError(f"Remote file not found after upload: {folder}/{name}")

        local_digest = file_digest(local_path)
        try:
            remote_digest = self.remote.md5sums(folder).get(name)
        except RemoteError as exc:
            raise TransportFailedError(f"Could not read remote checksum: {exc}") from exc
        if not digests_match(local_digest, remote_digest):
            raise UploadChecksumMismatchError(name, local_digest, remote_digest)
        return local_digest

    def upload(self, photo: Photo) -> StageResult:
        folder = self.remote_folder_for(photo)
        LOGGER.info("Uploading photo to remote: %s -> %s", photo.path, folder)
        try:
            digest = self.copy_and_verify(photo.path, folder)
        except UploadError as exc:
            LOGGER.error("Upload failed for %s: %s", photo.filename, exc)
            self.notifier.notify(self._failure_message(photo, exc))
            return StageResult.failure(STAGE, exc, photo=photo)
        except OSError as exc:
            error = TransportFailedError(f"Cannot read {photo.path}: {exc}")
            LOGGER.error("Upload failed for %s: %s", photo.filename, error)
            self.notifier.notify(self._failure_message(photo, error))
            return StageResult.failure(STAGE, error, photo=photo)

        LOGGER.info("Upload successful and verified: %s", photo.filename)
        self._advance_marker(photo)
        return StageResult.success(STAGE, photo=photo.moved_to(photo.path, digest=digest))

    def _advance_marker(self, photo: Photo) -> None:
        """Raise the cloud marker past this photo; it holds the next free number and never goes down."""
        if photo.sequence <= 0:
            return
        marker = cloud_marker_path(self.project_name)
        try:
            current = parse_sequence_text(self.remote.read_text(marker))
        except RemoteError:
            current = 0
        successor = photo.sequence + 1
        if current >= successor:
            return
        try:
            self.remote.write_text(marker, format_sequence(successor))
        except RemoteError as exc:
            LOGGER.warning("Failed to update cloud counter after upload: %s", exc)
            return
        LOGGER.info("Cloud counter updated: %s", format_sequence(successor))

    @staticmethod
    def _failure_message(photo: Photo, error: UploadError) -> str:
        if isinstance(error, UploadChecksumMismatchError):
            return (
                f"Checksum mismatch for photo: {photo.filename}\n"
                f"Local: {error.local_digest}\nRemote: {error.remote_digest or 'missing'}"
            )
        if isinstance(error, NotFoundAfterUploadError):
            return f"Upload verification failed: Remote file not found\nFile: {photo.filename}"
        return f"Upload failed for photo: {photo.filename}\nError: {error}"
