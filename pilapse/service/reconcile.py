"""End-of-day repair of the gap between the local backup tree and the remote."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
import logging
import shutil

from pilapse.db import PhotoState
from pilapse.logs import rotate_log_file
from pilapse.notify import NotificationSink
from pilapse.photo import LOGS_FOLDER, PHOTO_SUFFIX, day_folder, list_photos, remote_photo_folder
from pilapse.remote import RemoteError, RemoteStore, UploadError
from pilapse.storage import MountError, RemovableVolume

from .exceptions import ReconciliationError
from .ledger import PhotoLedger
from .upload import UploadManager


LOGGER = logging.getLogger("pilapse.service.reconcile")


@dataclass(slots=True)
class SyncReport:
    """Counts for one reconciliation run; reported, never persisted."""

    day: date
    local_total: int = 0
    remote_total: int = 0
    already_synced: int = 0
    uploaded: int = 0
    failed: int = 0
    quarantined: int = 0
    final_local_total: int = 0
    final_remote_total: int = 0
    verified_uploads: int = 0
    skipped: bool = False
    quarantine_errors: list[str] = field(default_factory=list)

    def message(self) -> str:
        lines = [
            f"\N{BAR CHART} *End-of-Day Sync Report* - {day_folder(self.day)}",
            "",
            "*Initial Status:*",
            f"Local backup: {self.local_total} images",
            f"Google Drive: {self.remote_total} images",
            f"Already synced: {self.already_synced} images",
            "",
            "*Sync Activity:*",
        ]
        if self.uploaded:
            if self.verified_uploads == self.uploaded:
                lines.append(f"Uploaded: {self.uploaded} images \N{WHITE HEAVY CHECK MARK}")
            else:
                lines.append(
                    f"\N{WARNING SIGN} Uploaded: {self.uploaded} images "
                    f"(only {self.verified_uploads} confirmed on remote)"
                )
        if self.failed:
            lines.append(f"\N{CROSS MARK} Failed: {self.failed} images ({self.quarantined} moved to USB backup)")
        if not self.uploaded and not self.failed:
            lines.append("All files already synced - no action needed")
        lines += [
            "",
            "*Final Status (Verified):*",
            f"Local backup: {self.final_local_total} images",
            f"Google Drive: {self.final_remote_total} images",
        ]
        return "\n".join(lines)


class EndOfDayReconciler:
    def __init__(
        self,
        backup_dir: Path,
        uploader: UploadManager,
        remote: RemoteStore,
        volume: RemovableVolume,
        notifier: NotificationSink,
        ledger: PhotoLedger,
        project_name: str,
        log_file: Path | None = None,
    ) -> None:
        self.backup_dir = Path(backup_dir)
        self.uploader = uploader
        self.remote = remote
        self.volume = volume
        self.notifier = notifier
        self.ledger = ledger
        self.project_name = project_name
        self.log_file = log_file

    def reconcile(self, day: date) -> SyncReport:
        """Push whatever the remote is missing, quarantine what still fails, then clean up.

        Running this twice with no intervening changes uploads nothing the
        second time: every surviving local file is either listed remotely
        or already quarantined.
        """
        LOGGER.info("Starting end-of-day sync for %s", day)
        folder = remote_photo_folder(self.project_name, day)
        local_dir = self.backup_dir / day_folder(day)

        remote_names = self._remote_photos(folder)
        report = SyncReport(day=day, remote_total=len(remote_names))

        if not local_dir.is_dir():
            LOGGER.info("No backup folder found at %s; skipping sync.", local_dir)
            self.notifier.notify(f"No backup folder found for today ({day_folder(day)}). End-of-Day Sync skipped.")
            report.skipped = True
            return report

        local_files = list_photos(local_dir)
        report.local_total = len(local_files)

        uploaded: list[str] = []
        failed: list[Path] = []
        for path in local_files:
            if path.name in remote_names:
                report.already_synced += 1
                self.ledger.mark(path.name, PhotoState.ALREADY_REMOTE, path=path)
                continue
            LOGGER.info("Uploading missing file: %s", path)
            try:
                self.uploader.copy_and_verify(path, folder)
            except (UploadError, OSError) as exc:
                LOGGER.error("Upload failed for file %s: %s", path, exc)
                failed.append(path)
                continue
            uploaded.append(path.name)
            self.ledger.mark(path.name, PhotoState.RECONCILED, path=path)
            LOGGER.info("Successfully uploaded: %s", path)

        report.uploaded = len(uploaded)
        report.failed = len(failed)
        if failed:
            self._quarantine(day, failed, report)

        self._ship_logs(day)

        final_names = self._remote_photos(folder)
        report.final_remote_total = len(final_names)
        report.final_local_total = len(list_photos(local_dir))
        report.verified_uploads = sum(1 for name in uploaded if name in final_names)

        LOGGER.info(
            "End-of-day sync summary: local=%d remote=%d already=%d uploaded=%d failed=%d "
            "final_local=%d final_remote=%d",
            report.local_total,
            report.remote_total,
            report.already_synced,
            report.uploaded,
            report.failed,
            report.final_local_total,
            report.final_remote_total,
        )
        self.notifier.notify(report.message())

        self.cleanup_confirmed(day)
        return report

    def cleanup_confirmed(self, day: date) -> list[Path]:
        """Delete local backups whose presence on the remote is confirmed file by file."""
        folder = remote_photo_folder(self.project_name, day)
        deleted: list[Path] = []
        for path in list_photos(self.backup_dir / day_folder(day)):
            try:
                confirmed = self.remote.exists(f"{folder}/{path.name}")
            except RemoteError as exc:
                LOGGER.warning("Cannot confirm %s on remote: %s", path.name, exc)
                continue
            if not confirmed:
                LOGGER.info("Skipped deletion. File not found on remote: %s", path)
                continue
            try:
                path.unlink()
            except OSError as exc:
                LOGGER.error("Failed to delete local file %s: %s", path, exc)
                continue
            deleted.append(path)
            self.ledger.mark(path.name, PhotoState.DELETED_LOCALLY)
            LOGGER.info("Deleted local file after confirmation: %s", path)
        return deleted

    def _remote_photos(self, folder: str) -> set[str]:
        try:
            names = self.remote.list_files(folder)
        except RemoteError as exc:
            LOGGER.warning("Cannot list remote folder %s: %s", folder, exc)
            return set()
        return {name for name in names if name.endswith(PHOTO_SUFFIX)}

    def _quarantine(self, day: date, paths: list[Path], report: SyncReport) -> None:
        try:
            with self.volume.acquire() as mount_point:
                quarantine_dir = mount_point / day_folder(day)
                for path in paths:
                    try:
                        target = self._quarantine_one(path, quarantine_dir)
                    except ReconciliationError as exc:
                        LOGGER.error("%s", exc)
                        report.quarantine_errors.append(str(exc))
                        continue
                    report.quarantined += 1
                    self.ledger.mark(path.name, PhotoState.QUARANTINED, path=target)
                    LOGGER.info("Moved failed file to quarantine: %s", target)
        except MountError as exc:
            LOGGER.error("Cannot mount USB drive for quarantine: %s", exc)
            report.quarantine_errors.append(str(exc))

        if report.quarantine_errors:
            self.notifier.notify(
                f"{len(paths) - report.quarantined} failed uploads could not be moved to USB quarantine "
                f"and remain in {self.backup_dir / day_folder(day)}\n"
                f"Error: {report.quarantine_errors[0]}",
                insistent=True,
            )

    @staticmethod
    def _quarantine_one(path: Path, quarantine_dir: Path) -> Path:
        target = quarantine_dir / path.name
        try:
            quarantine_dir.mkdir(parents=True, exist_ok=True)
            shutil.move(str(path), str(target))
        except OSError as exc:
            raise ReconciliationError(f"Failed to quarantine {path}: {exc}") from exc
        if path.exists() or not target.exists():
            raise ReconciliationError(f"Quarantine of {path} could not be confirmed.")
        return target

    def _ship_logs(self, day: date) -> None:
        if self.log_file is None:
            return
        if self.log_file.parent.is_dir():
            try:
                self.remote.copy_dir(self.log_file.parent, f"{self.project_name}/{LOGS_FOLDER}")
            except RemoteError as exc:
                LOGGER.warning("Failed to copy logs to remote: %s", exc)
            else:
                LOGGER.info("Copied logs to remote.")
        try:
            rotate_log_file(self.log_file, day)
        except OSError as exc:
            LOGGER.warning("Failed to rotate log file %s: %s", self.log_file, exc)
