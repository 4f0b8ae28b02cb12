"""Daily image counts across the cloud remote and the removable volume."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
import logging

from pilapse.photo import PHOTO_SUFFIX, day_folder, list_photos, remote_photo_folder
from pilapse.remote import RemoteError, RemoteStore
from pilapse.storage import RemovableVolume


LOGGER = logging.getLogger("pilapse.service.report")


@dataclass(frozen=True, slots=True)
class ImageCount:
    day: date
    remote: int | None
    removable: int | None

    def summary(self) -> str:
        remote = "N/A (remote not available)" if self.remote is None else str(self.remote)
        removable = "N/A (USB not available)" if self.removable is None else str(self.removable)
        return f"Images for today on Google Drive: {remote}, Images for today on USB Backup: {removable}"


class ImageCounter:
    def __init__(self, remote: RemoteStore, volume: RemovableVolume, project_name: str) -> None:
        self.remote = remote
        self.volume = volume
        self.project_name = project_name

    def count(self, day: date, require_volume: bool = False) -> ImageCount:
        """Count the day's photos; with ``require_volume`` a MountError propagates."""
        remote_count = self.count_remote(day)
        if require_volume:
            with self.volume.acquire() as mount_point:
                removable_count = self._count_on_volume(mount_point, day)
        else:
            with self.volume.acquire_optional() as mount_point:
                removable_count = None if mount_point is None else self._count_on_volume(mount_point, day)
        result = ImageCount(day=day, remote=remote_count, removable=removable_count)
        LOGGER.info(result.summary())
        return result

    def count_remote(self, day: date) -> int | None:
        try:
            names = self.remote.list_files(remote_photo_folder(self.project_name, day))
        except RemoteError as exc:
            LOGGER.warning("Cannot list remote photos for %s: %s", day, exc)
            return None
        return sum(1 for name in names if name.endswith(PHOTO_SUFFIX))

    @staticmethod
    def _count_on_volume(mount_point: Path, day: date) -> int:
        return len(list_photos(mount_point / day_folder(day)))
