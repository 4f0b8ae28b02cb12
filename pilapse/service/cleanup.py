"""Removal of empty date partitions left behind by the pipeline."""

from __future__ import annotations

from datetime import date
from pathlib import Path
import logging

from pilapse.photo import PHOTOS_FOLDER, month_folder
from pilapse.storage import RemovableVolume, remove_empty_subdirectories


LOGGER = logging.getLogger("pilapse.service.cleanup")


def cleanup_directories(
    backup_dir: Path,
    photo_dir: Path,
    project_name: str,
    volume: RemovableVolume,
    today: date | None = None,
) -> list[Path]:
    """Delete empty subfolders of the backup root, the staging month and the volume root."""
    today = today or date.today()
    roots = [backup_dir, photo_dir / project_name / PHOTOS_FOLDER / month_folder(today)]
    removed: list[Path] = []
    with volume.acquire_optional() as mount_point:
        if mount_point is not None:
            roots.append(mount_point)
        for root in roots:
            LOGGER.info("Checking directory: %s", root)
            try:
                found = remove_empty_subdirectories(root)
            except OSError as exc:
                LOGGER.warning("Cleanup of %s failed: %s", root, exc)
                continue
            for folder in found:
                LOGGER.info("Deleted empty folder: %s", folder)
            removed.extend(found)
    LOGGER.info("Cleanup complete; %d empty folders removed.", len(removed))
    return removed
