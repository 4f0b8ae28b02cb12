"""Globally consistent photo sequence numbers."""

from __future__ import annotations

from pathlib import Path
from typing import Final, Iterable
import logging
import os
import tempfile

from pilapse.photo import format_sequence, parse_sequence_text, sequence_from_filename
from pilapse.remote import RemoteError, RemoteStore
from pilapse.storage import RemovableVolume


MIRROR_FILENAME: Final[str] = "timelapse_counter_backup.txt"
MARKER_FILENAME: Final[str] = ".timelapse_counter.txt"

LOGGER = logging.getLogger("pilapse.service.sequence")


def cloud_marker_path(project_name: str) -> str:
    return f"{project_name}/{MARKER_FILENAME}"


def highest_sequence_in(directories: Iterable[Path]) -> int:
    """Largest sequence number embedded in ``NNNNN_*.jpg`` names under the directories."""
    highest = 0
    for directory in directories:
        if not directory.is_dir():
            continue
        for path in directory.rglob("*.jpg"):
            sequence = sequence_from_filename(path.name)
            if sequence is not None and sequence > highest:
                highest = sequence
    return highest


def write_counter_file(path: Path, value: int) -> None:
    """Replace the counter file atomically with the zero-padded value."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".counter-", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="ascii") as f:
            f.write(format_sequence(value))
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class SequenceAuthority:
    """Issues the next sequence number from the counters held in every store.

    Sources, cheapest first: the local counter file, the removable-volume
    mirror, the cloud marker object and, only when all of those read zero,
    a scan of photo filenames on local disk. Unreachable sources are skipped.
    """

    def __init__(
        self,
        counter_file: Path,
        volume: RemovableVolume,
        remote: RemoteStore,
        project_name: str,
        scan_directories: Iterable[Path] = (),
    ) -> None:
        self.counter_file = counter_file
        self.volume = volume
        self.remote = remote
        self.project_name = project_name
        self.scan_directories = tuple(scan_directories)

    def next(self) -> int:
        """Return the sequence number for the next photo and advance every mirror."""
        with self.volume.acquire_optional() as mount_point:
            readings = {
                "local_file": self._read_local(),
                "usb_backup": self._read_mirror(mount_point),
                "cloud_marker": self._read_cloud(),
            }
            source, current = max(readings.items(), key=lambda item: item[1])
            if current == 0:
                # Filenames hold numbers already used; the next free one is above them.
                scanned = highest_sequence_in(self.scan_directories)
                if scanned:
                    source, current = "photo_filenames", scanned + 1
            if current == 0:
                source, current = "default", 1

            LOGGER.info(
                "Sequence %s issued (source=%s, local=%s, usb=%s, cloud=%s)",
                format_sequence(current),
                source,
                readings["local_file"],
                readings["usb_backup"],
                readings["cloud_marker"],
            )
            self._persist(current + 1, mount_point)
        return current

    def _read_local(self) -> int:
        try:
            return parse_sequence_text(self.counter_file.read_text(encoding="ascii"))
        except FileNotFoundError:
            return 0
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Cannot read local counter %s: %s", self.counter_file, exc)
            return 0

    def _read_mirror(self, mount_point: Path | None) -> int:
        if mount_point is None:
            return 0
        mirror = mount_point / MIRROR_FILENAME
        try:
            return parse_sequence_text(mirror.read_text(encoding="ascii"))
        except FileNotFoundError:
            return 0
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Cannot read USB counter mirror %s: %s", mirror, exc)
            return 0

    def _read_cloud(self) -> int:
        try:
            return parse_sequence_text(self.remote.read_text(cloud_marker_path(self.project_name)))
        except RemoteError as exc:
            LOGGER.info("No cloud counter available: %s", exc)
            return 0

    def _persist(self, value: int, mount_point: Path | None) -> None:
        try:
            write_counter_file(self.counter_file, value)
        except OSError as exc:
            LOGGER.error("Failed to persist local counter %s: %s", self.counter_file, exc)

        if mount_point is not None:
            try:
                write_counter_file(mount_point / MIRROR_FILENAME, value)
            except OSError as exc:
                LOGGER.warning("Failed to persist USB counter mirror: %s", exc)

        try:
            self.remote.write_text(cloud_marker_path(self.project_name), format_sequence(value))
        except RemoteError as exc:
            LOGGER.warning("Failed to update cloud counter: %s", exc)
