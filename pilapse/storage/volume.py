"""Removable backup volume with scoped, reference-counted mounting."""

from __future__ import annotations

from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Final, Iterator
import logging
import subprocess

from .exceptions import MountError


COMMAND_TIMEOUT_SEC: Final[float] = 30.0

LOGGER = logging.getLogger("pilapse.storage.volume")


class RemovableVolume:
    """A filesystem identified by label, attached at a shared mount point.

    ``acquire()`` mounts on first entry and unmounts on last exit, but only
    when this object performed the mount. A volume that was already mounted
    by someone else is used and left mounted.
    """

    def __init__(self, label: str, mount_point: Path) -> None:
        self.label = label
        self.mount_point = Path(mount_point)
        self._depth = 0
        self._owned = False

    @property
    def configured(self) -> bool:
        return bool(self.label)

    @property
    def held(self) -> bool:
        return self._depth > 0

    @contextmanager
    def acquire(self) -> Iterator[Path]:
        """Yield the mount point with the volume attached; raise MountError otherwise."""
        if self._depth == 0:
            self._owned = self._attach()
        self._depth += 1
        try:
            yield self.mount_point
        finally:
            self._depth -= 1
            if self._depth == 0 and self._owned:
                self._owned = False
                self._detach()

    @contextmanager
    def acquire_optional(self) -> Iterator[Path | None]:
        """Like ``acquire()`` but yield None when the volume is unavailable."""
        if not self.configured and not self.held:
            yield None
            return
        with ExitStack() as stack:
            mount_point: Path | None
            try:
                mount_point = stack.enter_context(self.acquire())
            except MountError as exc:
                LOGGER.warning("Removable volume unavailable: %s", exc)
                mount_point = None
            yield mount_point

    def find_device(self) -> str | None:
        """Resolve the block device for the label, or None if not attached."""
        if not self.label:
            return None
        output = self._query(["findfs", f"LABEL={self.label}"])
        if output:
            return output.splitlines()[0].strip()
        output = self._query(["lsblk", "-ln", "-o", "NAME,LABEL"])
        for line in (output or "").splitlines():
            parts = line.split(None, 1)
            if len(parts) == 2 and parts[1].strip() == self.label:
                return f"/dev/{parts[0]}"
        return None

    def is_mounted(self) -> bool:
        try:
            proc = subprocess.run(
                ["mountpoint", "-q", str(self.mount_point)],
                check=False,
                capture_output=True,
                timeout=COMMAND_TIMEOUT_SEC,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired):
            return False
        return proc.returncode == 0

    def _attach(self) -> bool:
        """Make sure the volume is mounted; return True when this call mounted it."""
        if self.is_mounted():
            LOGGER.debug("Volume already mounted at %s", self.mount_point)
            return False
        if not self.label:
            raise MountError("No removable volume label configured.")

        device = self.find_device()
        if device is None:
            raise MountError(f"No device found with label {self.label!r}.")

        self.mount_point.mkdir(parents=True, exist_ok=True)
        self._mount(device)
        LOGGER.info("Mounted %s at %s", device, self.mount_point)
        return True

    def _mount(self, device: str) -> None:
        try:
            subprocess.run(
                ["mount", device, str(self.mount_point)],
                check=True,
                capture_output=True,
                text=True,
                timeout=COMMAND_TIMEOUT_SEC,
            )
        except FileNotFoundError as exc:
            raise MountError("Required binary not found in PATH: mount") from exc
        except subprocess.TimeoutExpired as exc:
            raise MountError(f"Mounting {device} timed out.") from exc
        except subprocess.CalledProcessError as exc:
            raise MountError(f"Failed to mount {device}: {(exc.stderr or '').strip()}") from exc

    def _detach(self) -> None:
        if self._unmount():
            LOGGER.info("Unmounted %s", self.mount_point)

    def _unmount(self) -> bool:
        try:
            subprocess.run(
                ["umount", str(self.mount_point)],
                check=True,
                capture_output=True,
                text=True,
                timeout=COMMAND_TIMEOUT_SEC,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired, subprocess.CalledProcessError) as exc:
            LOGGER.warning("Failed to unmount %s: %s", self.mount_point, exc)
            return False
        return True

    @staticmethod
    def _query(command: list[str]) -> str | None:
        try:
            proc = subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
                timeout=COMMAND_TIMEOUT_SEC,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired, subprocess.CalledProcessError):
            return None
        return proc.stdout.strip() or None


def remove_empty_subdirectories(root: Path) -> list[Path]:
    """Delete the empty immediate subdirectories of ``root``; return what was removed."""
    removed: list[Path] = []
    if not root.is_dir():
        return removed
    for folder in sorted(root.iterdir()):
        if folder.is_dir() and not folder.is_symlink() and not any(folder.iterdir()):
            folder.rmdir()
            removed.append(folder)
    return removed
