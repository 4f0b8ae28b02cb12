"""Local and removable storage helpers."""

from .exceptions import (
    BackupChecksumMismatchError,
    BackupError,
    DirectoryCreateFailedError,
    MountError,
    MoveFailedError,
    StorageError,
)
from .volume import RemovableVolume, remove_empty_subdirectories

__all__ = [
    "BackupChecksumMismatchError",
    "BackupError",
    "DirectoryCreateFailedError",
    "MountError",
    "MoveFailedError",
    "RemovableVolume",
    "StorageError",
    "remove_empty_subdirectories",
]
