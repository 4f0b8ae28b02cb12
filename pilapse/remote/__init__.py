"""Cloud remote access through rclone."""

from .exceptions import (
    NotFoundAfterUploadError,
    RemoteCommandError,
    RemoteDependencyMissingError,
    RemoteError,
    TransportFailedError,
    UploadChecksumMismatchError,
    UploadError,
)
from .rclone import DEFAULT_RCLONE_BIN, RcloneRemote, RemoteStore

__all__ = [
    "DEFAULT_RCLONE_BIN",
    "NotFoundAfterUploadError",
    "RcloneRemote",
    "RemoteCommandError",
    "RemoteDependencyMissingError",
    "RemoteError",
    "RemoteStore",
    "TransportFailedError",
    "UploadChecksumMismatchError",
    "UploadError",
]
