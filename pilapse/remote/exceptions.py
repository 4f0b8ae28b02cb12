"""Custom exceptions for cloud remote transfers."""


class RemoteError(Exception):
    """Base exception for cloud remote failures."""


class RemoteCommandError(RemoteError):
    """Raised when an rclone invocation fails or times out."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class RemoteDependencyMissingError(RemoteCommandError):
    """Raised when the rclone binary is not installed."""


class UploadError(RemoteError):
    """Raised when a photo could not be placed on the remote and verified."""


class TransportFailedError(UploadError):
    """Raised when the transfer itself reports failure."""


class NotFoundAfterUploadError(UploadError):
    """Raised when the transfer claimed success but the remote has no such file."""


class UploadChecksumMismatchError(UploadError):
    """Raised when the remote digest differs from the local digest."""

    def __init__(self, filename: str, local_digest: str, remote_digest: str | None) -> None:
        super().__init__(
            f"Checksum mismatch for {filename}: local={local_digest} remote={remote_digest or 'missing'}"
        )
        self.filename = filename
        self.local_digest = local_digest
        self.remote_digest = remote_digest
