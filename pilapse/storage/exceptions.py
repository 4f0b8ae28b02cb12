"""Custom exceptions for local and removable storage."""


class StorageError(Exception):
    """Base exception for storage failures."""


class MountError(StorageError):
    """Raised when the removable volume cannot be found or mounted."""


class BackupError(StorageError):
    """Raised when a photo could not be moved into verified backup."""


class DirectoryCreateFailedError(BackupError):
    """Raised when the backup partition cannot be created."""


class MoveFailedError(BackupError):
    """Raised when the photo cannot be moved into the backup partition."""


class BackupChecksumMismatchError(BackupError):
    """Raised when the moved file's digest differs from the source digest."""

    def __init__(self, filename: str, original_digest: str, backup_digest: str) -> None:
        super().__init__(
            f"Backup verification failed for {filename}: "
            f"original={original_digest} backup={backup_digest}"
        )
        self.filename = filename
        self.original_digest = original_digest
        self.backup_digest = backup_digest
