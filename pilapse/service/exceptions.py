"""Custom exceptions for pipeline stages without a storage/remote/camera home."""


class ServiceError(Exception):
    """Base exception for service-layer failures."""


class ThumbnailError(ServiceError):
    """Raised when a thumbnail cannot be rendered."""


class MontageError(ServiceError):
    """Raised when the daily montage cannot be built or delivered anywhere."""


class ReconciliationError(ServiceError):
    """Raised when a file can be neither placed remotely nor quarantined."""
