"""Custom exceptions for camera capture."""


class CameraModuleError(Exception):
    """Base exception for camera-related failures."""


class CaptureError(CameraModuleError):
    """Raised when the camera did not produce a photo."""


class CaptureTimeoutError(CaptureError):
    """Raised when the camera does not finish within the timeout."""


class CameraDeviceError(CaptureError):
    """Raised when the camera tool exits with an error."""


class FileNotCreatedError(CaptureError):
    """Raised when the camera tool succeeded but no image file exists."""


class DependencyMissingError(CameraDeviceError):
    """Raised when required external tools are missing."""
