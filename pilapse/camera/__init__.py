"""Camera integrations for timelapse capture."""

from .exceptions import (
    CameraDeviceError,
    CameraModuleError,
    CaptureError,
    CaptureTimeoutError,
    DependencyMissingError,
    FileNotCreatedError,
)
from .gphoto2 import (
    DEFAULT_GPHOTO2_BIN,
    capture_image_to_file,
    detect_cameras,
)

__all__ = [
    "CameraDeviceError",
    "CameraModuleError",
    "CaptureError",
    "CaptureTimeoutError",
    "DEFAULT_GPHOTO2_BIN",
    "DependencyMissingError",
    "FileNotCreatedError",
    "capture_image_to_file",
    "detect_cameras",
]
