"""Service-layer business logic."""

from .backup import LocalBackupManager
from .capture import CaptureController
from .cleanup import cleanup_directories
from .exceptions import MontageError, ReconciliationError, ServiceError, ThumbnailError
from .ledger import PhotoLedger
from .montage import MontageBuilder, compose_montage
from .pipeline import CaptureOutcome, CapturePipeline
from .reconcile import EndOfDayReconciler, SyncReport
from .report import ImageCount, ImageCounter
from .results import StageResult
from .sequence import SequenceAuthority, cloud_marker_path, highest_sequence_in, write_counter_file
from .thumbnails import ThumbnailBuilder, render_thumbnail
from .upload import UploadManager

__all__ = [
    "CaptureController",
    "CaptureOutcome",
    "CapturePipeline",
    "EndOfDayReconciler",
    "ImageCount",
    "ImageCounter",
    "LocalBackupManager",
    "MontageBuilder",
    "MontageError",
    "PhotoLedger",
    "ReconciliationError",
    "SequenceAuthority",
    "ServiceError",
    "StageResult",
    "SyncReport",
    "ThumbnailBuilder",
    "ThumbnailError",
    "UploadManager",
    "cleanup_directories",
    "cloud_marker_path",
    "compose_montage",
    "highest_sequence_in",
    "render_thumbnail",
    "write_counter_file",
]
