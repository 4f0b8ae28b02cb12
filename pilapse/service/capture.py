"""Drive the camera to produce one photo."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable
import logging

from pilapse.camera import (
    CaptureError,
    CaptureTimeoutError,
    FileNotCreatedError,
    capture_image_to_file,
)
from pilapse.notify import NotificationSink
from pilapse.photo import photo_from_path
from pilapse.retry import CAMERA_RETRY, RetryPolicy

from .results import StageResult


LOGGER = logging.getLogger("pilapse.service.capture")
STAGE = "capture"


class CaptureController:
    def __init__(
        self,
        project_name: str,
        notifier: NotificationSink,
        timeout_sec: float = 30.0,
        retry_policy: RetryPolicy = CAMERA_RETRY,
        capture_func: Callable[..., Path] = capture_image_to_file,
    ) -> None:
        self.project_name = project_name
        self.notifier = notifier
        self.timeout_sec = timeout_sec
        self.retry_policy = retry_policy
        self.capture_func = capture_func

    def capture(self, destination: Path) -> StageResult:
        """Capture into ``destination``; two failed attempts end the cycle."""
        LOGGER.info("Attempting to capture photo: %s", destination)
        try:
            path = self.retry_policy.call(
                lambda: self.capture_func(destination, timeout_sec=self.timeout_sec),
                retry_on=(CaptureError,),
                label="Photo capture",
            )
        except CaptureError as exc:
            LOGGER.error("All attempts to capture %s failed: %s", destination.name, exc)
            self.notifier.notify(self._failure_message(destination, exc))
            return StageResult.failure(STAGE, exc)

        photo = photo_from_path(path, self.project_name)
        if photo is None:
            error = FileNotCreatedError(f"{path.name} does not carry a sequence number and capture time.")
            LOGGER.error("Captured file is unusable: %s", error)
            self.notifier.notify(self._failure_message(destination, error))
            return StageResult.failure(STAGE, error)
        LOGGER.info("Photo captured: %s", path)
        return StageResult.success(STAGE, photo=photo, path=path)

    def _failure_message(self, destination: Path, error: CaptureError) -> str:
        when = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        if isinstance(error, CaptureTimeoutError):
            headline, detail = "Photo Capture Timed Out", f"Expected file: `{destination.name}`"
        elif isinstance(error, FileNotCreatedError):
            headline, detail = "Photo Capture Failed", f"File not created: `{destination.name}`"
        else:
            headline, detail = "Photo Capture Failed", f"Camera error: {error}"
        return (
            f"\N{POLICE CARS REVOLVING LIGHT} *{headline}* (after retry)\n"
            f"Project: {self.project_name}\nTime: {when}\n{detail}"
        )
