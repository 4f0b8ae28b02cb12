"""Helpers to drive a tethered camera through the gphoto2 CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Final
import shutil
import subprocess

from .exceptions import (
    CameraDeviceError,
    CaptureTimeoutError,
    DependencyMissingError,
    FileNotCreatedError,
)


DEFAULT_GPHOTO2_BIN: Final[str] = "gphoto2"
DETECT_TIMEOUT_SEC: Final[float] = 15.0


def capture_image_to_file(
    output_path: str | Path,
    gphoto2_bin: str = DEFAULT_GPHOTO2_BIN,
    timeout_sec: float = 30.0,
) -> Path:
    """Trigger one exposure and download it to ``output_path``.

    Single attempt; the caller owns the retry policy.
    """
    if shutil.which(gphoto2_bin) is None:
        raise DependencyMissingError(f"Required binary not found in PATH: {gphoto2_bin}")

    target = Path(output_path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)

    command = [
        gphoto2_bin,
        "--capture-image-and-download",
        "--filename",
        str(target),
    ]

    try:
        subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
            timeout=timeout_sec,
        )
    except FileNotFoundError as exc:
        raise DependencyMissingError(f"Required binary not found in PATH: {gphoto2_bin}") from exc
    except subprocess.TimeoutExpired as exc:
        target.unlink(missing_ok=True)
        raise CaptureTimeoutError(f"gphoto2 timed out after {timeout_sec:g}s.") from exc
    except subprocess.CalledProcessError as exc:
        target.unlink(missing_ok=True)
        stderr = (exc.stderr or "").strip()
        raise CameraDeviceError(f"gphoto2 failed (exit {exc.returncode}): {stderr}") from exc

    if not target.exists() or target.stat().st_size == 0:
        target.unlink(missing_ok=True)
        raise FileNotCreatedError(f"gphoto2 completed but {target.name} was not created.")
    return target


def detect_cameras(gphoto2_bin: str = DEFAULT_GPHOTO2_BIN) -> list[str]:
    """Return the ``--auto-detect`` rows for USB-attached cameras."""
    try:
        proc = subprocess.run(
            [gphoto2_bin, "--auto-detect"],
            check=True,
            capture_output=True,
            text=True,
            timeout=DETECT_TIMEOUT_SEC,
        )
    except FileNotFoundError as exc:
        raise DependencyMissingError(f"Required binary not found in PATH: {gphoto2_bin}") from exc
    except subprocess.TimeoutExpired as exc:
        raise CaptureTimeoutError("gphoto2 --auto-detect timed out.") from exc
    except subprocess.CalledProcessError as exc:
        raise CameraDeviceError(f"gphoto2 --auto-detect failed: {(exc.stderr or '').strip()}") from exc

    return [line.strip() for line in proc.stdout.splitlines() if "usb:" in line]
