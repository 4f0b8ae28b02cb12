"""Logging setup and daily log rotation."""

from __future__ import annotations

from datetime import date
from pathlib import Path
import logging
import sys

from pilapse.config import AppSettings


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOGGER = logging.getLogger("pilapse.logs")


def _open_file_handler(path: Path) -> logging.FileHandler | None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        print(f"WARNING: Cannot open log file {path}: {exc}", file=sys.stderr)
        return None


def configure_logging(settings: AppSettings, level: int = logging.INFO) -> Path | None:
    """Log to stderr and to the project log file, falling back to /tmp.

    Returns the file actually used, or None when only stderr is available.
    """
    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    candidates = [settings.log_file, Path("/tmp") / f"timelapse_{date.today():%Y%m%d}.log"]
    for candidate in candidates:
        handler = _open_file_handler(candidate)
        if handler is not None:
            handler.setFormatter(formatter)
            root.addHandler(handler)
            return candidate
    return None


def rotate_log_file(log_file: Path, day: date) -> Path | None:
    """Move the active log aside as ``<name>.<YYYY-MM-DD>`` and start a fresh one.

    File handlers attached to ``log_file`` are reopened on the new file.
    """
    handlers = [
        h
        for h in logging.getLogger().handlers
        if isinstance(h, logging.FileHandler) and Path(h.baseFilename) == log_file.resolve()
    ]
    for handler in handlers:
        handler.close()

    rotated: Path | None = None
    if log_file.exists():
        rotated = log_file.with_name(f"{log_file.name}.{day:%Y-%m-%d}")
        log_file.replace(rotated)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    log_file.touch()

    # FileHandler reopens its stream lazily on the next emit.
    if rotated is not None:
        LOGGER.info("Rotated log file to %s", rotated)
    return rotated
