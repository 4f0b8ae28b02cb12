"""Scheduler file and config file generation.

Both files are regenerated wholesale from ``AppSettings`` on every change.
"""

from __future__ import annotations

from pathlib import Path
from typing import Final
import os
import shlex
import tempfile

from pilapse.config import CONFIG_KEYS, AppSettings


CRON_USER: Final[str] = "root"
CAPTURE_OUTPUT: Final[str] = "/var/log/timelapse.log"


def _cron_time(value: str) -> tuple[int, int]:
    hour, _, minute = value.partition(":")
    return int(hour), int(minute)


def render_schedule(settings: AppSettings) -> str:
    """Render the cron.d file: the capture window plus the three daily tasks."""
    if settings.interval_mins is None:
        raise RuntimeError("INTERVAL_MINS is not configured")
    exe = settings.executable
    lines = [
        f"# Timelapse photo capture: runs every {settings.interval_mins} minutes "
        f"between {settings.start_hour}:00 and {settings.stop_hour}:00",
        f"*/{settings.interval_mins} {settings.start_hour}-{settings.stop_hour - 1} * * * "
        f"{CRON_USER} {exe} capture >{CAPTURE_OUTPUT} 2>&1",
        "",
        "# Timelapse end-of-day tasks",
    ]
    for value, command in (
        (settings.sync_time, "end_of_day_sync"),
        (settings.montage_time, "create_daily_montage"),
        (settings.cleanup_time, "cleanup_directories"),
    ):
        hour, minute = _cron_time(value)
        lines.append(f"{minute} {hour} * * * {CRON_USER} {exe} {command}")
    return "\n".join(lines) + "\n"


def render_config(settings: AppSettings) -> str:
    values = settings.as_config_values()
    return "".join(f"{key}={shlex.quote(values[key])}\n" for key in CONFIG_KEYS)


def _write_atomic(path: Path, text: str, mode: int) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}-", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path


def write_schedule(settings: AppSettings) -> Path:
    return _write_atomic(settings.cron_file, render_schedule(settings), 0o644)


def write_config(settings: AppSettings) -> Path:
    """Persist the settings' key=value subset with owner-only permissions."""
    return _write_atomic(settings.config_path, render_config(settings), 0o600)
