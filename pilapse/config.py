"""Runtime configuration helpers."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
import os
import re
import shlex


DEFAULT_CONFIG_PATH = "/etc/timelapse.conf"
TIME_PATTERN = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")

CONFIG_KEYS = (
    "PROJECT_NAME",
    "USB_BACKUP_LABEL",
    "INTERVAL_MINS",
    "START_HOUR",
    "STOP_HOUR",
    "SYNC_TIME",
    "MONTAGE_TIME",
    "CLEANUP_TIME",
    "EMAIL_RECIPIENTS",
    "SLACK_WEBHOOK",
    "SLACK_USER_ID",
)


@dataclass(frozen=True)
class AppSettings:
    """Project configuration plus the filesystem/tool layout of the host."""

    project_name: str
    usb_backup_label: str
    interval_mins: int | None
    start_hour: int
    stop_hour: int
    sync_time: str
    montage_time: str
    cleanup_time: str
    email_recipients: tuple[str, ...]
    slack_webhook: str
    slack_user_id: str

    photo_dir: Path = Path("/home/admin/photos")
    backup_dir: Path = Path("/home/admin/backups")
    thumbnail_dir: Path = Path("/home/admin/thumbnails")
    work_dir: Path = Path("/home/admin")
    log_dir: Path = Path("/home/admin/logs")
    state_dir: Path = Path("/var/lib/timelapse")
    mount_point: Path = Path("/mnt/BackupArchive")
    remote_name: str = "aperturetimelapsedrive"
    camera_timeout_sec: float = 30.0
    capture_retry_backoff_sec: float = 10.0
    transport_retries: int = 3
    mention_cooldown_seconds: int = 3600
    config_path: Path = Path(DEFAULT_CONFIG_PATH)
    cron_file: Path = Path("/etc/cron.d/timelapse")
    executable: str = "/usr/local/bin/timelapse"
    database_url: str = field(default="")

    @property
    def log_file(self) -> Path:
        return self.log_dir / "timelapse.log"

    @property
    def counter_file(self) -> Path:
        return self.state_dir / "counter.txt"

    @property
    def lock_file(self) -> Path:
        return self.state_dir / "capture.lock"

    @property
    def mention_cooldown_file(self) -> Path:
        return Path("/tmp") / f"timelapse_mention_cooldown_{self.project_name.replace(' ', '_')}"

    @property
    def resolved_database_url(self) -> str:
        return self.database_url or f"sqlite:///{self.state_dir / 'ledger.sqlite3'}"

    def as_config_values(self) -> dict[str, str]:
        """Return the persisted key=value subset of the settings."""
        return {
            "PROJECT_NAME": self.project_name,
            "USB_BACKUP_LABEL": self.usb_backup_label,
            "INTERVAL_MINS": "" if self.interval_mins is None else str(self.interval_mins),
            "START_HOUR": str(self.start_hour),
            "STOP_HOUR": str(self.stop_hour),
            "SYNC_TIME": self.sync_time,
            "MONTAGE_TIME": self.montage_time,
            "CLEANUP_TIME": self.cleanup_time,
            "EMAIL_RECIPIENTS": " ".join(self.email_recipients),
            "SLACK_WEBHOOK": self.slack_webhook,
            "SLACK_USER_ID": self.slack_user_id,
        }


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer for {name}: {value}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid float for {name}: {value}") from exc


def _env_path(name: str, default: str) -> Path:
    return Path(os.getenv(name, default))


def _parse_int(values: dict[str, str], key: str, default: int | None) -> int | None:
    raw = values.get(key, "")
    if raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer for {key}: {raw}") from exc


def _parse_time(values: dict[str, str], key: str, default: str) -> str:
    raw = values.get(key, "") or default
    if not TIME_PATTERN.match(raw):
        raise RuntimeError(f"Invalid time for {key}: {raw} (use HH:MM)")
    return raw


def read_config_file(path: Path) -> dict[str, str]:
    """Parse a shell-style key=value file, ignoring comments and blank lines."""
    values: dict[str, str] = {}
    if not path.is_file():
        return values
    for line_no, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        key, sep, raw_value = stripped.partition("=")
        if not sep:
            raise RuntimeError(f"Malformed line {line_no} in {path}: {line}")
        tokens = shlex.split(raw_value) if raw_value.strip() else []
        values[key.strip()] = " ".join(tokens)
    return values


def validate_settings(settings: AppSettings) -> None:
    """Check cross-field constraints; raise RuntimeError on the first violation."""
    if settings.interval_mins is not None and settings.interval_mins < 1:
        raise RuntimeError(f"Invalid INTERVAL_MINS: {settings.interval_mins} (must be positive)")
    for key, hour in (("START_HOUR", settings.start_hour), ("STOP_HOUR", settings.stop_hour)):
        if not 0 <= hour <= 23:
            raise RuntimeError(f"Invalid {key}: {hour} (must be between 0 and 23)")
    if settings.start_hour >= settings.stop_hour:
        raise RuntimeError("START_HOUR must be before STOP_HOUR")


def _config_fields(values: dict[str, str]) -> dict:
    return dict(
        project_name=values.get("PROJECT_NAME", ""),
        usb_backup_label=values.get("USB_BACKUP_LABEL", ""),
        interval_mins=_parse_int(values, "INTERVAL_MINS", None),
        start_hour=_parse_int(values, "START_HOUR", 7),
        stop_hour=_parse_int(values, "STOP_HOUR", 19),
        sync_time=_parse_time(values, "SYNC_TIME", "22:00"),
        montage_time=_parse_time(values, "MONTAGE_TIME", "23:00"),
        cleanup_time=_parse_time(values, "CLEANUP_TIME", "00:00"),
        email_recipients=tuple(values.get("EMAIL_RECIPIENTS", "").split()),
        slack_webhook=values.get("SLACK_WEBHOOK", ""),
        slack_user_id=values.get("SLACK_USER_ID", ""),
    )


def apply_config_values(settings: AppSettings, values: dict[str, str]) -> AppSettings:
    """Replace the config-file part of ``settings``, keeping the host layout."""
    updated = replace(settings, **_config_fields(values))
    validate_settings(updated)
    return updated


def settings_from_values(values: dict[str, str], config_path: Path) -> AppSettings:
    """Build settings from parsed config values and the process environment."""
    settings = AppSettings(
        **_config_fields(values),
        photo_dir=_env_path("PILAPSE_PHOTO_DIR", "/home/admin/photos"),
        backup_dir=_env_path("PILAPSE_BACKUP_DIR", "/home/admin/backups"),
        thumbnail_dir=_env_path("PILAPSE_THUMBNAIL_DIR", "/home/admin/thumbnails"),
        work_dir=_env_path("PILAPSE_WORK_DIR", "/home/admin"),
        log_dir=_env_path("PILAPSE_LOG_DIR", "/home/admin/logs"),
        state_dir=_env_path("PILAPSE_STATE_DIR", "/var/lib/timelapse"),
        mount_point=_env_path("PILAPSE_MOUNT_POINT", "/mnt/BackupArchive"),
        remote_name=os.getenv("PILAPSE_REMOTE", "aperturetimelapsedrive"),
        camera_timeout_sec=_env_float("PILAPSE_CAMERA_TIMEOUT", 30.0),
        capture_retry_backoff_sec=_env_float("PILAPSE_CAPTURE_BACKOFF", 10.0),
        transport_retries=_env_int("PILAPSE_TRANSPORT_RETRIES", 3),
        mention_cooldown_seconds=_env_int("PILAPSE_MENTION_COOLDOWN", 3600),
        config_path=config_path,
        cron_file=_env_path("PILAPSE_CRON_FILE", "/etc/cron.d/timelapse"),
        executable=os.getenv("PILAPSE_EXECUTABLE", "/usr/local/bin/timelapse"),
        database_url=os.getenv("PILAPSE_DATABASE_URL", ""),
    )
    validate_settings(settings)
    return settings


def load_settings(config_path: str | Path | None = None) -> AppSettings:
    """Load all app settings from the config file and the environment."""
    path = Path(config_path or os.getenv("PILAPSE_CONFIG", DEFAULT_CONFIG_PATH))
    return settings_from_values(read_config_file(path), config_path=path)
