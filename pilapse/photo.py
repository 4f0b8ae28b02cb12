"""Photo identity, filename codec and date partitioning."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from pathlib import Path
from typing import Final
import re


SEQUENCE_WIDTH: Final[int] = 5
PHOTO_SUFFIX: Final[str] = ".jpg"
FILENAME_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?P<sequence>\d{5})_(?P<day>\d{8})_(?P<hhmm>\d{4})\.jpg$"
)
SEQUENCE_PREFIX_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(\d{5})_.*\.jpg$")
PHOTOS_FOLDER: Final[str] = "Daily Photos"
REVIEWS_FOLDER: Final[str] = "Daily Reviews"
LOGS_FOLDER: Final[str] = "Logs"


@dataclass(frozen=True, slots=True)
class Photo:
    """One captured image moving between pipeline stages."""

    sequence: int
    captured_at: datetime
    path: Path
    project_name: str
    digest: str | None = None

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def capture_date(self) -> date:
        return self.captured_at.date()

    def moved_to(self, path: Path, digest: str | None = None) -> Photo:
        return replace(self, path=path, digest=digest or self.digest)


def format_sequence(sequence: int) -> str:
    """Render a counter value the way every store persists it."""
    return f"{sequence:0{SEQUENCE_WIDTH}d}"


def parse_sequence_text(text: str) -> int:
    """Parse a persisted counter; blank or malformed content counts as zero."""
    stripped = text.strip()
    if not stripped.isdigit():
        return 0
    return int(stripped, 10)


def photo_filename(sequence: int, captured_at: datetime) -> str:
    return f"{format_sequence(sequence)}_{captured_at:%Y%m%d_%H%M}{PHOTO_SUFFIX}"


def sequence_from_filename(filename: str) -> int | None:
    """Return the embedded sequence number, or None for foreign files."""
    match = SEQUENCE_PREFIX_PATTERN.match(filename)
    if not match:
        return None
    return int(match.group(1), 10)


def capture_time_label(filename: str) -> str | None:
    """Return the ``HH:MM`` label encoded in a photo filename."""
    match = FILENAME_PATTERN.match(filename)
    if not match:
        return None
    hhmm = match.group("hhmm")
    return f"{hhmm[:2]}:{hhmm[2:]}"


def photo_from_path(path: Path, project_name: str) -> Photo | None:
    """Rebuild a Photo from a file already named by the pipeline."""
    match = FILENAME_PATTERN.match(path.name)
    if not match:
        return None
    captured_at = datetime.strptime(f"{match.group('day')}{match.group('hhmm')}", "%Y%m%d%H%M")
    return Photo(
        sequence=int(match.group("sequence"), 10),
        captured_at=captured_at,
        path=path,
        project_name=project_name,
    )


def day_folder(day: date) -> str:
    """Date partition name, e.g. ``23-01-2025``."""
    return day.strftime("%d-%m-%Y")


def month_folder(day: date) -> str:
    """Month partition name for photos, e.g. ``January 2025``."""
    return day.strftime("%B %Y")


def review_month_folder(day: date) -> str:
    return day.strftime("%B")


def human_date(day: date) -> str:
    return day.strftime("%b %d, %Y")


def remote_photo_folder(project_name: str, day: date) -> str:
    return f"{project_name}/{PHOTOS_FOLDER}/{month_folder(day)}/{day_folder(day)}"


def remote_review_path(project_name: str, day: date) -> str:
    return f"{project_name}/{REVIEWS_FOLDER}/{review_month_folder(day)}/{day_folder(day)}.jpg"


def staging_folder(photo_dir: Path, project_name: str, day: date) -> Path:
    return photo_dir / project_name / PHOTOS_FOLDER / month_folder(day) / day_folder(day)


def list_photos(folder: Path) -> list[Path]:
    """Sorted ``*.jpg`` files directly inside ``folder``; missing folder is empty."""
    if not folder.is_dir():
        return []
    return sorted(p for p in folder.iterdir() if p.is_file() and p.suffix == PHOTO_SUFFIX)
