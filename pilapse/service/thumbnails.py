"""Per-photo thumbnails labelled with their capture time."""

from __future__ import annotations

from pathlib import Path
from typing import Final
import logging

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from pilapse.notify import NotificationSink
from pilapse.photo import Photo, capture_time_label, day_folder

from .exceptions import ThumbnailError
from .results import StageResult


THUMBNAIL_SIZE: Final[tuple[int, int]] = (200, 200)
LABEL_COLOR: Final[tuple[int, int, int]] = (255, 255, 0)
LABEL_FONT_SIZE: Final[int] = 20
LABEL_TOP_MARGIN: Final[int] = 4

LOGGER = logging.getLogger("pilapse.service.thumbnails")
STAGE = "thumbnail"


def render_thumbnail(source: Path, target: Path, label: str | None) -> Path:
    """Write a JPEG thumbnail of ``source`` with ``label`` drawn at the top centre."""
    try:
        with Image.open(source) as image:
            thumb = image.convert("RGB")
    except (OSError, UnidentifiedImageError) as exc:
        raise ThumbnailError(f"Cannot open {source}: {exc}") from exc

    thumb.thumbnail(THUMBNAIL_SIZE)
    if label:
        draw = ImageDraw.Draw(thumb)
        font = ImageFont.load_default(size=LABEL_FONT_SIZE)
        left, _, right, _ = draw.textbbox((0, 0), label, font=font)
        x = max((thumb.width - (right - left)) // 2, 0)
        draw.text((x, LABEL_TOP_MARGIN), label, fill=LABEL_COLOR, font=font)

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        thumb.save(target, format="JPEG")
    except OSError as exc:
        raise ThumbnailError(f"Cannot write thumbnail {target}: {exc}") from exc
    return target


class ThumbnailBuilder:
    def __init__(self, thumbnail_dir: Path, notifier: NotificationSink) -> None:
        self.thumbnail_dir = Path(thumbnail_dir)
        self.notifier = notifier

    def path_for(self, photo: Photo) -> Path:
        return self.thumbnail_dir / day_folder(photo.capture_date) / photo.filename

    def thumbnail(self, photo: Photo) -> StageResult:
        target = self.path_for(photo)
        if target.exists():
            LOGGER.debug("Thumbnail already exists: %s", target)
            return StageResult.success(STAGE, photo=photo, path=target)

        try:
            render_thumbnail(photo.path, target, capture_time_label(photo.filename))
        except ThumbnailError as exc:
            LOGGER.error("Thumbnail failed for %s: %s", photo.filename, exc)
            self.notifier.notify(f"Failed to create thumbnail for {photo.filename}\nError: {exc}")
            return StageResult.failure(STAGE, exc, photo=photo)

        LOGGER.info("Thumbnail created: %s", target)
        return StageResult.success(STAGE, photo=photo, path=target)
