"""Daily contact sheet assembled from the day's thumbnails."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Final, Sequence
import logging
import math
import shutil

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from pilapse.notify import Mailer, NotificationError, NotificationSink
from pilapse.photo import (
    REVIEWS_FOLDER,
    day_folder,
    human_date,
    list_photos,
    remote_review_path,
    review_month_folder,
)
from pilapse.remote import RemoteError, RemoteStore
from pilapse.storage import MountError, RemovableVolume

from .exceptions import MontageError
from .report import ImageCounter
from .results import StageResult
from .thumbnails import THUMBNAIL_SIZE


TILES_PER_ROW: Final[int] = 6
TILE_MARGIN: Final[int] = 2
HEADING_HEIGHT: Final[int] = 40
HEADING_FONT_SIZE: Final[int] = 24
BACKGROUND: Final[tuple[int, int, int]] = (255, 255, 255)
HEADING_COLOR: Final[tuple[int, int, int]] = (0, 0, 0)

LOGGER = logging.getLogger("pilapse.service.montage")
STAGE = "montage"


def compose_montage(thumbnails: Sequence[Path], heading: str, target: Path) -> Path:
    """Tile ``thumbnails`` in order, six per row, under a centred heading."""
    if not thumbnails:
        raise MontageError("No thumbnails to tile.")

    cell_w = THUMBNAIL_SIZE[0] + 2 * TILE_MARGIN
    cell_h = THUMBNAIL_SIZE[1] + 2 * TILE_MARGIN
    columns = min(TILES_PER_ROW, len(thumbnails))
    rows = math.ceil(len(thumbnails) / TILES_PER_ROW)
    canvas = Image.new("RGB", (columns * cell_w, HEADING_HEIGHT + rows * cell_h), BACKGROUND)

    for index, path in enumerate(thumbnails):
        row, column = divmod(index, TILES_PER_ROW)
        try:
            with Image.open(path) as image:
                tile = image.convert("RGB")
        except (OSError, UnidentifiedImageError) as exc:
            LOGGER.warning("Skipping unreadable thumbnail %s: %s", path, exc)
            continue
        tile.thumbnail(THUMBNAIL_SIZE)
        x = column * cell_w + TILE_MARGIN + (THUMBNAIL_SIZE[0] - tile.width) // 2
        y = HEADING_HEIGHT + row * cell_h + TILE_MARGIN + (THUMBNAIL_SIZE[1] - tile.height) // 2
        canvas.paste(tile, (x, y))

    draw = ImageDraw.Draw(canvas)
    font = ImageFont.load_default(size=HEADING_FONT_SIZE)
    left, top, right, bottom = draw.textbbox((0, 0), heading, font=font)
    x = max((canvas.width - (right - left)) // 2, 0)
    y = max((HEADING_HEIGHT - (bottom - top)) // 2, 0)
    draw.text((x, y), heading, fill=HEADING_COLOR, font=font)

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        canvas.save(target, format="JPEG")
    except OSError as exc:
        raise MontageError(f"Cannot write montage {target}: {exc}") from exc
    return target


class MontageBuilder:
    """Builds, delivers and stores the daily review image.

    Delivery order: chat notification, e-mail, cloud remote. If the cloud
    upload fails the montage is moved onto the removable volume instead. The
    day's thumbnails are deleted once the montage has landed somewhere.
    """

    def __init__(
        self,
        thumbnail_dir: Path,
        work_dir: Path,
        remote: RemoteStore,
        volume: RemovableVolume,
        notifier: NotificationSink,
        mailer: Mailer,
        counter: ImageCounter,
        project_name: str,
    ) -> None:
        self.thumbnail_dir = Path(thumbnail_dir)
        self.work_dir = Path(work_dir)
        self.remote = remote
        self.volume = volume
        self.notifier = notifier
        self.mailer = mailer
        self.counter = counter
        self.project_name = project_name

    def thumbnails_for(self, day: date) -> list[Path]:
        """The day's thumbnails in capture order (oldest modification time first)."""
        return sorted(list_photos(self.thumbnail_dir / day_folder(day)), key=lambda p: p.stat().st_mtime)

    def build_daily_montage(self, day: date) -> StageResult:
        thumbnails = self.thumbnails_for(day)
        if not thumbnails:
            LOGGER.info("No thumbnails found for %s; skipping montage.", day)
            self.notifier.notify("No thumbnails found for today.")
            return StageResult.success(STAGE)

        report_path = self.work_dir / f"daily_report_{day_folder(day)}.jpg"
        LOGGER.info("Creating montage of %d thumbnails: %s", len(thumbnails), report_path)
        try:
            compose_montage(thumbnails, f"Daily Review: {human_date(day)}", report_path)
        except MontageError as exc:
            LOGGER.error("Montage creation failed: %s", exc)
            self.notifier.notify(f"Failed to create daily montage for {human_date(day)}\nError: {exc}")
            return StageResult.failure(STAGE, exc)

        self.notifier.notify(f"Daily montage created for {human_date(day)} ({len(thumbnails)} photos).")
        self._send_mail(day, report_path)

        montage = report_path.with_name(f"{day_folder(day)}.jpg")
        try:
            report_path.replace(montage)
        except OSError as exc:
            LOGGER.warning("Cannot rename montage %s: %s", report_path, exc)
            montage = report_path

        try:
            stored = self._store(day, montage)
        except MontageError as exc:
            LOGGER.error("Montage could not be stored anywhere: %s", exc)
            self.notifier.notify(
                f"Daily montage could not be uploaded or saved to USB.\nKept at: {montage}\nError: {exc}",
                insistent=True,
            )
            return StageResult.failure(STAGE, exc)

        shutil.rmtree(self.thumbnail_dir / day_folder(day), ignore_errors=True)
        LOGGER.info("Removed thumbnails for %s", day)
        return StageResult.success(STAGE, path=stored)

    def _send_mail(self, day: date, attachment: Path) -> None:
        body = self.counter.count(day).summary()
        try:
            self.mailer.send(f"Daily Report - {human_date(day)}", body, attachment)
        except NotificationError as exc:
            LOGGER.error("Failed to send daily report email: %s", exc)
            self.notifier.notify(f"Failed to send daily report email.\nError: {exc}", insistent=True)

    def _store(self, day: date, montage: Path) -> Path:
        remote_path = remote_review_path(self.project_name, day)
        try:
            self.remote.copy_to(montage, remote_path)
        except RemoteError as exc:
            LOGGER.warning("Montage upload failed, falling back to USB: %s", exc)
        else:
            LOGGER.info("Montage uploaded to %s", remote_path)
            montage.unlink(missing_ok=True)
            return Path(remote_path)

        try:
            with self.volume.acquire() as mount_point:
                folder = mount_point / REVIEWS_FOLDER / review_month_folder(day)
                folder.mkdir(parents=True, exist_ok=True)
                target = Path(shutil.move(str(montage), str(folder / montage.name)))
        except (MountError, OSError) as exc:
            raise MontageError(f"USB fallback failed: {exc}") from exc
        LOGGER.info("Montage saved to USB: %s", target)
        self.notifier.notify(f"Daily montage upload failed; saved to USB at {target}")
        return target
