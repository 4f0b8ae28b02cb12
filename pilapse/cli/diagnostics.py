"""Non-interactive hardware and integration checks behind the ``test-*`` commands."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Callable
import shutil

from PIL import Image, ImageDraw

from pilapse.app import Services
from pilapse.camera import CameraModuleError, capture_image_to_file, detect_cameras
from pilapse.checksum import digests_match, file_digest
from pilapse.notify import NotificationError, NullMailer
from pilapse.photo import photo_filename, photo_from_path
from pilapse.remote import RcloneRemote, RemoteError, UploadError
from pilapse.service import UploadManager
from pilapse.storage import MountError


UNREACHABLE_REMOTE = "FAKE_REMOTE_THAT_DOES_NOT_EXIST"
TEST_FOLDER = "test"


def _ok(message: str) -> None:
    print(f"\N{CHECK MARK} {message}")


def _fail(message: str) -> None:
    print(f"\N{BALLOT X} {message}")


def _banner(title: str) -> None:
    print(f"=== {title} ===")


def check_camera(services: Services) -> bool:
    _banner("Testing camera connection")
    try:
        cameras = detect_cameras()
    except CameraModuleError as exc:
        _fail(f"Camera detection failed: {exc}")
        return False
    if not cameras:
        _fail("No camera detected. Check USB cable, power and that the camera is not in mass storage mode.")
        return False
    for camera in cameras:
        _ok(f"Camera detected: {camera}")

    with TemporaryDirectory(prefix="timelapse_test_") as tmp:
        target = Path(tmp) / "test_capture.jpg"
        try:
            capture_image_to_file(target, timeout_sec=services.settings.camera_timeout_sec)
        except CameraModuleError as exc:
            _fail(f"Test capture failed: {exc}")
            return False
        _ok(f"Test capture successful ({target.stat().st_size} bytes)")
    return True


def check_upload(services: Services) -> bool:
    _banner("Testing cloud upload")
    folder = f"{services.settings.project_name}/{TEST_FOLDER}"
    with TemporaryDirectory(prefix="timelapse_test_") as tmp:
        probe = Path(tmp) / "test_upload.txt"
        probe.write_text(f"test {datetime.now():%Y-%m-%d %H:%M:%S}\n", encoding="utf-8")
        try:
            services.uploader.copy_and_verify(probe, folder)
        except UploadError as exc:
            _fail(f"Upload failed: {exc}")
            print("Check the rclone configuration and the internet connection.")
            return False
        _ok("Upload successful and verified on remote")
        try:
            services.remote.delete(f"{folder}/{probe.name}")
        except RemoteError as exc:
            _fail(f"Cleanup of remote test file failed: {exc}")
            return False
    _ok("Cleanup complete")
    return True


def check_email(services: Services) -> bool:
    _banner("Testing email")
    if isinstance(services.mailer, NullMailer):
        _fail("No email recipients configured")
        return False
    body = (
        f"Test email sent at {datetime.now():%Y-%m-%d %H:%M:%S}\n\n"
        "If you received this, email is working correctly."
    )
    try:
        services.mailer.send("Test from timelapse", body)
    except NotificationError as exc:
        _fail(f"Email failed: {exc}")
        return False
    _ok(f"Email sent to {' '.join(services.settings.email_recipients)}")
    return True


def check_usb(services: Services) -> bool:
    _banner("Testing USB backup volume")
    volume = services.volume
    if not volume.configured:
        _fail("No USB backup label configured")
        return False
    device = volume.find_device()
    if device is None:
        _fail(f"No device found with label {volume.label!r}")
        return False
    _ok(f"Found device {device}")
    try:
        with volume.acquire() as mount_point:
            usage = shutil.disk_usage(mount_point)
            _ok(f"Mounted at {mount_point} ({usage.free // (1024 * 1024)} MiB free of {usage.total // (1024 * 1024)} MiB)")
    except MountError as exc:
        _fail(f"Mount failed: {exc}")
        return False
    return True


def check_usb_write(services: Services) -> bool:
    _banner("Testing USB write")
    try:
        with services.volume.acquire() as mount_point:
            probe = mount_point / ".timelapse_write_test"
            with TemporaryDirectory(prefix="timelapse_test_") as tmp:
                source = Path(tmp) / "probe.bin"
                source.write_bytes(datetime.now().isoformat().encode("ascii") * 64)
                shutil.copyfile(source, probe)
                matches = digests_match(file_digest(source), file_digest(probe))
            probe.unlink(missing_ok=True)
    except MountError as exc:
        _fail(f"Mount failed: {exc}")
        return False
    except OSError as exc:
        _fail(f"Write test failed: {exc}")
        return False
    if not matches:
        _fail("Data read back from USB does not match what was written")
        return False
    _ok("Write and read-back verified")
    return True


def _make_test_photo(folder: Path, taken_at: datetime) -> Path:
    path = folder / photo_filename(0, taken_at)
    image = Image.new("RGB", (800, 600), (0, 0, 255))
    ImageDraw.Draw(image).text((320, 290), f"TEST PHOTO {taken_at:%H:%M}", fill=(255, 255, 255))
    image.save(path, format="JPEG")
    return path


def check_backup_failure(services: Services) -> bool:
    """Push a generated photo through the stages with an unreachable remote."""
    _banner("Testing backup failure scenario")
    settings = services.settings
    uploader = UploadManager(RcloneRemote(UNREACHABLE_REMOTE, retries=1), services.notifier, settings.project_name)

    with TemporaryDirectory(prefix="timelapse_test_") as tmp:
        photo = photo_from_path(_make_test_photo(Path(tmp), datetime.now()), settings.project_name)
        if photo is None:
            _fail("Generated test photo name is not recognised")
            return False
        print(f"Created test photo: {photo.path}")

        upload = uploader.upload(photo)
        if upload.ok:
            _fail("Upload should have failed but succeeded")
        else:
            _ok(f"Upload failed as expected: {upload.error}")

        thumb = services.thumbnails.thumbnail(photo)
        backup = services.backup.backup(photo)

    passed = not upload.ok
    if backup.ok and backup.path is not None:
        _ok(f"Found in local backup: {backup.path}")
        backup.path.unlink(missing_ok=True)
    else:
        _fail(f"NOT found in local backup: {backup.error}")
        passed = False
    if thumb.ok and thumb.path is not None:
        _ok(f"Thumbnail created: {thumb.path}")
        thumb.path.unlink(missing_ok=True)
    else:
        _fail(f"Thumbnail NOT created: {thumb.error}")
        passed = False
    print("Test files cleaned up")
    return passed


CHECKS: dict[str, Callable[[Services], bool]] = {
    "test-camera": check_camera,
    "test-upload": check_upload,
    "test-email": check_email,
    "test-usb": check_usb,
    "test-usb-write": check_usb_write,
    "test-backup-failure": check_backup_failure,
}


def run_check(name: str, services: Services) -> int:
    if name == "test-all":
        results = []
        for check in CHECKS.values():
            results.append(check(services))
            print()
        return 0 if all(results) else 1
    return 0 if CHECKS[name](services) else 1
