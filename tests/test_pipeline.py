from __future__ import annotations

from datetime import datetime
import tempfile
import unittest
from pathlib import Path

from pilapse.app import build_services
from pilapse.camera import CameraDeviceError
from pilapse.db import PhotoState
from pilapse.lock import InvocationLockedError, exclusive_invocation
from pilapse.photo import remote_photo_folder, staging_folder
from pilapse.remote import UploadChecksumMismatchError
from pilapse.service.sequence import cloud_marker_path
from tests.fakes import FakeRemote, FakeVolume, RecordingMailer, RecordingNotifier, make_jpeg, make_photo, make_settings


NOW = datetime(2025, 1, 23, 14, 5)
FIRST_NAME = "00001_20250123_1405.jpg"
FOLDER = remote_photo_folder("Harbour", NOW.date())


def fake_capture(path: Path, timeout_sec: float) -> Path:
    return make_jpeg(path)


class CapturePipelineTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.settings = make_settings(self.root)
        self.remote = FakeRemote(self.root / "remote")
        self.volume = FakeVolume(self.settings.mount_point)
        self.notifier = RecordingNotifier()
        self.services = build_services(
            self.settings,
            remote=self.remote,
            volume=self.volume,
            notifier=self.notifier,
            mailer=RecordingMailer(),
        )
        self.pipeline = self.services.pipeline
        self.pipeline.controller.capture_func = fake_capture
        self.pipeline.clock = lambda: NOW

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _backup_path(self, name: str) -> Path:
        return self.settings.backup_dir / "23-01-2025" / name

    def test_capture_upload_thumbnail_and_backup(self) -> None:
        outcome = self.pipeline.run()

        self.assertTrue(outcome.captured)
        self.assertEqual(outcome.sequence, 1)
        self.assertEqual([r.stage for r in outcome.results], ["capture", "upload", "thumbnail", "backup"])
        self.assertEqual(outcome.failed_stages, [])
        self.assertTrue(self.remote.exists(f"{FOLDER}/{FIRST_NAME}"))
        self.assertTrue(self._backup_path(FIRST_NAME).exists())
        self.assertTrue((self.settings.thumbnail_dir / "23-01-2025" / FIRST_NAME).exists())
        self.assertEqual(list(staging_folder(self.settings.photo_dir, "Harbour", NOW.date()).iterdir()), [])
        self.assertEqual(self.settings.counter_file.read_text(), "00002")
        self.assertEqual(self.services.ledger.state_of(FIRST_NAME), PhotoState.BACKED_UP)
        self.assertTrue(self.services.ledger.is_remote_verified(FIRST_NAME))

    def test_checksum_mismatch_still_reaches_backup(self) -> None:
        self.remote.corrupt_uploads.add(FIRST_NAME)

        outcome = self.pipeline.run()

        upload = outcome.results[1]
        self.assertFalse(upload.ok)
        self.assertIsInstance(upload.error, UploadChecksumMismatchError)
        self.assertEqual(outcome.failed_stages, ["upload"])
        self.assertTrue(self._backup_path(FIRST_NAME).exists())
        self.assertFalse(self.services.ledger.is_remote_verified(FIRST_NAME))

    def test_capture_failure_ends_the_cycle(self) -> None:
        def broken_camera(path: Path, timeout_sec: float) -> Path:
            raise CameraDeviceError("No camera found")

        self.pipeline.controller.capture_func = broken_camera

        outcome = self.pipeline.run()

        self.assertFalse(outcome.captured)
        self.assertEqual(len(outcome.results), 1)
        self.assertEqual(self.remote.copy_calls, [])
        self.assertFalse(self.settings.backup_dir.exists())
        self.assertEqual(len(self.notifier.messages), 1)

    def test_sequence_is_assigned_before_capture_and_increases(self) -> None:
        first = self.pipeline.run()
        self.pipeline.clock = lambda: NOW.replace(minute=10)
        second = self.pipeline.run()

        self.assertEqual((first.sequence, second.sequence), (1, 2))
        self.assertTrue(self._backup_path("00002_20250123_1410.jpg").exists())

    def test_stranded_photo_is_backed_up_without_reupload(self) -> None:
        staging = staging_folder(self.settings.photo_dir, "Harbour", NOW.date())
        stranded = make_photo(staging, 40, NOW.replace(hour=9))
        self.remote.seed(FOLDER, stranded.path)
        self.services.ledger.record(stranded, PhotoState.UPLOADED, remote_verified=True)
        self.services.ledger.record(stranded, PhotoState.BACKUP_FAILED)

        self.pipeline.run()

        self.assertTrue(self._backup_path(stranded.filename).exists())
        self.assertFalse(stranded.path.exists())
        self.assertNotIn(stranded.filename, [path.name for path, _ in self.remote.copy_calls])
        self.assertEqual(self.services.ledger.state_of(stranded.filename), PhotoState.BACKED_UP)

    def test_stranded_photo_without_verified_upload_is_uploaded_again(self) -> None:
        staging = staging_folder(self.settings.photo_dir, "Harbour", NOW.date())
        stranded = make_photo(staging, 41, NOW.replace(hour=9))

        self.pipeline.run()

        self.assertTrue(self.remote.exists(f"{FOLDER}/{stranded.filename}"))
        self.assertTrue(self._backup_path(stranded.filename).exists())

    def test_retried_stranded_photo_number_is_not_reissued(self) -> None:
        staging = staging_folder(self.settings.photo_dir, "Harbour", NOW.date())
        stranded = make_photo(staging, 41, NOW.replace(hour=9))

        outcome = self.pipeline.run()

        self.assertGreater(outcome.sequence, stranded.sequence)
        self.assertEqual(self.remote.read_text(cloud_marker_path("Harbour")), "00043")

    def test_cloud_marker_alone_yields_a_fresh_number(self) -> None:
        first = self.pipeline.run()
        self.settings.counter_file.unlink()
        self.volume.available = False
        self.pipeline.clock = lambda: NOW.replace(minute=10)

        second = self.pipeline.run()

        self.assertGreater(second.sequence, first.sequence)
        self.assertTrue(second.captured)

    def test_concurrent_invocation_is_refused_before_touching_counter(self) -> None:
        with exclusive_invocation(self.settings.lock_file):
            with self.assertRaises(InvocationLockedError):
                self.pipeline.run()

        self.assertFalse(self.settings.counter_file.exists())


if __name__ == "__main__":
    unittest.main()
