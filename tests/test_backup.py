from __future__ import annotations

from datetime import datetime
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from pilapse.checksum import file_digest
from pilapse.service.backup import LocalBackupManager
from pilapse.storage import BackupChecksumMismatchError, DirectoryCreateFailedError, MoveFailedError
from tests.fakes import RecordingNotifier, make_photo


CAPTURED_AT = datetime(2025, 1, 23, 9, 30)


class LocalBackupManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.notifier = RecordingNotifier()
        self.photo = make_photo(self.root / "staging", 3, CAPTURED_AT)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_moves_photo_into_date_partition(self) -> None:
        digest = file_digest(self.photo.path)
        manager = LocalBackupManager(self.root / "backups", self.notifier)

        result = manager.backup(self.photo)

        self.assertTrue(result.ok)
        expected = self.root / "backups" / "23-01-2025" / self.photo.filename
        self.assertEqual(result.path, expected)
        self.assertEqual(file_digest(expected), digest)
        self.assertEqual(result.photo.digest, digest)
        self.assertFalse(self.photo.path.exists())
        self.assertEqual(self.notifier.messages, [])

    def test_directory_create_failure_leaves_source_untouched(self) -> None:
        blocked = self.root / "backups"
        blocked.write_text("not a directory")
        original_bytes = self.photo.path.read_bytes()
        manager = LocalBackupManager(blocked, self.notifier)

        result = manager.backup(self.photo)

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, DirectoryCreateFailedError)
        self.assertEqual(self.photo.path.read_bytes(), original_bytes)
        self.assertEqual(len(self.notifier.messages), 1)
        self.assertEqual(len(self.notifier.insistent), 1)
        self.assertIn("Possible storage hardware fault", self.notifier.insistent[0])

    def test_digest_mismatch_after_move_is_reported(self) -> None:
        manager = LocalBackupManager(self.root / "backups", self.notifier)

        with patch("pilapse.service.backup.file_digest", side_effect=["aaaa", "bbbb"]):
            result = manager.backup(self.photo)

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, BackupChecksumMismatchError)
        self.assertEqual(result.error.original_digest, "aaaa")
        self.assertEqual(result.error.backup_digest, "bbbb")
        self.assertEqual(len(self.notifier.insistent), 1)

    def test_move_failure_is_reported(self) -> None:
        manager = LocalBackupManager(self.root / "backups", self.notifier)

        with patch("pilapse.service.backup.shutil.move", side_effect=PermissionError("read-only")):
            result = manager.backup(self.photo)

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, MoveFailedError)
        self.assertTrue(self.photo.path.exists())
        self.assertEqual(len(self.notifier.insistent), 1)

    def test_missing_source_is_a_move_failure(self) -> None:
        self.photo.path.unlink()
        manager = LocalBackupManager(self.root / "backups", self.notifier)

        result = manager.backup(self.photo)

        self.assertIsInstance(result.error, MoveFailedError)


if __name__ == "__main__":
    unittest.main()
