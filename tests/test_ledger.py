from __future__ import annotations

from datetime import datetime
import tempfile
import unittest
from pathlib import Path

from pilapse.db import PhotoState
from pilapse.lock import InvocationLockedError, exclusive_invocation
from pilapse.service.ledger import PhotoLedger
from tests.fakes import make_photo


class PhotoLedgerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.ledger = PhotoLedger(f"sqlite:///{self.root / 'state' / 'ledger.sqlite3'}")
        self.photo = make_photo(self.root / "staging", 5, datetime(2025, 1, 23, 10, 0))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_record_upserts_by_filename(self) -> None:
        self.ledger.record(self.photo, PhotoState.CAPTURED)
        self.ledger.record(self.photo, PhotoState.UPLOADED, remote_verified=True)
        self.ledger.record(self.photo, PhotoState.BACKED_UP)

        self.assertEqual(self.ledger.state_of(self.photo.filename), PhotoState.BACKED_UP)
        self.assertTrue(self.ledger.is_remote_verified(self.photo.filename))
        self.assertEqual(self.ledger.counts_by_state(), {PhotoState.BACKED_UP: 1})

    def test_mark_ignores_unknown_photos(self) -> None:
        self.ledger.mark("99999_20250123_1000.jpg", PhotoState.RECONCILED)

        self.assertIsNone(self.ledger.state_of("99999_20250123_1000.jpg"))
        self.assertEqual(self.ledger.counts_by_state(), {})

    def test_failure_error_text_is_kept(self) -> None:
        self.ledger.record(self.photo, PhotoState.UPLOAD_FAILED, error=RuntimeError("quota exceeded"))

        self.assertEqual(self.ledger.state_of(self.photo.filename), PhotoState.UPLOAD_FAILED)
        self.assertFalse(self.ledger.is_remote_verified(self.photo.filename))


class ExclusiveInvocationTests(unittest.TestCase):
    def test_second_holder_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            lock_path = Path(tmpdir) / "state" / "capture.lock"

            with exclusive_invocation(lock_path):
                with self.assertRaises(InvocationLockedError):
                    with exclusive_invocation(lock_path):
                        pass

            with exclusive_invocation(lock_path):
                self.assertTrue(lock_path.exists())


if __name__ == "__main__":
    unittest.main()
