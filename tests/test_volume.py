from __future__ import annotations

import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from pilapse.storage import MountError, RemovableVolume, remove_empty_subdirectories
from tests.fakes import FakeVolume


class VolumeAcquireTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.mount_point = Path(self._tmp.name) / "mnt"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_nested_acquire_mounts_once_and_unmounts_on_last_release(self) -> None:
        volume = FakeVolume(self.mount_point)

        with volume.acquire() as outer:
            with volume.acquire() as inner:
                self.assertEqual(outer, inner)
                self.assertTrue(volume.mounted)
            self.assertTrue(volume.mounted)
        self.assertFalse(volume.mounted)
        self.assertEqual(volume.mount_calls, 1)
        self.assertEqual(volume.unmount_calls, 1)

    def test_already_mounted_volume_is_not_unmounted(self) -> None:
        volume = FakeVolume(self.mount_point, mounted=True)

        with volume.acquire():
            pass

        self.assertTrue(volume.mounted)
        self.assertEqual(volume.unmount_calls, 0)

    def test_release_happens_even_when_body_raises(self) -> None:
        volume = FakeVolume(self.mount_point)

        with self.assertRaises(ValueError):
            with volume.acquire():
                raise ValueError("boom")

        self.assertFalse(volume.mounted)
        self.assertFalse(volume.held)

    def test_missing_device_raises_mount_error(self) -> None:
        volume = FakeVolume(self.mount_point, available=False)

        with self.assertRaises(MountError):
            with volume.acquire():
                pass
        self.assertFalse(volume.held)

    def test_optional_acquire_yields_none_when_unavailable(self) -> None:
        volume = FakeVolume(self.mount_point, available=False)

        with volume.acquire_optional() as mount_point:
            self.assertIsNone(mount_point)

    def test_optional_acquire_without_label_never_probes(self) -> None:
        volume = FakeVolume(self.mount_point, label="")

        with volume.acquire_optional() as mount_point:
            self.assertIsNone(mount_point)
        self.assertEqual(volume.mount_calls, 0)


class VolumeCommandTests(unittest.TestCase):
    @patch("pilapse.storage.volume.subprocess.run")
    def test_find_device_uses_findfs(self, mock_run) -> None:
        mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0, stdout="/dev/sda1\n", stderr="")

        device = RemovableVolume("BACKUP", Path("/mnt/BackupArchive")).find_device()

        self.assertEqual(device, "/dev/sda1")
        self.assertEqual(mock_run.call_args.args[0], ["findfs", "LABEL=BACKUP"])

    @patch("pilapse.storage.volume.subprocess.run")
    def test_find_device_falls_back_to_lsblk(self, mock_run) -> None:
        mock_run.side_effect = [
            subprocess.CalledProcessError(returncode=1, cmd=["findfs"]),
            subprocess.CompletedProcess(args=[], returncode=0, stdout="sda\nsda1 BACKUP\nsdb1 OTHER\n", stderr=""),
        ]

        device = RemovableVolume("BACKUP", Path("/mnt/BackupArchive")).find_device()

        self.assertEqual(device, "/dev/sda1")

    @patch("pilapse.storage.volume.subprocess.run")
    def test_mount_failure_carries_stderr(self, mock_run) -> None:
        mock_run.side_effect = subprocess.CalledProcessError(
            returncode=32, cmd=["mount"], stderr="wrong fs type, bad option"
        )
        volume = RemovableVolume("BACKUP", Path("/nonexistent/mnt"))

        with self.assertRaises(MountError) as ctx:
            volume._mount("/dev/sda1")  # pylint: disable=protected-access

        self.assertIn("wrong fs type", str(ctx.exception))


class RemoveEmptySubdirectoriesTests(unittest.TestCase):
    def test_removes_only_empty_children(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "empty").mkdir()
            (root / "full").mkdir()
            (root / "full" / "photo.jpg").write_bytes(b"x")
            (root / "file.txt").write_text("x")

            removed = remove_empty_subdirectories(root)

            self.assertEqual(removed, [root / "empty"])
            self.assertTrue((root / "full").exists())

    def test_missing_root_is_ignored(self) -> None:
        self.assertEqual(remove_empty_subdirectories(Path("/nonexistent/backups")), [])


if __name__ == "__main__":
    unittest.main()
