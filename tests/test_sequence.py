from __future__ import annotations

import itertools
import tempfile
import unittest
from pathlib import Path

from pilapse.service.sequence import (
    MIRROR_FILENAME,
    SequenceAuthority,
    cloud_marker_path,
    highest_sequence_in,
    write_counter_file,
)
from tests.fakes import FakeRemote, FakeVolume, make_jpeg


class SequenceAuthorityTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.counter_file = self.root / "state" / "counter.txt"
        self.backup_dir = self.root / "backups"
        self.remote = FakeRemote(self.root / "remote")
        self.volume = FakeVolume(self.root / "mnt")
        self.authority = SequenceAuthority(
            self.counter_file,
            self.volume,
            self.remote,
            "Harbour",
            scan_directories=(self.backup_dir,),
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _mirror(self) -> Path:
        return self.volume.mount_point / MIRROR_FILENAME

    def test_takes_maximum_of_all_counters_and_persists_successor(self) -> None:
        self.counter_file.parent.mkdir(parents=True)
        self.counter_file.write_text("00005")
        self.volume.mount_point.mkdir(parents=True)
        self._mirror().write_text("00003")
        self.remote.write_text(cloud_marker_path("Harbour"), "00009")

        issued = self.authority.next()

        self.assertEqual(issued, 9)
        self.assertEqual(self.counter_file.read_text(), "00010")
        self.assertEqual(self._mirror().read_text(), "00010")
        self.assertEqual(self.remote.read_text(cloud_marker_path("Harbour")), "00010")

    def test_unmounts_volume_it_mounted(self) -> None:
        self.authority.next()

        self.assertEqual(self.volume.mount_calls, 1)
        self.assertEqual(self.volume.unmount_calls, 1)
        self.assertFalse(self.volume.mounted)

    def test_leaves_foreign_mount_in_place(self) -> None:
        self.volume.mounted = True

        self.authority.next()

        self.assertEqual(self.volume.mount_calls, 0)
        self.assertEqual(self.volume.unmount_calls, 0)
        self.assertTrue(self.volume.mounted)

    def test_starts_at_one_when_every_source_is_empty(self) -> None:
        self.assertEqual(self.authority.next(), 1)
        self.assertEqual(self.authority.next(), 2)

    def test_filename_scan_is_a_floor_when_counters_are_lost(self) -> None:
        make_jpeg(self.backup_dir / "01-02-2025" / "00042_20250201_1200.jpg")
        make_jpeg(self.backup_dir / "01-02-2025" / "00007_20250201_0800.jpg")

        self.assertEqual(self.authority.next(), 43)
        self.assertEqual(self.counter_file.read_text(), "00044")

    def test_scan_is_skipped_when_any_counter_is_present(self) -> None:
        make_jpeg(self.backup_dir / "01-02-2025" / "00042_20250201_1200.jpg")
        self.remote.write_text(cloud_marker_path("Harbour"), "00012")

        self.assertEqual(self.authority.next(), 12)

    def test_unreachable_sources_degrade_gracefully(self) -> None:
        self.remote.unreachable = True
        self.volume.available = False
        write_counter_file(self.counter_file, 17)

        self.assertEqual(self.authority.next(), 17)
        self.assertEqual(self.counter_file.read_text(), "00018")

    def test_issued_numbers_strictly_increase_across_source_availability(self) -> None:
        issued = []
        for remote_down, volume_down in itertools.islice(
            itertools.cycle(itertools.product((False, True), repeat=2)), 12
        ):
            self.remote.unreachable = remote_down
            self.volume.available = not volume_down
            issued.append(self.authority.next())

        self.assertEqual(issued, sorted(set(issued)))
        self.assertEqual(len(issued), 12)

    def test_stale_local_counter_is_overtaken_by_cloud_marker(self) -> None:
        write_counter_file(self.counter_file, 3)
        self.remote.write_text(cloud_marker_path("Harbour"), "00020")

        self.assertEqual(self.authority.next(), 20)
        self.assertEqual(self.authority.next(), 21)

    def test_malformed_counter_reads_as_zero(self) -> None:
        self.counter_file.parent.mkdir(parents=True)
        self.counter_file.write_text("garbage\n")

        self.assertEqual(self.authority.next(), 1)


class SequenceHelperTests(unittest.TestCase):
    def test_highest_sequence_ignores_foreign_files(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_jpeg(root / "a" / "00003_20250101_0700.jpg")
            make_jpeg(root / "b" / "daily_report_01-01-2025.jpg")
            (root / "b" / "00099_notes.txt").write_text("x")

            self.assertEqual(highest_sequence_in([root, root / "missing"]), 3)

    def test_write_counter_file_is_zero_padded(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "counter.txt"

            write_counter_file(path, 42)

            self.assertEqual(path.read_text(), "00042")
            self.assertEqual([p.name for p in path.parent.iterdir()], ["counter.txt"])


if __name__ == "__main__":
    unittest.main()
