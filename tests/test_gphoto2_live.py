from __future__ import annotations

import os
import shutil
import tempfile
import unittest
from pathlib import Path

from pilapse.camera import capture_image_to_file, detect_cameras


@unittest.skipUnless(
    os.getenv("RUN_LIVE_TESTS") == "1",
    "Set RUN_LIVE_TESTS=1 to run live integration tests.",
)
class Gphoto2LiveTests(unittest.TestCase):
    def test_capture_one_live_photo(self) -> None:
        if shutil.which("gphoto2") is None:
            self.skipTest("gphoto2 is required for live integration test")
        if not detect_cameras():
            self.skipTest("No camera attached")

        with tempfile.TemporaryDirectory() as tmpdir:
            output_path = Path(tmpdir) / "live-photo.jpg"
            result = capture_image_to_file(output_path, timeout_sec=60.0)

            self.assertEqual(result, output_path)
            self.assertGreater(output_path.stat().st_size, 1024)
            with output_path.open("rb") as f:
                self.assertEqual(f.read(2), b"\xff\xd8")


if __name__ == "__main__":
    unittest.main()
