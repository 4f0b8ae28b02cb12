from __future__ import annotations

import json
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from pilapse.notify import MsmtpMailer, NotificationError, SlackNotifier, build_message


class SlackNotifierTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.cooldown_file = Path(self._tmp.name) / "cooldown"
        self.now = 1_700_000_000.0
        self.notifier = SlackNotifier(
            "https://hooks.slack.com/services/T/B/X",
            "Harbour",
            user_id="U123",
            cooldown_file=self.cooldown_file,
            cooldown_seconds=3600,
            clock=lambda: self.now,
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_mentions_once_per_cooldown_window(self) -> None:
        first = self.notifier.format_message("Upload failed")
        self.now += 60
        second = self.notifier.format_message("Upload failed again")
        self.now += 3600
        third = self.notifier.format_message("Still failing")

        self.assertIn("<@U123> Upload failed", first)
        self.assertNotIn("<@U123>", second)
        self.assertIn("\N{BELL} Upload failed again", second)
        self.assertIn("<@U123> Still failing", third)

    def test_insistent_messages_always_mention(self) -> None:
        self.notifier.format_message("first")

        message = self.notifier.format_message("Backup failed", insistent=True)

        self.assertIn("<@U123> Backup failed", message)

    def test_message_carries_project_prefix(self) -> None:
        message = self.notifier.format_message("hello")

        self.assertTrue(message.startswith("*[Harbour]* "))

    def test_reset_cooldown(self) -> None:
        self.notifier.format_message("first")

        self.assertTrue(self.notifier.reset_cooldown())
        self.assertFalse(self.notifier.reset_cooldown())
        self.assertIn("<@U123>", self.notifier.format_message("again"))

    @patch("pilapse.notify.slack.urlopen")
    def test_notify_posts_json_payload(self, mock_urlopen) -> None:
        mock_urlopen.return_value.__enter__.return_value = MagicMock()

        self.notifier.notify("Capture ok")

        request = mock_urlopen.call_args.args[0]
        self.assertEqual(request.full_url, "https://hooks.slack.com/services/T/B/X")
        self.assertIn("Capture ok", json.loads(request.data)["text"])

    @patch("pilapse.notify.slack.urlopen")
    def test_transport_failure_is_logged_not_raised(self, mock_urlopen) -> None:
        mock_urlopen.side_effect = OSError("network unreachable")

        with self.assertLogs("pilapse.notify.slack", level="ERROR"):
            self.notifier.notify("Capture failed")


class MailTests(unittest.TestCase):
    def test_message_attaches_montage(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            attachment = Path(tmpdir) / "daily_report_23-01-2025.jpg"
            attachment.write_bytes(b"\xff\xd8jpeg")

            message = build_message(["ops@example.com"], "Daily Report - Jan 23, 2025", "body", attachment)

        self.assertEqual(message["Subject"], "Daily Report - Jan 23, 2025")
        attachments = list(message.iter_attachments())
        self.assertEqual(attachments[0].get_filename(), "daily_report_23-01-2025.jpg")
        self.assertEqual(attachments[0].get_content_type(), "image/jpeg")

    @patch("pilapse.notify.mail.subprocess.run")
    def test_msmtp_failure_raises_notification_error(self, mock_run) -> None:
        mock_run.side_effect = subprocess.CalledProcessError(
            returncode=78, cmd=["msmtp"], stderr=b"msmtp: account default not found"
        )

        with self.assertRaises(NotificationError) as ctx:
            MsmtpMailer(["ops@example.com"]).send("subject", "body")

        self.assertIn("account default not found", str(ctx.exception))

    @patch("pilapse.notify.mail.subprocess.run")
    def test_msmtp_receives_recipients_and_message(self, mock_run) -> None:
        MsmtpMailer(["ops@example.com", "site@example.com"]).send("subject", "body")

        self.assertEqual(mock_run.call_args.args[0], ["msmtp", "ops@example.com", "site@example.com"])
        self.assertIn(b"Subject: subject", mock_run.call_args.kwargs["input"])


if __name__ == "__main__":
    unittest.main()
