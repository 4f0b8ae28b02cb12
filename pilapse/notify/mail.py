"""Outbound mail through the msmtp sendmail-compatible client."""

from __future__ import annotations

from email.message import EmailMessage
from pathlib import Path
from typing import Final, Sequence
import subprocess

from .base import NotificationError


DEFAULT_MSMTP_BIN: Final[str] = "msmtp"
SEND_TIMEOUT_SEC: Final[float] = 60.0


def build_message(
    recipients: Sequence[str],
    subject: str,
    body: str,
    attachment: Path | None = None,
) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = subject
    message["To"] = ", ".join(recipients)
    message.set_content(body)
    if attachment is not None:
        message.add_attachment(
            attachment.read_bytes(),
            maintype="image",
            subtype="jpeg",
            filename=attachment.name,
        )
    return message


class MsmtpMailer:
    def __init__(self, recipients: Sequence[str], msmtp_bin: str = DEFAULT_MSMTP_BIN) -> None:
        self.recipients = tuple(recipients)
        self.msmtp_bin = msmtp_bin

    def send(self, subject: str, body: str, attachment: Path | None = None) -> None:
        message = build_message(self.recipients, subject, body, attachment)
        try:
            subprocess.run(
                [self.msmtp_bin, *self.recipients],
                input=message.as_bytes(),
                check=True,
                capture_output=True,
                timeout=SEND_TIMEOUT_SEC,
            )
        except FileNotFoundError as exc:
            raise NotificationError(f"Required binary not found in PATH: {self.msmtp_bin}") from exc
        except subprocess.TimeoutExpired as exc:
            raise NotificationError("msmtp timed out.") from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or b"").decode("utf-8", errors="replace").strip()
            raise NotificationError(f"msmtp failed (exit {exc.returncode}): {stderr}") from exc
