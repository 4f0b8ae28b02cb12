"""Notification and mail collaborator interfaces."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol
import logging


class NotificationError(Exception):
    """Raised when a notification transport fails."""


class NotificationSink(Protocol):
    """Accepts a human-readable alert.

    ``insistent`` asks the transport to bypass its rate limiting for
    repeated alerts.
    """

    def notify(self, message: str, insistent: bool = False) -> None: ...


class Mailer(Protocol):
    def send(self, subject: str, body: str, attachment: Path | None = None) -> None: ...


class LoggingNotifier:
    """Sink used when no chat webhook is configured."""

    def __init__(self, project_name: str = "") -> None:
        self.project_name = project_name
        self.logger = logging.getLogger("pilapse.notify")

    def notify(self, message: str, insistent: bool = False) -> None:
        level = logging.WARNING if insistent else logging.INFO
        self.logger.log(level, "[%s] %s", self.project_name, message.replace("\n", " | "))


class NullMailer:
    """Mailer used when no recipients are configured."""

    def send(self, subject: str, body: str, attachment: Path | None = None) -> None:
        logging.getLogger("pilapse.notify").info("No email recipients configured; skipped %r", subject)
