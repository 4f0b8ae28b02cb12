"""Notification sinks and the mail collaborator."""

from .base import LoggingNotifier, Mailer, NotificationError, NotificationSink, NullMailer
from .mail import MsmtpMailer, build_message
from .slack import SlackNotifier

__all__ = [
    "LoggingNotifier",
    "Mailer",
    "MsmtpMailer",
    "NotificationError",
    "NotificationSink",
    "NullMailer",
    "SlackNotifier",
    "build_message",
]
