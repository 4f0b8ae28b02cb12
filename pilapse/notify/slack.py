"""Slack incoming-webhook notification sink."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, Final
from urllib.request import Request, urlopen
import json
import logging
import time

from .base import NotificationError


BELL: Final[str] = "\N{BELL} "
DEFAULT_TIMEOUT_SEC: Final[float] = 15.0

LOGGER = logging.getLogger("pilapse.notify.slack")


class SlackNotifier:
    """Posts alerts to a webhook, mentioning a user at most once per cooldown.

    Insistent alerts always mention. Transport failures are logged and never
    propagate to the caller.
    """

    def __init__(
        self,
        webhook_url: str,
        project_name: str,
        user_id: str = "",
        cooldown_file: Path | None = None,
        cooldown_seconds: int = 3600,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.webhook_url = webhook_url
        self.project_name = project_name
        self.user_id = user_id
        self.cooldown_file = cooldown_file
        self.cooldown_seconds = cooldown_seconds
        self.timeout_sec = timeout_sec
        self.clock = clock

    def notify(self, message: str, insistent: bool = False) -> None:
        text = self.format_message(message, insistent)
        try:
            self._post({"text": text})
        except NotificationError as exc:
            LOGGER.error("Slack notification failed: %s", exc)
            return
        LOGGER.info("Slack notification sent")

    def format_message(self, message: str, insistent: bool = False) -> str:
        timestamp = datetime.fromtimestamp(self.clock()).strftime("%Y-%m-%d %H:%M:%S")
        return f"*[{self.project_name}]* {timestamp}\n{self._mention(insistent)}{message}"

    def reset_cooldown(self) -> bool:
        if self.cooldown_file is None or not self.cooldown_file.exists():
            return False
        self.cooldown_file.unlink()
        return True

    def _mention(self, insistent: bool) -> str:
        if not self.user_id:
            return ""
        now = self.clock()
        if not insistent and not self._cooldown_expired(now):
            return BELL
        if self.cooldown_file is not None:
            try:
                self.cooldown_file.write_text(f"{int(now)}\n", encoding="utf-8")
            except OSError as exc:
                LOGGER.warning("Cannot update mention cooldown file %s: %s", self.cooldown_file, exc)
        return f"<@{self.user_id}> "

    def _cooldown_expired(self, now: float) -> bool:
        if self.cooldown_file is None or not self.cooldown_file.exists():
            return True
        try:
            last_mention = int(self.cooldown_file.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return True
        return now - last_mention >= self.cooldown_seconds

    def _post(self, payload: dict[str, str]) -> None:
        request = Request(
            self.webhook_url,
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urlopen(request, timeout=self.timeout_sec) as response:
                response.read()
        except Exception as exc:
            raise NotificationError(f"webhook request failed: {exc}") from exc
