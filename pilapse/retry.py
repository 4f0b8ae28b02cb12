"""Retry policy shared by operations that wrap external processes."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import time
from typing import Callable, TypeVar


LOGGER = logging.getLogger("pilapse.retry")
T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-backoff retry: ``max_attempts`` tries, ``backoff_sec`` between them."""

    max_attempts: int
    backoff_sec: float = 0.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def call(
        self,
        func: Callable[[], T],
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        label: str = "operation",
    ) -> T:
        """Run ``func`` until it succeeds; re-raise the last error when out of attempts."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        last_error: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return func()
            except retry_on as exc:
                last_error = exc
                if attempt == self.max_attempts:
                    break
                LOGGER.warning(
                    "%s failed (attempt %s/%s): %s; retrying in %ss",
                    label,
                    attempt,
                    self.max_attempts,
                    exc,
                    self.backoff_sec,
                )
                if self.backoff_sec > 0:
                    self.sleep(self.backoff_sec)

        assert last_error is not None
        raise last_error


CAMERA_RETRY = RetryPolicy(max_attempts=2, backoff_sec=10.0)
