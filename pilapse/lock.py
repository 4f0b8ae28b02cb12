"""Exclusive-invocation guard for entry points that mutate the counter."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
import fcntl
import os


class InvocationLockedError(RuntimeError):
    """Raised when another process already holds the invocation lock."""


@contextmanager
def exclusive_invocation(lock_path: Path) -> Iterator[None]:
    """Hold a non-blocking exclusive flock on ``lock_path`` for the block."""
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            raise InvocationLockedError(f"Another invocation holds {lock_path}") from exc
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode("ascii"))
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)
