"""Thin wrapper around the rclone CLI for one configured remote."""

from __future__ import annotations

from pathlib import Path
from typing import Final, Protocol
import logging
import subprocess

from .exceptions import RemoteCommandError, RemoteDependencyMissingError


DEFAULT_RCLONE_BIN: Final[str] = "rclone"
TRANSFER_TIMEOUT_SEC: Final[float] = 300.0
QUERY_TIMEOUT_SEC: Final[float] = 60.0
# rclone exit code for "directory not found"
EXIT_DIR_NOT_FOUND: Final[int] = 3

LOGGER = logging.getLogger("pilapse.remote")


class RemoteStore(Protocol):
    """Operations the pipeline needs from a cloud object store.

    Paths are relative to the remote root and use ``/`` separators.
    """

    def copy_file(self, local_path: Path, folder: str) -> None: ...

    def copy_to(self, local_path: Path, remote_path: str) -> None: ...

    def copy_dir(self, local_dir: Path, folder: str) -> None: ...

    def list_files(self, folder: str) -> list[str]: ...

    def exists(self, remote_path: str) -> bool: ...

    def md5sums(self, folder: str) -> dict[str, str]: ...

    def read_text(self, remote_path: str) -> str: ...

    def write_text(self, remote_path: str, text: str) -> None: ...

    def delete(self, remote_path: str) -> None: ...


class RcloneRemote:
    """RemoteStore backed by ``rclone`` subprocess calls."""

    def __init__(
        self,
        remote_name: str,
        retries: int = 3,
        rclone_bin: str = DEFAULT_RCLONE_BIN,
        transfer_timeout_sec: float = TRANSFER_TIMEOUT_SEC,
        query_timeout_sec: float = QUERY_TIMEOUT_SEC,
    ) -> None:
        self.remote_name = remote_name
        self.retries = retries
        self.rclone_bin = rclone_bin
        self.transfer_timeout_sec = transfer_timeout_sec
        self.query_timeout_sec = query_timeout_sec

    def target(self, path: str) -> str:
        return f"{self.remote_name}:{path}"

    def copy_file(self, local_path: Path, folder: str) -> None:
        self._run(
            ["copy", str(local_path), self.target(folder), *self._retry_flags()],
            timeout_sec=self.transfer_timeout_sec,
        )

    def copy_to(self, local_path: Path, remote_path: str) -> None:
        self._run(
            ["copyto", str(local_path), self.target(remote_path), *self._retry_flags()],
            timeout_sec=self.transfer_timeout_sec,
        )

    def copy_dir(self, local_dir: Path, folder: str) -> None:
        self._run(
            ["copy", str(local_dir), self.target(folder), *self._retry_flags()],
            timeout_sec=self.transfer_timeout_sec,
        )

    def list_files(self, folder: str) -> list[str]:
        """Names of files directly inside ``folder``; a missing folder is empty."""
        try:
            output = self._run(["lsf", "--files-only", self.target(folder)])
        except RemoteCommandError as exc:
            if exc.returncode == EXIT_DIR_NOT_FOUND:
                return []
            raise
        return [line.strip() for line in output.splitlines() if line.strip()]

    def exists(self, remote_path: str) -> bool:
        name = remote_path.rpartition("/")[2]
        try:
            output = self._run(["lsf", "--files-only", self.target(remote_path)])
        except RemoteCommandError:
            return False
        return name in {line.strip() for line in output.splitlines()}

    def md5sums(self, folder: str) -> dict[str, str]:
        output = self._run(["md5sum", "--max-depth", "1", self.target(folder)])
        sums: dict[str, str] = {}
        for line in output.splitlines():
            digest, sep, name = line.strip().partition("  ")
            if sep and name:
                sums[name] = digest
        return sums

    def read_text(self, remote_path: str) -> str:
        return self._run(["cat", self.target(remote_path)])

    def write_text(self, remote_path: str, text: str) -> None:
        self._run(["rcat", self.target(remote_path)], input_text=text)

    def delete(self, remote_path: str) -> None:
        self._run(["deletefile", self.target(remote_path)])

    def _retry_flags(self) -> list[str]:
        return ["--low-level-retries", str(self.retries), "--retries", str(self.retries)]

    def _run(
        self,
        args: list[str],
        timeout_sec: float | None = None,
        input_text: str | None = None,
    ) -> str:
        command = [self.rclone_bin, *args]
        try:
            proc = subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
                input=input_text,
                timeout=timeout_sec or self.query_timeout_sec,
            )
        except FileNotFoundError as exc:
            raise RemoteDependencyMissingError(
                f"Required binary not found in PATH: {self.rclone_bin}"
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise RemoteCommandError(f"rclone {args[0]} timed out.") from exc
        except subprocess.CalledProcessError as exc:
            raise RemoteCommandError(
                f"rclone {args[0]} failed (exit {exc.returncode}): {_error_summary(exc.stderr)}",
                returncode=exc.returncode,
            ) from exc
        return proc.stdout


def _error_summary(stderr: str | None) -> str:
    """Keep the lines of rclone's stderr that say what went wrong."""
    lines = [line.strip() for line in (stderr or "").splitlines() if line.strip()]
    relevant = [
        line for line in lines if any(word in line.lower() for word in ("error", "failed", "quota"))
    ]
    return " | ".join((relevant or lines)[:3]) or "no error output"
