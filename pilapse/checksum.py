"""Content digests used to verify every copy and move."""

from __future__ import annotations

from pathlib import Path
import hashlib


CHUNK_SIZE = 1024 * 1024


def file_digest(path: str | Path) -> str:
    """Return the hex MD5 of a file, the digest rclone reports for remotes."""
    digest = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def digests_match(expected: str | None, actual: str | None) -> bool:
    if not expected or not actual:
        return False
    return expected.lower() == actual.lower()
