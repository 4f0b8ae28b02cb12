"""Per-stage outcome records returned to the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pilapse.photo import Photo


@dataclass(frozen=True, slots=True)
class StageResult:
    """Outcome of one pipeline stage for one photo."""

    stage: str
    ok: bool
    photo: Photo | None = None
    error: Exception | None = None
    path: Path | None = None

    @classmethod
    def success(cls, stage: str, photo: Photo | None = None, path: Path | None = None) -> StageResult:
        return cls(stage=stage, ok=True, photo=photo, path=path)

    @classmethod
    def failure(cls, stage: str, error: Exception, photo: Photo | None = None) -> StageResult:
        return cls(stage=stage, ok=False, photo=photo, error=error)
