"""Data models used throughout the optimization pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

STATUS_OPTIMIZED = "optimized"
STATUS_SKIPPED = "skipped"
STATUS_ERROR = "error"

STAGE_UNSUPPORTED_TYPE = "unsupported-type"
STAGE_ALREADY_OPTIMIZED = "already-optimized"
STAGE_BACKUP = "backup"
STAGE_OPTIMIZE = "optimize"
STAGE_WEBP = "webp"
STAGE_MARK = "mark"


@dataclass
class CatalogEntry:
    """An image known to the catalog."""

    id: str
    path: Path
    mime_type: str


@dataclass
class Outcome:
    """Result of running a single image through the pipeline."""

    status: str
    path: Path
    stage: Optional[str] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != STATUS_ERROR

    @classmethod
    def optimized(cls, path: Path) -> "Outcome":
        return cls(status=STATUS_OPTIMIZED, path=path)

    @classmethod
    def skipped(cls, path: Path, reason: str, message: Optional[str] = None) -> "Outcome":
        return cls(status=STATUS_SKIPPED, path=path, stage=reason, message=message)

    @classmethod
    def error(cls, path: Path, stage: str, message: str) -> "Outcome":
        return cls(status=STATUS_ERROR, path=path, stage=stage, message=message)


@dataclass
class ItemResult:
    """Per-item line in a progress report."""

    id: str
    name: str
    status: str
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id, "name": self.name, "status": self.status}
        if self.message:
            payload["message"] = self.message
        return payload


@dataclass(frozen=True)
class BatchCursor:
    """Client-held position in the catalog."""

    offset: int = 0

    def __post_init__(self) -> None:
        if self.offset < 0:
            raise ValueError(f"offset must be non-negative, got {self.offset}")


@dataclass
class ProgressReport:
    """Cumulative progress returned after each batch page."""

    optimized: int
    skipped: int
    errored: int
    total: int
    processed: int
    items: List[ItemResult]
    should_continue: bool
    next_cursor: BatchCursor

    @property
    def progress(self) -> float:
        if self.total <= 0:
            return 100.0
        return round(self.processed / self.total * 100, 2)

    @property
    def message(self) -> str:
        return (
            f"Processed {self.processed} of {self.total} images "
            f"(optimized: {self.optimized}, skipped: {self.skipped}, errors: {self.errored})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "progress": self.progress,
            "continue": self.should_continue,
            "offset": self.next_cursor.offset,
            "processedImages": [item.to_dict() for item in self.items],
            "totalImages": self.total,
        }


@dataclass
class BackupResult:
    """Outcome of an ``ensure_backup`` call."""

    backup_path: Path
    created: bool
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RestoreReport:
    """Summary of a restore run."""

    restored: List[Path] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return f"Restoration complete. Restored: {len(self.restored)}, Errors: {len(self.errors)}"
