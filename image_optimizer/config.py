"""Configuration objects and constants for the optimizer."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_QUALITY = 78
DEFAULT_MAX_WIDTH = 2000
DEFAULT_PAGE_SIZE = 20
DEFAULT_BACKUP_DIR_NAME = "image-optimizer-backup"
DEFAULT_MARKER_SUFFIX = ".optimized"
DEFAULT_ERROR_LOG_NAME = "image-optimizer-errors.log"
UPLOADS_ENV_VAR = "IMAGE_OPTIMIZER_UPLOADS"

SUPPORTED_MIME_TYPES = {"image/jpeg", "image/png"}


@dataclass
class OptimizerConfig:
    """Settings shared by the pipeline engine and the batch coordinator."""

    uploads_root: Path
    quality: int = DEFAULT_QUALITY
    max_width: int = DEFAULT_MAX_WIDTH
    page_size: int = DEFAULT_PAGE_SIZE
    backup_dir_name: str = DEFAULT_BACKUP_DIR_NAME
    marker_suffix: str = DEFAULT_MARKER_SUFFIX
    error_log_path: Optional[Path] = None

    def __post_init__(self) -> None:
        self.uploads_root = Path(self.uploads_root)
        if not 1 <= self.quality <= 100:
            raise ValueError(f"quality must be between 1 and 100, got {self.quality}")
        if self.max_width <= 0:
            raise ValueError(f"max_width must be positive, got {self.max_width}")
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")

    @property
    def backup_dir(self) -> Path:
        return self.uploads_root / self.backup_dir_name

    @property
    def resolved_error_log_path(self) -> Path:
        if self.error_log_path is not None:
            return Path(self.error_log_path)
        return self.uploads_root / DEFAULT_ERROR_LOG_NAME


def resolve_uploads_root(value: Optional[Path | str] = None) -> Path:
    """Pick the uploads root from an explicit value or the environment."""
    if value:
        return Path(value).expanduser().resolve()
    override = os.getenv(UPLOADS_ENV_VAR)
    if override:
        return Path(override).expanduser().resolve()
    raise ValueError(
        f"No uploads directory given; pass --uploads or set {UPLOADS_ENV_VAR}"
    )
