"""Per-file markers recording which images already went through the pipeline."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger("image_optimizer")


class MarkerStateTracker:
    """Tracks optimization state with zero-byte sentinel files next to each image.

    The marker for ``uploads/2024/05/photo.png`` is ``uploads/2024/05/photo<suffix>``;
    the extension is dropped so that a PNG converted to ``photo.jpg`` keeps the same
    marker. Every call probes the filesystem, nothing is cached.
    """

    def __init__(self, suffix: str) -> None:
        if not suffix:
            raise ValueError("marker suffix must not be empty")
        self.suffix = suffix

    def marker_path(self, path: Path) -> Path:
        path = Path(path)
        return path.parent / f"{path.stem}{self.suffix}"

    def is_optimized(self, path: Path) -> bool:
        return self.marker_path(path).is_file()

    def mark(self, path: Path) -> None:
        marker = self.marker_path(path)
        # Unlike touch(), this raises if a directory sits at the marker path.
        with marker.open("a"):
            pass
        logger.debug("Marked %s as optimized", path)

    def unmark(self, path: Path) -> bool:
        marker = self.marker_path(path)
        try:
            marker.unlink()
        except FileNotFoundError:
            return False
        logger.debug("Removed optimization marker for %s", path)
        return True
