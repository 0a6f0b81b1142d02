"""Helpers for MIME detection and derivative path handling."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from filetype import guess

EXTENSION_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".jpe": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


def detect_mime_type(path: Path) -> Optional[str]:
    """Sniff the MIME type from the file signature, falling back to the extension."""
    path = Path(path)
    try:
        kind = guess(str(path))
    except OSError:
        kind = None
    if kind and kind.mime.startswith("image/"):
        return kind.mime
    return EXTENSION_MIME_TYPES.get(path.suffix.lower())


def webp_path_for(path: Path) -> Path:
    return Path(path).with_suffix(".webp")


def jpeg_path_for(path: Path) -> Path:
    """Rename target used when a PNG without transparency is re-encoded as JPEG."""
    path = Path(path)
    if path.suffix.lower() != ".png":
        return path
    return path.with_suffix(".jpg")
