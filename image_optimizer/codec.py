"""Pillow-backed image decode, transform and encode helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from PIL import Image, ImageOps

logger = logging.getLogger("image_optimizer")

ALPHA_MODES = {"RGBA", "LA", "PA", "RGBa", "La"}
WEBP_MODES = {"RGB", "RGBA"}
JPEG_MODES = {"RGB", "L", "CMYK"}


class CodecError(RuntimeError):
    """Raised when an image cannot be decoded, transformed or written."""


@dataclass
class ImageHandle:
    """A decoded image together with the format it will be written as."""

    image: Image.Image
    format: str
    quality: int = 75

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


class PillowCodec:
    """Opaque image capability consumed by the pipeline engine."""

    def decode(self, path: Path) -> ImageHandle:
        try:
            with Image.open(path) as raw:
                raw.load()
                image_format = raw.format or "PNG"
                image = raw.copy()
            # Orientation lives in EXIF; bake it into the pixels before any width check.
            image = ImageOps.exif_transpose(image)
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
            raise CodecError(f"Cannot decode {path}: {exc}") from exc
        if image.mode == "P" and "transparency" in image.info:
            image = image.convert("RGBA")
        return ImageHandle(image=image, format=image_format.upper())

    def resize(self, handle: ImageHandle, max_width: int) -> bool:
        """Downscale to ``max_width`` keeping the aspect ratio; returns True if resized."""
        width, height = handle.image.size
        if width <= max_width:
            return False
        new_height = max(1, round(height * max_width / float(width)))
        try:
            handle.image = handle.image.resize(
                (max_width, new_height), Image.Resampling.LANCZOS
            )
        except (OSError, ValueError) as exc:
            raise CodecError(f"Resize failed: {exc}") from exc
        logger.debug("Resized %dx%d -> %dx%d", width, height, max_width, new_height)
        return True

    def strip(self, handle: ImageHandle) -> None:
        """Drop EXIF, ICC, text chunks and other embedded metadata."""
        image = handle.image.copy()
        image.info = {}
        handle.image = image

    def set_quality(self, handle: ImageHandle, quality: int) -> None:
        handle.quality = quality

    def has_alpha(self, handle: ImageHandle) -> bool:
        """True when the image carries an alpha band with at least one non-opaque pixel."""
        image = handle.image
        if image.mode not in ALPHA_MODES:
            return False
        alpha = image.getchannel("A")
        low, _high = alpha.getextrema()
        return low < 255

    def convert_format(self, handle: ImageHandle, image_format: str) -> None:
        image_format = image_format.upper()
        image = handle.image
        try:
            if image_format == "JPEG" and image.mode not in JPEG_MODES:
                image = image.convert("RGB")
            elif image_format == "WEBP" and image.mode not in WEBP_MODES:
                image = image.convert("RGBA" if self.has_alpha(handle) else "RGB")
        except (OSError, ValueError) as exc:
            raise CodecError(f"Cannot convert to {image_format}: {exc}") from exc
        handle.image = image
        handle.format = image_format

    def encode(self, handle: ImageHandle, path: Path) -> None:
        options: Dict[str, Any] = {}
        if handle.format == "JPEG":
            options.update(quality=handle.quality, optimize=True)
        elif handle.format == "WEBP":
            options.update(quality=handle.quality, method=6)
        elif handle.format == "PNG":
            options.update(optimize=True)
        try:
            handle.image.save(path, format=handle.format, **options)
        except (OSError, ValueError, KeyError) as exc:
            raise CodecError(f"Cannot write {path}: {exc}") from exc
