"""Lookup of WebP derivatives for outgoing image URLs."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

WEBP_MIME_TYPE = "image/webp"
_RASTER_SUFFIX = re.compile(r"\.(?:jpe?g|png)$", re.IGNORECASE)


def accepts_webp(accept_header: Optional[str]) -> bool:
    """True when an HTTP ``Accept`` header advertises WebP support."""
    return bool(accept_header) and WEBP_MIME_TYPE in accept_header.lower()


def candidate_webp_url(url: str) -> Optional[str]:
    """Swap a ``.jpg``/``.jpeg``/``.png`` suffix for ``.webp``; None for other URLs."""
    webp_url, replaced = _RASTER_SUFFIX.subn(".webp", url)
    return webp_url if replaced else None


def webp_url_for(url: str, base_url: str, base_dir: Path) -> Optional[str]:
    """Return the WebP URL for ``url`` if its derivative exists under ``base_dir``."""
    webp_url = candidate_webp_url(url)
    base_url = base_url.rstrip("/")
    if webp_url is None or not webp_url.startswith(base_url + "/"):
        return None
    relative = unquote(webp_url[len(base_url) + 1 :])
    webp_path = Path(base_dir) / relative
    return webp_url if webp_path.is_file() else None


def negotiate(
    url: str,
    accept_header: Optional[str],
    base_url: str,
    base_dir: Path,
) -> str:
    """Pick the URL to serve: the WebP derivative when the client takes it."""
    if not accepts_webp(accept_header):
        return url
    return webp_url_for(url, base_url, base_dir) or url
