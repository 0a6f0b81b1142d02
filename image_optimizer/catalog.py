"""Enumeration of the image library as paged ``CatalogEntry`` lists."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import unquote, urlparse

import requests

from .config import SUPPORTED_MIME_TYPES
from .models import CatalogEntry
from .utils import detect_mime_type

logger = logging.getLogger("image_optimizer")

CANDIDATE_SUFFIXES = {".jpg", ".jpeg", ".jpe", ".png"}
WP_MEDIA_ENDPOINT = "/wp-json/wp/v2/media"
WP_MAX_PER_PAGE = 100


class CatalogUnavailable(RuntimeError):
    """Raised when the backing media store cannot be enumerated."""


class DirectoryCatalog:
    """Treats every JPEG/PNG under an uploads folder as a catalog entry.

    Entries are ordered by their path relative to the root, which also serves as
    the entry id. The folder is rescanned on every call. A ``.jpg`` next to a
    same-stem ``.png`` is the converted output of that PNG and is not listed, so
    optimizing a page never shifts the offsets of later pages.
    """

    def __init__(self, root: Path, exclude: Iterable[Path] = ()) -> None:
        self.root = Path(root)
        self.exclude = [Path(p) for p in exclude]

    def _is_excluded(self, path: Path) -> bool:
        return any(path == ex or ex in path.parents for ex in self.exclude)

    def _scan(self) -> List[CatalogEntry]:
        if not self.root.is_dir():
            raise CatalogUnavailable(f"Uploads directory does not exist: {self.root}")
        entries: List[CatalogEntry] = []
        try:
            candidates = sorted(self.root.rglob("*"))
        except OSError as exc:
            raise CatalogUnavailable(f"Cannot scan {self.root}: {exc}") from exc
        png_stems = {
            (path.parent, path.stem) for path in candidates if path.suffix.lower() == ".png"
        }
        for path in candidates:
            if path.suffix.lower() not in CANDIDATE_SUFFIXES or not path.is_file():
                continue
            if self._is_excluded(path):
                continue
            if path.suffix.lower() == ".jpg" and (path.parent, path.stem) in png_stems:
                continue
            mime_type = detect_mime_type(path)
            if mime_type not in SUPPORTED_MIME_TYPES:
                continue
            entry_id = path.relative_to(self.root).as_posix()
            entries.append(CatalogEntry(id=entry_id, path=path, mime_type=mime_type))
        return entries

    def count(self) -> int:
        return len(self._scan())

    def page(self, offset: int, limit: int) -> List[CatalogEntry]:
        return self._scan()[offset : offset + limit]


class WordPressCatalog:
    """Reads attachments from the WordPress REST API and maps them to local files."""

    def __init__(
        self,
        site_url: str,
        uploads_root: Path,
        uploads_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        auth: Optional[tuple] = None,
        timeout: float = 15.0,
    ) -> None:
        self.site_url = site_url.rstrip("/")
        self.uploads_root = Path(uploads_root)
        self.uploads_url = (uploads_url or f"{self.site_url}/wp-content/uploads").rstrip("/")
        self.session = session or requests.Session()
        if auth:
            self.session.auth = auth
        self.timeout = timeout

    def _get(self, offset: int, per_page: int) -> requests.Response:
        params = {
            "media_type": "image",
            "mime_type": ",".join(sorted(SUPPORTED_MIME_TYPES)),
            "orderby": "id",
            "order": "asc",
            "offset": offset,
            "per_page": per_page,
        }
        try:
            resp = self.session.get(
                self.site_url + WP_MEDIA_ENDPOINT, params=params, timeout=self.timeout
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise CatalogUnavailable(f"Media library request failed: {exc}") from exc
        return resp

    def local_path(self, source_url: str) -> Path:
        """Translate an attachment URL into its location under the uploads root."""
        if source_url.startswith(self.uploads_url + "/"):
            relative = source_url[len(self.uploads_url) + 1 :]
        else:
            url_path = urlparse(source_url).path
            relative = url_path.split("/uploads/", 1)[-1].lstrip("/")
        return self.uploads_root / unquote(relative)

    def count(self) -> int:
        resp = self._get(0, 1)
        total = resp.headers.get("X-WP-Total")
        try:
            return int(total) if total is not None else 0
        except ValueError as exc:
            raise CatalogUnavailable(f"Unexpected X-WP-Total header: {total!r}") from exc

    def page(self, offset: int, limit: int) -> List[CatalogEntry]:
        entries: List[CatalogEntry] = []
        while len(entries) < limit:
            per_page = min(limit - len(entries), WP_MAX_PER_PAGE)
            resp = self._get(offset + len(entries), per_page)
            try:
                items = resp.json()
            except ValueError as exc:
                raise CatalogUnavailable(f"Media library returned invalid JSON: {exc}") from exc
            if not items:
                break
            for item in items:
                mime_type = item.get("mime_type", "")
                source_url = item.get("source_url") or ""
                if not source_url:
                    logger.warning("Attachment %s has no source_url", item.get("id"))
                entries.append(
                    CatalogEntry(
                        id=str(item.get("id")),
                        path=self.local_path(source_url),
                        mime_type=mime_type,
                    )
                )
            if len(items) < per_page:
                break
        return entries
