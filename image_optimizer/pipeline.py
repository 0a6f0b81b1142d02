"""Single-image optimization: backup, transcode, WebP derivative, marker."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .backups import BackupStore
from .codec import CodecError, PillowCodec
from .config import SUPPORTED_MIME_TYPES, OptimizerConfig
from .errorlog import ErrorLog
from .models import (
    STAGE_BACKUP,
    STAGE_MARK,
    STAGE_OPTIMIZE,
    STAGE_UNSUPPORTED_TYPE,
    STAGE_WEBP,
    Outcome,
)
from .state import MarkerStateTracker
from .utils import jpeg_path_for, webp_path_for

logger = logging.getLogger("image_optimizer")

UPLOAD_CONTEXT = "upload"


class PipelineEngine:
    """Runs one image through validate, backup, transform, derive WebP and mark.

    Each step must succeed before the next starts. Completed steps are not
    rolled back on failure; ``BackupStore.restore_all`` is the way back.
    The engine does not consult the marker itself, callers that want to skip
    finished images check ``tracker.is_optimized`` first.
    """

    def __init__(
        self,
        config: OptimizerConfig,
        codec: Optional[PillowCodec] = None,
        tracker: Optional[MarkerStateTracker] = None,
        backups: Optional[BackupStore] = None,
        error_log: Optional[ErrorLog] = None,
    ) -> None:
        self.config = config
        self.codec = codec or PillowCodec()
        self.tracker = tracker or MarkerStateTracker(config.marker_suffix)
        self.backups = backups or BackupStore(
            config.backup_dir, config.uploads_root, self.tracker
        )
        self.error_log = error_log or ErrorLog(config.resolved_error_log_path)
        try:
            self.backups.ensure_directory()
        except OSError as exc:
            logger.warning("Cannot create backup directory %s: %s", self.backups.backup_dir, exc)

    def process(self, path: Path, mime_type: str) -> Outcome:
        path = Path(path)
        if mime_type not in SUPPORTED_MIME_TYPES:
            logger.debug("Skipping %s: unsupported type %s", path, mime_type)
            return Outcome.skipped(path, STAGE_UNSUPPORTED_TYPE, f"Unsupported type {mime_type}")

        backup = self.backups.ensure_backup(path)
        if not backup.ok:
            return self._fail(path, STAGE_BACKUP, f"Backup failed: {backup.error}")

        try:
            output_path = self.optimize(path, mime_type)
        except CodecError as exc:
            return self._fail(path, STAGE_OPTIMIZE, f"Optimization failed: {exc}")

        try:
            webp_path = self.generate_webp(output_path)
        except CodecError as exc:
            return self._fail(output_path, STAGE_WEBP, f"WebP conversion failed: {exc}")

        try:
            self.tracker.mark(output_path)
        except OSError as exc:
            return self._fail(output_path, STAGE_MARK, f"Could not write marker: {exc}")

        logger.info("Optimized %s (webp: %s)", output_path, webp_path.name)
        return Outcome.optimized(output_path)

    def optimize(self, path: Path, mime_type: str) -> Path:
        """Resize, strip and re-encode in place; returns the path written."""
        handle = self.codec.decode(path)
        self.codec.resize(handle, self.config.max_width)
        self.codec.strip(handle)
        self.codec.set_quality(handle, self.config.quality)

        output_path = path
        if mime_type == "image/png" and not self.codec.has_alpha(handle):
            self.codec.convert_format(handle, "JPEG")
            output_path = jpeg_path_for(path)
            logger.debug("Converting opaque PNG %s to %s", path.name, output_path.name)

        self.codec.encode(handle, output_path)
        return output_path

    def generate_webp(self, path: Path) -> Path:
        handle = self.codec.decode(path)
        self.codec.set_quality(handle, self.config.quality)
        self.codec.convert_format(handle, "WEBP")
        webp_path = webp_path_for(path)
        self.codec.encode(handle, webp_path)
        return webp_path

    def handle_upload(
        self,
        descriptor: Mapping[str, Any],
        context: str,
    ) -> Tuple[Dict[str, Any], Optional[Outcome]]:
        """Upload hook: optimize freshly uploaded JPEG/PNG files.

        ``descriptor`` carries ``file`` (absolute path) and ``type`` (MIME type).
        It is handed back unchanged; the outcome is returned alongside so the
        caller can decide whether a failure should reject the upload. Other
        contexts are ignored and yield no outcome.
        """
        result = dict(descriptor)
        if context != UPLOAD_CONTEXT:
            return result, None
        outcome = self.process(Path(result["file"]), result.get("type") or "")
        return result, outcome

    def close(self) -> None:
        self.error_log.close()

    def _fail(self, path: Path, stage: str, message: str) -> Outcome:
        self.error_log.append(path, message)
        return Outcome.error(path, stage, message)
