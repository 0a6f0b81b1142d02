"""Append-only diagnostic log of per-image failures."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger("image_optimizer")

ERROR_LOG_FORMAT = "%(asctime)s - %(message)s"
ERROR_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class ErrorLog:
    """Writes ``<timestamp> - Error optimizing <path>: <message>`` lines to a file.

    The file handler opens lazily and relies on ``logging``'s own error handling,
    so a broken log destination never interrupts image processing.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._handler: logging.Handler | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(self.path, mode="a", encoding="utf-8", delay=True)
        except OSError as exc:
            logger.warning("Error log %s is unavailable: %s", self.path, exc)
            return
        handler.setFormatter(logging.Formatter(ERROR_LOG_FORMAT, datefmt=ERROR_LOG_DATEFMT))
        self._handler = handler

    def append(self, path: Path | str, message: str) -> None:
        line = f"Error optimizing {path}: {message}"
        logger.error(line)
        if self._handler is None:
            return
        record = logging.makeLogRecord(
            {"name": "image_optimizer.errors", "levelno": logging.ERROR,
             "levelname": "ERROR", "msg": line}
        )
        try:
            self._handler.handle(record)
        except OSError as exc:
            # FileHandler opens its stream outside its own error handling.
            logger.warning("Could not write to error log %s: %s", self.path, exc)

    def close(self) -> None:
        if self._handler is not None:
            self._handler.close()
