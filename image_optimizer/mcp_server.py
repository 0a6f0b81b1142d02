"""MCP server exposing the bulk-run, restore and optimize endpoints."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

from mcp.server.fastmcp import FastMCP

from .batch import BatchCoordinator
from .catalog import DirectoryCatalog
from .config import OptimizerConfig, resolve_uploads_root
from .pipeline import UPLOAD_CONTEXT, PipelineEngine
from .utils import detect_mime_type

logger = logging.getLogger("image_optimizer.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="image-optimizer")


def _build_engine() -> PipelineEngine:
    config = OptimizerConfig(uploads_root=resolve_uploads_root())
    return PipelineEngine(config)


@mcp.tool()
def run_batch(offset: int = 0) -> Dict[str, Any]:
    """Optimize the next page of the image library starting at ``offset``."""

    try:
        engine = _build_engine()
    except ValueError as exc:
        return {"success": False, "message": str(exc)}
    try:
        config = engine.config
        catalog = DirectoryCatalog(config.uploads_root, exclude=[config.backup_dir])
        coordinator = BatchCoordinator(config, catalog, engine)
        return coordinator.run_page_payload(offset)
    finally:
        engine.close()


@mcp.tool()
def restore() -> str:
    """Copy every backup over its optimized image and clear the markers."""

    try:
        engine = _build_engine()
    except ValueError as exc:
        return f"Restoration failed: {exc}"
    try:
        return engine.backups.restore_all().summary
    finally:
        engine.close()


@mcp.tool()
def optimize(path: str) -> Dict[str, Any]:
    """Run a single uploaded image through the optimization pipeline."""

    source = Path(path).expanduser()
    if not source.is_file():
        raise FileNotFoundError(f"Image does not exist: {source}")
    engine = _build_engine()
    try:
        mime_type = detect_mime_type(source) or "application/octet-stream"
        _descriptor, outcome = engine.handle_upload(
            {"file": str(source), "type": mime_type}, UPLOAD_CONTEXT
        )
    finally:
        engine.close()
    assert outcome is not None
    return {
        "file": str(outcome.path),
        "status": outcome.status,
        "stage": outcome.stage,
        "message": outcome.message,
    }


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
