"""Command-line entry point for the image optimizer."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .batch import BatchCoordinator
from .catalog import CatalogUnavailable, DirectoryCatalog, WordPressCatalog
from .config import (
    DEFAULT_MAX_WIDTH,
    DEFAULT_PAGE_SIZE,
    DEFAULT_QUALITY,
    OptimizerConfig,
    resolve_uploads_root,
)
from .delivery import negotiate
from .models import STATUS_ERROR, BatchCursor
from .pipeline import PipelineEngine
from .utils import detect_mime_type

logger = logging.getLogger("image_optimizer.cli")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--uploads",
        type=Path,
        default=None,
        help="Uploads directory holding the image library (default: $IMAGE_OPTIMIZER_UPLOADS)",
    )
    parser.add_argument(
        "--quality",
        type=int,
        default=DEFAULT_QUALITY,
        help="Output compression quality, 1-100 (75-85 recommended)",
    )
    parser.add_argument(
        "--max-width",
        type=int,
        default=DEFAULT_MAX_WIDTH,
        help="Downscale images wider than this many pixels",
    )
    parser.add_argument(
        "--error-log",
        type=Path,
        default=None,
        help="Append-only error log file (default: <uploads>/image-optimizer-errors.log)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_batch_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--offset",
        type=int,
        default=0,
        help="Catalog offset to resume from (the 'offset' of the previous response)",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Keep requesting pages until the whole catalog has been processed",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=DEFAULT_PAGE_SIZE,
        help="Images handled per page",
    )
    parser.add_argument(
        "--wp-url",
        default=None,
        help="WordPress site URL; enumerate the media library over its REST API",
    )
    parser.add_argument(
        "--uploads-url",
        default=None,
        help="Public URL of the uploads directory (default: <wp-url>/wp-content/uploads)",
    )
    parser.add_argument("--wp-user", default=None, help="WordPress user for REST requests")
    parser.add_argument(
        "--wp-app-password",
        default=None,
        help="WordPress application password for REST requests",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Compress and resize JPEG/PNG uploads, derive WebP siblings, and restore originals."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    optimize_parser = subparsers.add_parser(
        "optimize", help="Run the full pipeline on individual image files"
    )
    optimize_parser.add_argument("paths", nargs="+", type=Path, help="Image files to optimize")
    _add_common_arguments(optimize_parser)

    batch_parser = subparsers.add_parser(
        "batch", help="Process the image library one page at a time"
    )
    _add_common_arguments(batch_parser)
    _add_batch_arguments(batch_parser)

    restore_parser = subparsers.add_parser(
        "restore", help="Copy every backup over its optimized image"
    )
    _add_common_arguments(restore_parser)

    webp_parser = subparsers.add_parser(
        "webp-url", help="Show which URL a client would be served for an image"
    )
    webp_parser.add_argument("url", help="Original image URL")
    webp_parser.add_argument(
        "--base-url", required=True, help="Public URL of the uploads directory"
    )
    webp_parser.add_argument(
        "--accept",
        default="image/webp,*/*",
        help="Accept header sent by the client",
    )
    _add_common_arguments(webp_parser)

    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def build_config(args: argparse.Namespace) -> OptimizerConfig:
    return OptimizerConfig(
        uploads_root=resolve_uploads_root(args.uploads),
        quality=args.quality,
        max_width=args.max_width,
        page_size=getattr(args, "page_size", DEFAULT_PAGE_SIZE),
        error_log_path=args.error_log,
    )


def build_coordinator(args: argparse.Namespace, config: OptimizerConfig) -> BatchCoordinator:
    engine = PipelineEngine(config)
    if args.wp_url:
        auth = (args.wp_user, args.wp_app_password) if args.wp_user else None
        catalog = WordPressCatalog(
            args.wp_url,
            config.uploads_root,
            uploads_url=args.uploads_url,
            auth=auth,
        )
    else:
        catalog = DirectoryCatalog(config.uploads_root, exclude=[config.backup_dir])
    return BatchCoordinator(config, catalog, engine)


def _run_optimize(args: argparse.Namespace, config: OptimizerConfig) -> int:
    engine = PipelineEngine(config)
    failures = 0
    try:
        for path in args.paths:
            path = path.resolve()
            mime_type = detect_mime_type(path) or "application/octet-stream"
            outcome = engine.process(path, mime_type)
            if outcome.status == STATUS_ERROR:
                failures += 1
                logger.error("%s failed at %s: %s", path, outcome.stage, outcome.message)
            else:
                logger.info("%s: %s", outcome.path, outcome.status)
    finally:
        engine.close()
    return 1 if failures else 0


def _run_batch(args: argparse.Namespace, config: OptimizerConfig) -> int:
    coordinator = build_coordinator(args, config)
    try:
        return _drive_batch(args, coordinator)
    finally:
        coordinator.engine.close()


def _drive_batch(args: argparse.Namespace, coordinator: BatchCoordinator) -> int:
    if not args.all:
        payload = coordinator.run_page_payload(args.offset)
        sys.stdout.write(json.dumps(payload, indent=2) + "\n")
        return 0 if payload.get("success", True) else 1

    overall_start = time.perf_counter()
    optimized = skipped = errored = 0
    try:
        for report in coordinator.run_all(BatchCursor(args.offset)):
            optimized += report.optimized
            skipped += report.skipped
            errored += report.errored
            logger.info("%.2f%% - %s", report.progress, report.message)
    except CatalogUnavailable as exc:
        logger.error("Bulk optimization aborted: %s", exc)
        return 1
    logger.info(
        "Finished in %.2fs (optimized: %d, skipped: %d, errors: %d)",
        time.perf_counter() - overall_start,
        optimized,
        skipped,
        errored,
    )
    return 1 if errored else 0


def _run_restore(config: OptimizerConfig) -> int:
    engine = PipelineEngine(config)
    try:
        report = engine.backups.restore_all()
    finally:
        engine.close()
    sys.stdout.write(report.summary + "\n")
    for error in report.errors:
        logger.error("Restore failed for %s", error)
    return 1 if report.errors else 0


def _run_webp_url(args: argparse.Namespace, config: OptimizerConfig) -> int:
    served = negotiate(args.url, args.accept, args.base_url, config.uploads_root)
    sys.stdout.write(served + "\n")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    try:
        config = build_config(args)
    except ValueError as exc:
        logger.error("%s", exc)
        return 2

    if args.command == "optimize":
        return _run_optimize(args, config)
    if args.command == "batch":
        return _run_batch(args, config)
    if args.command == "restore":
        return _run_restore(config)
    return _run_webp_url(args, config)


if __name__ == "__main__":
    sys.exit(main())
