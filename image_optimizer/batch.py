"""Resumable, paged bulk optimization over the catalog."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional, Protocol

from .catalog import CatalogUnavailable
from .config import OptimizerConfig
from .models import (
    STAGE_ALREADY_OPTIMIZED,
    STATUS_ERROR,
    STATUS_OPTIMIZED,
    STATUS_SKIPPED,
    BatchCursor,
    CatalogEntry,
    ItemResult,
    Outcome,
    ProgressReport,
)
from .pipeline import PipelineEngine

logger = logging.getLogger("image_optimizer")


class Catalog(Protocol):
    def count(self) -> int: ...

    def page(self, offset: int, limit: int) -> List[CatalogEntry]: ...


class BatchCoordinator:
    """Processes one page of the catalog per call.

    No state is kept between calls: the caller resubmits the cursor returned in
    each report until ``should_continue`` is False. The cursor advances by the
    configured page size, so the last cursor may point past the end.
    """

    def __init__(
        self,
        config: OptimizerConfig,
        catalog: Catalog,
        engine: PipelineEngine,
    ) -> None:
        self.config = config
        self.catalog = catalog
        self.engine = engine

    def _process_entry(self, entry: CatalogEntry) -> Outcome:
        if self.engine.tracker.is_optimized(entry.path):
            return Outcome.skipped(entry.path, STAGE_ALREADY_OPTIMIZED, "Already optimized")
        return self.engine.process(entry.path, entry.mime_type)

    def run_page(self, cursor: BatchCursor) -> ProgressReport:
        total = self.catalog.count()
        entries = self.catalog.page(cursor.offset, self.config.page_size)
        logger.info(
            "Processing %d image%s from offset %d of %d",
            len(entries),
            "s" if len(entries) != 1 else "",
            cursor.offset,
            total,
        )

        counts = {STATUS_OPTIMIZED: 0, STATUS_SKIPPED: 0, STATUS_ERROR: 0}
        items: List[ItemResult] = []
        for entry in entries:
            outcome = self._process_entry(entry)
            counts[outcome.status] += 1
            items.append(
                ItemResult(
                    id=entry.id,
                    name=entry.path.name,
                    status=outcome.status,
                    message=outcome.message,
                )
            )

        processed = cursor.offset + len(entries)
        report = ProgressReport(
            optimized=counts[STATUS_OPTIMIZED],
            skipped=counts[STATUS_SKIPPED],
            errored=counts[STATUS_ERROR],
            total=total,
            processed=processed,
            items=items,
            should_continue=processed < total,
            next_cursor=BatchCursor(cursor.offset + self.config.page_size),
        )
        logger.debug("Batch progress %.2f%% (%d/%d)", report.progress, processed, total)
        return report

    def run_all(self, start: Optional[BatchCursor] = None) -> Iterator[ProgressReport]:
        """Drive ``run_page`` until the catalog is exhausted."""
        cursor = start or BatchCursor()
        while True:
            report = self.run_page(cursor)
            yield report
            if not report.should_continue:
                return
            cursor = report.next_cursor

    def run_page_payload(self, offset: int) -> Dict[str, Any]:
        """Bulk-run endpoint body for a request of ``{"offset": offset}``."""
        try:
            report = self.run_page(BatchCursor(offset))
        except (CatalogUnavailable, ValueError) as exc:
            logger.error("Bulk optimization failed at offset %s: %s", offset, exc)
            return {"success": False, "message": str(exc)}
        return report.to_dict()
