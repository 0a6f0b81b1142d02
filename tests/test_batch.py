from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from conftest import write_image
from image_optimizer.batch import BatchCoordinator
from image_optimizer.catalog import CatalogUnavailable, DirectoryCatalog
from image_optimizer.config import OptimizerConfig
from image_optimizer.models import (
    STATUS_ERROR,
    STATUS_OPTIMIZED,
    STATUS_SKIPPED,
    BatchCursor,
    CatalogEntry,
)
from image_optimizer.pipeline import PipelineEngine


class ListCatalog:
    def __init__(self, entries: List[CatalogEntry]) -> None:
        self.entries = entries
        self.count_calls = 0

    def count(self) -> int:
        self.count_calls += 1
        return len(self.entries)

    def page(self, offset: int, limit: int) -> List[CatalogEntry]:
        return self.entries[offset : offset + limit]


class BrokenCatalog:
    def count(self) -> int:
        raise CatalogUnavailable("database offline")

    def page(self, offset: int, limit: int) -> List[CatalogEntry]:
        raise CatalogUnavailable("database offline")


def _library(root: Path, count: int) -> List[CatalogEntry]:
    entries = []
    for index in range(count):
        path = write_image(root / f"img-{index:03d}.jpg", size=(24, 16))
        entries.append(CatalogEntry(id=str(index + 1), path=path, mime_type="image/jpeg"))
    return entries


def test_pages_of_twenty_over_twenty_five_images(config: OptimizerConfig, engine: PipelineEngine) -> None:
    catalog = ListCatalog(_library(config.uploads_root, 25))
    coordinator = BatchCoordinator(config, catalog, engine)

    first = coordinator.run_page(BatchCursor(0))
    assert len(first.items) == 20
    assert first.optimized == 20
    assert first.should_continue is True
    assert first.next_cursor.offset == 20
    assert first.progress == 80.0

    payload = first.to_dict()
    assert payload["continue"] is True
    assert payload["offset"] == 20
    assert payload["totalImages"] == 25
    assert payload["processedImages"][0] == {"id": "1", "name": "img-000.jpg", "status": "optimized"}

    second = coordinator.run_page(first.next_cursor)
    assert len(second.items) == 5
    assert second.should_continue is False
    assert second.processed == 25
    assert second.progress == 100.0
    assert second.next_cursor.offset == 40
    assert catalog.count_calls == 2


@pytest.mark.parametrize("count,page_size", [(25, 20), (40, 20), (7, 3), (1, 5)])
def test_run_all_visits_every_item_once(
    uploads: Path, count: int, page_size: int
) -> None:
    config = OptimizerConfig(uploads_root=uploads, page_size=page_size)
    engine = PipelineEngine(config)
    catalog = ListCatalog(_library(uploads, count))
    coordinator = BatchCoordinator(config, catalog, engine)

    reports = list(coordinator.run_all())
    seen = [item.id for report in reports for item in report.items]

    assert sorted(seen, key=int) == [str(i + 1) for i in range(count)]
    assert reports[-1].processed == count
    assert reports[-1].should_continue is False
    assert all(report.should_continue for report in reports[:-1])


def test_marked_images_are_skipped(config: OptimizerConfig, engine: PipelineEngine) -> None:
    entries = _library(config.uploads_root, 3)
    engine.tracker.mark(entries[1].path)
    before = entries[1].path.read_bytes()
    coordinator = BatchCoordinator(config, ListCatalog(entries), engine)

    report = coordinator.run_page(BatchCursor(0))

    assert [item.status for item in report.items] == [STATUS_OPTIMIZED, STATUS_SKIPPED, STATUS_OPTIMIZED]
    assert report.skipped == 1
    assert entries[1].path.read_bytes() == before
    assert not (config.backup_dir / entries[1].path.name).exists()


def test_one_bad_image_does_not_stop_the_page(config: OptimizerConfig, engine: PipelineEngine) -> None:
    entries = _library(config.uploads_root, 3)
    entries[0].path.write_bytes(b"garbage")
    coordinator = BatchCoordinator(config, ListCatalog(entries), engine)

    report = coordinator.run_page(BatchCursor(0))

    assert [item.status for item in report.items] == [STATUS_ERROR, STATUS_OPTIMIZED, STATUS_OPTIMIZED]
    assert report.errored == 1
    assert report.items[0].message.startswith("Optimization failed")
    assert "message" in report.to_dict()["processedImages"][0]

    # Unmarked failures are picked up again on the next pass.
    retry = coordinator.run_page(BatchCursor(0))
    assert [item.status for item in retry.items] == [STATUS_ERROR, STATUS_SKIPPED, STATUS_SKIPPED]


def test_progress_is_rounded_to_two_places(uploads: Path) -> None:
    config = OptimizerConfig(uploads_root=uploads, page_size=1)
    engine = PipelineEngine(config)
    coordinator = BatchCoordinator(config, ListCatalog(_library(uploads, 3)), engine)
    assert coordinator.run_page(BatchCursor(0)).progress == 33.33
    assert coordinator.run_page(BatchCursor(1)).progress == 66.67


def test_empty_catalog_finishes_immediately(config: OptimizerConfig, engine: PipelineEngine) -> None:
    report = BatchCoordinator(config, ListCatalog([]), engine).run_page(BatchCursor(0))
    assert report.items == []
    assert report.should_continue is False
    assert report.progress == 100.0


def test_catalog_failure_payload(config: OptimizerConfig, engine: PipelineEngine) -> None:
    coordinator = BatchCoordinator(config, BrokenCatalog(), engine)
    assert coordinator.run_page_payload(0) == {"success": False, "message": "database offline"}


def test_negative_offset_payload(config: OptimizerConfig, engine: PipelineEngine) -> None:
    coordinator = BatchCoordinator(config, ListCatalog([]), engine)
    payload = coordinator.run_page_payload(-5)
    assert payload["success"] is False


def test_directory_catalog_of_opaque_pngs_is_visited_once(uploads: Path) -> None:
    for index in range(25):
        write_image(uploads / f"img-{index:03d}.png", size=(24, 16), mode="RGB")
    config = OptimizerConfig(uploads_root=uploads, page_size=20)
    engine = PipelineEngine(config)
    catalog = DirectoryCatalog(uploads, exclude=[config.backup_dir])
    coordinator = BatchCoordinator(config, catalog, engine)

    reports = list(coordinator.run_all())
    seen = [item.id for report in reports for item in report.items]

    assert len(reports) == 2
    assert seen == [f"img-{index:03d}.png" for index in range(25)]
    assert all(item.status == STATUS_OPTIMIZED for report in reports for item in report.items)
    assert reports[-1].processed == 25
    assert reports[-1].total == 25
    assert (uploads / "img-024.jpg").is_file()
