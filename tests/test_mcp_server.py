from __future__ import annotations

from pathlib import Path

import pytest

from conftest import write_image
from image_optimizer import mcp_server
from image_optimizer.config import UPLOADS_ENV_VAR


@pytest.fixture()
def configured(uploads: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv(UPLOADS_ENV_VAR, str(uploads))
    return uploads


@pytest.fixture()
def unconfigured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(UPLOADS_ENV_VAR, raising=False)


def test_run_batch_returns_progress_payload(configured: Path) -> None:
    for index in range(3):
        write_image(configured / f"img-{index}.jpg")

    payload = mcp_server.run_batch(0)

    assert set(payload) == {
        "message",
        "progress",
        "continue",
        "offset",
        "processedImages",
        "totalImages",
    }
    assert payload["progress"] == 100.0
    assert payload["continue"] is False
    assert payload["offset"] == 20
    assert payload["totalImages"] == 3
    assert [item["status"] for item in payload["processedImages"]] == ["optimized"] * 3

    again = mcp_server.run_batch(0)
    assert [item["status"] for item in again["processedImages"]] == ["skipped"] * 3


def test_run_batch_without_uploads_root(unconfigured: None) -> None:
    payload = mcp_server.run_batch(0)
    assert payload["success"] is False
    assert UPLOADS_ENV_VAR in payload["message"]


def test_restore_returns_summary(configured: Path) -> None:
    image = write_image(configured / "a.jpg", size=(2400, 800))
    original = image.read_bytes()
    mcp_server.run_batch(0)

    assert mcp_server.restore() == "Restoration complete. Restored: 1, Errors: 0"
    assert image.read_bytes() == original
    assert not (configured / "a.optimized").exists()


def test_restore_without_uploads_root(unconfigured: None) -> None:
    assert mcp_server.restore().startswith("Restoration failed")


def test_optimize_reports_outcome(configured: Path) -> None:
    image = write_image(configured / "upload.png", mode="RGB")

    result = mcp_server.optimize(str(image))

    assert result == {
        "file": str(configured / "upload.jpg"),
        "status": "optimized",
        "stage": None,
        "message": None,
    }
    assert (configured / "upload.webp").is_file()


def test_optimize_unsupported_type(configured: Path) -> None:
    gif = write_image(configured / "anim.gif", image_format="GIF", mode="P", color=0)

    result = mcp_server.optimize(str(gif))

    assert result["status"] == "skipped"
    assert result["stage"] == "unsupported-type"
    assert result["message"] == "Unsupported type image/gif"


def test_optimize_missing_file(configured: Path) -> None:
    with pytest.raises(FileNotFoundError):
        mcp_server.optimize(str(configured / "nope.jpg"))
