from __future__ import annotations

from pathlib import Path

import pytest

from image_optimizer.config import (
    DEFAULT_MAX_WIDTH,
    DEFAULT_PAGE_SIZE,
    DEFAULT_QUALITY,
    UPLOADS_ENV_VAR,
    OptimizerConfig,
    resolve_uploads_root,
)


def test_defaults_and_derived_paths(tmp_path: Path) -> None:
    config = OptimizerConfig(uploads_root=tmp_path)
    assert config.quality == DEFAULT_QUALITY == 78
    assert config.max_width == DEFAULT_MAX_WIDTH == 2000
    assert config.page_size == DEFAULT_PAGE_SIZE == 20
    assert config.backup_dir == tmp_path / "image-optimizer-backup"
    assert config.resolved_error_log_path == tmp_path / "image-optimizer-errors.log"


def test_explicit_error_log_path(tmp_path: Path) -> None:
    log_path = tmp_path / "logs" / "errors.log"
    config = OptimizerConfig(uploads_root=tmp_path, error_log_path=log_path)
    assert config.resolved_error_log_path == log_path


@pytest.mark.parametrize(
    "overrides",
    [{"quality": 0}, {"quality": 101}, {"max_width": 0}, {"page_size": -1}],
)
def test_invalid_values_are_rejected(tmp_path: Path, overrides: dict) -> None:
    with pytest.raises(ValueError):
        OptimizerConfig(uploads_root=tmp_path, **overrides)


def test_uploads_root_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(UPLOADS_ENV_VAR, str(tmp_path))
    assert resolve_uploads_root() == tmp_path.resolve()
    explicit = tmp_path / "other"
    assert resolve_uploads_root(explicit) == explicit.resolve()


def test_uploads_root_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(UPLOADS_ENV_VAR, raising=False)
    with pytest.raises(ValueError, match=UPLOADS_ENV_VAR):
        resolve_uploads_root()
