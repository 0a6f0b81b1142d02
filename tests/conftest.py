from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from image_optimizer.config import OptimizerConfig
from image_optimizer.pipeline import PipelineEngine


def write_image(
    path: Path,
    size: tuple[int, int] = (120, 80),
    mode: str = "RGB",
    color: tuple[int, ...] = (200, 40, 40),
    image_format: str | None = None,
    **save_options: object,
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new(mode, size, color).save(path, format=image_format, **save_options)
    return path


@pytest.fixture()
def uploads(tmp_path: Path) -> Path:
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture()
def config(uploads: Path) -> OptimizerConfig:
    return OptimizerConfig(uploads_root=uploads, quality=78, max_width=2000, page_size=20)


@pytest.fixture()
def engine(config: OptimizerConfig) -> PipelineEngine:
    return PipelineEngine(config)
