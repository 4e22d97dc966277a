from __future__ import annotations

import numpy as np
import pytest
from PIL import Image


def gradient_image(width: int, height: int) -> Image.Image:
    xs = np.linspace(0, 255, width, dtype=np.float32)[None, :].repeat(height, axis=0)
    ys = np.linspace(0, 255, height, dtype=np.float32)[:, None].repeat(width, axis=1)
    rgb = np.stack([xs, ys, (xs + ys) / 2.0], axis=2).astype(np.uint8)
    return Image.fromarray(rgb, "RGB")


@pytest.fixture
def make_jpeg(tmp_path):
    def _make(width: int, height: int, name: str = "input.jpg") -> str:
        path = tmp_path / name
        gradient_image(width, height).save(path, format="JPEG", quality=95)
        return str(path)

    return _make
