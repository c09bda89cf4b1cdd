# tests/unit/test_pillow_loader.py
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from displaymatch.adapters.image.pillow_loader import PillowImageLoader
from displaymatch.domain.errors import ImageLoadError


def _save_image(
    tmp_path: Path, name: str, color: tuple[int, int, int], size=(32, 24)
) -> Path:
    p = tmp_path / name
    img = Image.new("RGB", size, color)
    img.save(p, format="PNG")
    return p


def test_load_returns_gray_array(tmp_path: Path):
    p = _save_image(tmp_path, "gray.png", (90, 90, 90))
    arr = PillowImageLoader().load(p)
    assert arr.shape == (24, 32)
    assert arr.dtype == np.uint8
    assert int(arr[0, 0]) == 90


def test_load_rejects_unsupported_suffix(tmp_path: Path):
    p = tmp_path / "not_an_image.txt"
    p.write_text("hello, world")
    loader = PillowImageLoader()
    assert loader.supports(p) is False
    with pytest.raises(ImageLoadError):
        loader.load(p)


def test_load_wraps_corrupt_files(tmp_path: Path):
    p = tmp_path / "broken.png"
    p.write_bytes(b"definitely not a png")
    with pytest.raises(ImageLoadError):
        PillowImageLoader().load(p)


def test_load_missing_file(tmp_path: Path):
    with pytest.raises(ImageLoadError):
        PillowImageLoader().load(tmp_path / "missing.png")


def test_save_creates_parents_and_reloads(tmp_path: Path):
    arr = np.arange(0, 200, dtype=np.uint8).reshape(10, 20)
    loader = PillowImageLoader()
    out = loader.save(arr, tmp_path / "nested" / "out.png")
    assert out.exists()
    assert np.array_equal(loader.load(out), arr)


def test_load_wraps_decompression_bomb(tmp_path: Path, monkeypatch):
    p = _save_image(tmp_path, "huge.png", (10, 10, 10), size=(100, 100))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    with pytest.raises(ImageLoadError):
        PillowImageLoader().load(p)


def test_save_wraps_write_errors(tmp_path: Path):
    target = tmp_path / "taken.png"
    target.mkdir()
    with pytest.raises(ImageLoadError):
        PillowImageLoader().save(np.zeros((4, 4), dtype=np.uint8), target)
