from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from displaymatch.adapters.filesystem.local_fs import LocalFS
from displaymatch.adapters.image.pillow_loader import PillowImageLoader
from displaymatch.adapters.index.sqlite_index import SQLiteIndex
from displaymatch.adapters.opencv.analyzer import OpenCVAnalyzer
from displaymatch.domain.errors import ImageLoadError
from displaymatch.domain.models import ComparisonResult
from displaymatch.services import BatchService, ComparisonService


def _blocks(h=120, w=160, seed=11, n=40) -> np.ndarray:
    rng = np.random.default_rng(seed)
    img = np.full((h, w), 40, dtype=np.uint8)
    for _ in range(n):
        y0, x0 = int(rng.integers(0, h - 10)), int(rng.integers(0, w - 10))
        y1, x1 = y0 + int(rng.integers(8, 40)), x0 + int(rng.integers(8, 50))
        img[y0:y1, x0:x1] = int(rng.integers(0, 256))
    return img


def _write(p: Path, arr: np.ndarray) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(arr).save(p)
    return p


class ConstantComparison:
    """Stands in for ComparisonService; hands out queued scores in call order."""

    def __init__(self, scores):
        self.scores = scores
        self.calls = 0

    def compare(self, image1, image2):
        self.calls += 1
        return ComparisonResult(score=self.scores.pop(0), matches=1)


def test_batch_ranks_identical_reference_first(tmp_path: Path):
    probe = _write(tmp_path / "probe.png", _blocks())
    refs = tmp_path / "refs"
    _write(refs / "a_same.png", _blocks())
    _write(refs / "nested" / "b_other.png", _blocks(seed=99))
    (refs / "notes.txt").write_text("not an image")
    (refs / "broken.png").write_bytes(b"junk")

    db = tmp_path / "dm.db"
    with SQLiteIndex(db) as index:
        service = BatchService(
            LocalFS(),
            PillowImageLoader(),
            ComparisonService(OpenCVAnalyzer()),
            index,
        )
        entries = service.run(probe, refs)

        assert [e.reference.name for e in entries][0] == "a_same.png"
        assert len(entries) == 2
        assert entries[0].result.score >= entries[1].result.score
        assert entries[0].result.error is None

        rows = list(index.comparisons())
        assert len(rows) == 2
        assert {r["probe_path"] for r in rows} == {str(probe)}


def test_batch_skips_probe_inside_references(tmp_path: Path):
    refs = tmp_path / "refs"
    probe = _write(refs / "probe.png", _blocks())
    _write(refs / "other.png", _blocks(seed=2))

    comparison = ConstantComparison([50.0])
    entries = BatchService(LocalFS(), PillowImageLoader(), comparison).run(probe, refs)
    assert comparison.calls == 1
    assert [e.reference.name for e in entries] == ["other.png"]


def test_batch_ignore_patterns_and_tie_order(tmp_path: Path):
    probe = _write(tmp_path / "probe.png", _blocks())
    refs = tmp_path / "refs"
    for name in ("b.png", "a.png", "skip_me.png"):
        _write(refs / name, _blocks(seed=3))

    comparison = ConstantComparison([10.0, 10.0])
    entries = BatchService(
        LocalFS(),
        PillowImageLoader(),
        comparison,
        ignore_patterns=["*skip_*"],
    ).run(probe, refs)
    assert [e.reference.name for e in entries] == ["a.png", "b.png"]


def test_batch_unreadable_probe_raises(tmp_path: Path):
    probe = tmp_path / "probe.png"
    probe.write_bytes(b"junk")
    refs = tmp_path / "refs"
    refs.mkdir()
    with pytest.raises(ImageLoadError):
        BatchService(LocalFS(), PillowImageLoader(), ConstantComparison([])).run(probe, refs)


def test_batch_skips_oversized_reference_and_ranks_the_rest(tmp_path: Path, monkeypatch):
    small = np.full((20, 20), 90, dtype=np.uint8)
    probe = _write(tmp_path / "probe.png", small)
    refs = tmp_path / "refs"
    _write(refs / "a_ok.png", small)
    _write(refs / "b_huge.png", np.zeros((100, 100), dtype=np.uint8))
    _write(refs / "c_ok.png", small)

    # 100x100 is more than twice this limit, so Pillow refuses to open it
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

    comparison = ConstantComparison([20.0, 80.0])
    entries = BatchService(LocalFS(), PillowImageLoader(), comparison).run(probe, refs)

    assert comparison.calls == 2
    assert [e.reference.name for e in entries] == ["c_ok.png", "a_ok.png"]
