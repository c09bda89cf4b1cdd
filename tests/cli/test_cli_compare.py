# tests/cli/test_cli_compare.py
import json
from pathlib import Path

import numpy as np
from PIL import Image
from typer.testing import CliRunner

from displaymatch.cli.app import app

runner = CliRunner()


def _stripes(h=120, w=160) -> np.ndarray:
    row = np.where((np.arange(w) // 4) % 2 == 0, 100, 160).astype(np.uint8)
    return np.tile(row, (h, 1))


def _noise(h=120, w=160) -> np.ndarray:
    rng = np.random.default_rng(4)
    return np.clip(rng.normal(128, 30, size=(h, w)), 0, 255).astype(np.uint8)


def _save(p: Path, arr: np.ndarray) -> Path:
    Image.fromarray(arr).save(p)
    return p


def test_compare_prints_result_mapping(tmp_path: Path):
    a = _save(tmp_path / "a.png", _noise())
    b = _save(tmp_path / "b.png", _noise())
    r = runner.invoke(app, ["compare", str(a), str(b)])
    assert r.exit_code == 0, r.output
    payload = json.loads(r.stdout)
    assert "score" in payload and "matches" in payload


def test_compare_unreadable_image_fails_cleanly(tmp_path: Path):
    a = _save(tmp_path / "a.png", _noise())
    bad = tmp_path / "b.png"
    bad.write_bytes(b"junk")
    r = runner.invoke(app, ["compare", str(a), str(bad)])
    assert r.exit_code == 1
    assert "Error" in r.output


def test_classify(tmp_path: Path):
    render = _save(tmp_path / "render.png", _stripes(h=200, w=200))
    photo = _save(tmp_path / "photo.png", _noise())
    assert runner.invoke(app, ["classify", str(render)]).stdout.strip() == "render"
    assert runner.invoke(app, ["classify", str(photo)]).stdout.strip() == "photo"


def test_preprocess_writes_segments(tmp_path: Path):
    src = _save(tmp_path / "in.png", _stripes())
    out = tmp_path / "out" / "seg.png"
    r = runner.invoke(
        app, ["preprocess", str(src), "--out", str(out), "--mode", "render", "--segments"]
    )
    assert r.exit_code == 0, r.output
    assert out.exists()
    assert set(np.unique(np.asarray(Image.open(out))).tolist()) <= {0, 255}


def test_preprocess_unknown_mode_fails_cleanly(tmp_path: Path):
    src = _save(tmp_path / "in.png", _stripes())
    r = runner.invoke(
        app, ["preprocess", str(src), "--out", str(tmp_path / "o.png"), "--mode", "fancy"]
    )
    assert r.exit_code != 0
    assert "Unknown mode" in r.output


def test_preprocess_unwritable_target_fails_cleanly(tmp_path: Path):
    src = _save(tmp_path / "in.png", _stripes())
    out = tmp_path / "taken.png"
    out.mkdir()
    r = runner.invoke(app, ["preprocess", str(src), "--out", str(out)])
    assert r.exit_code == 1
    assert "Error" in r.output
