# tests/unit/test_scoring.py
from types import SimpleNamespace

import pytest

from displaymatch.config import BOTH_RENDERS_SCORING, MIXED_SCORING
from displaymatch.services.scoring import (
    analyze_spatial_distribution,
    final_score,
    quality_score,
    quantity_score,
)


@pytest.mark.parametrize(
    "matches, expected",
    [
        (0, 0.0),
        (30, 30 / 90),
        (45, 0.5),
        (60, 0.5 + 0.5 * (60 / 90)),
        (90, 1.0),
        (900, 1.0),
    ],
)
def test_quantity_score_ramp(matches, expected):
    assert quantity_score(matches, 90.0) == pytest.approx(expected)


def test_quality_score_is_clamped():
    assert quality_score([0, 0, 0], 100.0) == 1.0
    assert quality_score([40.0], 80.0) == pytest.approx(0.5)
    assert quality_score([150.0], 100.0) == 0.0
    assert quality_score([], 100.0) == 0.0


def test_final_score_power_curve_without_bonus():
    # raw 0.5 stays under both bonus thresholds
    assert final_score(0.5, 0.5, 0.5, MIXED_SCORING) == pytest.approx(100 * 0.5 ** 0.7)
    assert final_score(0.5, 0.5, 0.5, BOTH_RENDERS_SCORING) == pytest.approx(100 * 0.5 ** 0.6)


def test_final_score_bonus_and_cap():
    assert final_score(0.6, 0.6, 0.6, MIXED_SCORING) == pytest.approx(100 * 0.6 ** 0.7 * 1.3)
    assert final_score(1.0, 1.0, 1.0, MIXED_SCORING) == 100.0
    assert final_score(1.0, 1.0, 1.0, BOTH_RENDERS_SCORING) == 100.0


def _grid_points(width, height, n):
    pts = []
    for j in range(n):
        for i in range(n):
            pts.append(SimpleNamespace(pt=((i + 0.5) * width / n, (j + 0.5) * height / n)))
    return pts


def test_spatial_distribution_of_even_matches_is_one():
    kps = _grid_points(80, 80, 8)
    matches = [SimpleNamespace(queryIdx=i) for i in range(len(kps))]
    assert analyze_spatial_distribution(kps, matches, (80, 80)) == pytest.approx(1.0)


def test_spatial_distribution_of_single_corner_match():
    kps = [SimpleNamespace(pt=(1.0, 1.0))]
    score = analyze_spatial_distribution(kps, [SimpleNamespace(queryIdx=0)], (80, 80))
    # coverage 1/64 and 1/16, perfect evenness, no row/column balance
    assert score == pytest.approx(0.3 / 64 + 0.2 / 16 + 0.2 + 0.1, abs=1e-5)


def test_spatial_distribution_without_matches_is_zero():
    assert analyze_spatial_distribution([], [], (80, 80)) == 0.0
