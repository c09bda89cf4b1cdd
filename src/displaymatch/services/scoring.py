# Licensed under the Apache License, Version 2.0
import math
from typing import Any, Sequence, Tuple

import numpy as np

from ..config import ScoringProfile

FINE_GRID = 8
COARSE_GRID = 4
_EPS = 1e-6


def quality_score(distances: Sequence[float], max_distance: float) -> float:
    """Closeness of the best matches: 1 for identical descriptors, 0 at or past max_distance."""
    if not distances:
        return 0.0
    avg = sum(distances) / len(distances)
    return max(0.0, min(1.0, (max_distance - avg) / max_distance))


def quantity_score(num_matches: int, expected_matches: float) -> float:
    """Piecewise ramp on matches/expected: linear to 0.5, steeper to 1.0, logarithmic beyond."""
    ratio = num_matches / expected_matches
    if ratio <= 0.5:
        return ratio
    if ratio <= 1.0:
        return 0.5 + 0.5 * ratio
    return min(1.0, 1.0 + 0.3 * math.log2(ratio))


def final_score(
    structural: float,
    quantity: float,
    quality: float,
    profile: ScoringProfile,
    bonus_factor: float = 1.3,
) -> float:
    """Weighted blend scaled to 0-100 with a power curve, a high-score bonus and a cap."""
    w_structural, w_quantity, w_quality = profile.weights
    raw = w_structural * structural + w_quantity * quantity + w_quality * quality

    score = 100.0 * math.pow(max(raw, 0.0), profile.power)
    if score > profile.bonus_threshold:
        score *= bonus_factor
    return min(100.0, score)


def _coefficient_of_variation(values: np.ndarray) -> float:
    return float(np.std(values)) / (float(np.mean(values)) + _EPS)


def analyze_spatial_distribution(
    keypoints: Sequence[Any],
    matches: Sequence[Any],
    image_shape: Tuple[int, ...],
) -> float:
    """
    How evenly the matched query keypoints spread over the image; 1.0 for a perfectly
    even spread, lower (possibly negative) as matches cluster.

    Combines coverage and evenness on an 8x8 and a 4x4 grid with the row/column
    balance of the 4x4 grid. `keypoints` need a `.pt` (x, y) and `matches` a
    `.queryIdx` into them; `image_shape` is (rows, cols).
    """
    if not matches:
        return 0.0

    height, width = image_shape[0], image_shape[1]
    fine = np.zeros((FINE_GRID, FINE_GRID), dtype=np.float32)
    coarse = np.zeros((COARSE_GRID, COARSE_GRID), dtype=np.float32)

    for m in matches:
        x, y = keypoints[m.queryIdx].pt
        fx = min(int(x * FINE_GRID / width), FINE_GRID - 1)
        fy = min(int(y * FINE_GRID / height), FINE_GRID - 1)
        fine[fy, fx] += 1
        cx = min(int(x * COARSE_GRID / width), COARSE_GRID - 1)
        cy = min(int(y * COARSE_GRID / height), COARSE_GRID - 1)
        coarse[cy, cx] += 1

    fine_coverage = np.count_nonzero(fine) / fine.size
    coarse_coverage = np.count_nonzero(coarse) / coarse.size

    fine_evenness = 1.0 - _coefficient_of_variation(fine[fine > 0])
    coarse_evenness = 1.0 - _coefficient_of_variation(coarse[coarse > 0])

    row_variation = _coefficient_of_variation(coarse.sum(axis=1))
    col_variation = _coefficient_of_variation(coarse.sum(axis=0))
    alignment = max(0.0, 1.0 - min(row_variation, col_variation))

    return float(
        0.3 * fine_coverage
        + 0.2 * coarse_coverage
        + 0.2 * fine_evenness
        + 0.1 * coarse_evenness
        + 0.2 * alignment
    )
