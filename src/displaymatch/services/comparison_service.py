# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import logging
from typing import Optional

import numpy as np

from ..config import ComparisonSettings
from ..domain.models import ComparisonResult
from ..ports.analyzer import AnalyzerPort
from .scoring import (
    analyze_spatial_distribution,
    final_score,
    quality_score,
    quantity_score,
)

logger = logging.getLogger(__name__)

NO_FEATURES = "No features detected"
UNKNOWN_ERROR = "Unknown error in image processing"


class ComparisonService:
    """
    Scores how well two display images match (0-100).

    Pipeline:
      - classify each image as render or photo
      - preprocess and extract LCD segments per class
      - structural similarity on the processed pair
      - ORB features on image + segments, ratio-tested matches
      - blend structural, quantity and quality signals into the score

    Failures never escape `compare`; they come back as a zero-score result
    carrying the error text.
    """

    def __init__(
        self, analyzer: AnalyzerPort, settings: Optional[ComparisonSettings] = None
    ) -> None:
        self._analyzer = analyzer
        self._settings = settings or ComparisonSettings()

    def compare(self, image1: np.ndarray, image2: np.ndarray) -> ComparisonResult:
        with self._analyzer.lock:
            try:
                return self._compare(image1, image2)
            except Exception as e:
                logger.warning("ComparisonService.compare failed: %s", e)
                return ComparisonResult.failed(str(e) or UNKNOWN_ERROR)

    def _compare(self, image1: np.ndarray, image2: np.ndarray) -> ComparisonResult:
        a = self._analyzer
        s = self._settings

        if s.align_sizes and np.shape(image1)[:2] != np.shape(image2)[:2]:
            logger.debug(
                "Resizing second image %s to %s",
                np.shape(image2)[:2],
                np.shape(image1)[:2],
            )
            image2 = a.resize_to(image2, np.shape(image1))

        is_render1 = a.is_digital_render(image1)
        is_render2 = a.is_digital_render(image2)
        both_renders = is_render1 and is_render2

        proc1 = a.preprocess_image(image1, is_render1)
        proc2 = a.preprocess_image(image2, is_render2)
        seg1 = a.extract_lcd_segments(proc1, is_render1)
        seg2 = a.extract_lcd_segments(proc2, is_render2)

        structural = a.calculate_structural_similarity(proc1, proc2, seg1, seg2)

        features1 = a.detect_features(proc1, seg1, is_render1)
        features2 = a.detect_features(proc2, seg2, is_render2)
        if features1.empty or features2.empty:
            logger.info("No features detected (render1=%s, render2=%s)", is_render1, is_render2)
            return ComparisonResult.failed(NO_FEATURES)

        profile = s.scoring_for(both_renders)
        good = a.match_features(features1, features2, profile.ratio_threshold)
        spatial = analyze_spatial_distribution(features1.keypoints, good, np.shape(proc1))

        score = 0.0
        if good:
            best = [m.distance for m in good[: s.top_matches]]
            quality = quality_score(best, profile.max_distance)
            expected = s.orb_features * profile.expected_match_fraction
            quantity = quantity_score(len(good), expected)
            score = final_score(structural, quantity, quality, profile, s.bonus_factor)
            logger.debug(
                "score=%.2f structural=%.4f quantity=%.4f quality=%.4f matches=%d",
                score,
                structural,
                quantity,
                quality,
                len(good),
            )

        return ComparisonResult(
            score=score,
            matches=len(good),
            structural_similarity=structural,
            spatial_score=spatial,
            is_render1=is_render1,
            is_render2=is_render2,
        )
