# Licensed under the Apache License, Version 2.0
from __future__ import annotations

from typing import Any, ContextManager, List, Protocol, Tuple

import numpy as np

from ..domain.models import FeatureSet


class AnalyzerPort(Protocol):
    """
    Image analysis steps used by a comparison.
    Images are numpy arrays; colour input is reduced to grayscale by the implementation.
    `lock` serializes work that the backing library cannot run concurrently.
    """

    lock: ContextManager[Any]

    def is_digital_render(self, image: np.ndarray) -> bool: ...

    def preprocess_image(self, image: np.ndarray, is_render: bool) -> np.ndarray: ...

    def extract_lcd_segments(self, image: np.ndarray, is_render: bool) -> np.ndarray: ...

    def calculate_structural_similarity(
        self,
        image1: np.ndarray,
        image2: np.ndarray,
        segments1: np.ndarray,
        segments2: np.ndarray,
    ) -> float: ...

    def detect_features(
        self, image: np.ndarray, segments: np.ndarray, is_render: bool
    ) -> FeatureSet: ...

    def match_features(
        self, features1: FeatureSet, features2: FeatureSet, ratio_threshold: float
    ) -> List[Any]: ...

    def resize_to(self, image: np.ndarray, shape: Tuple[int, ...]) -> np.ndarray:
        """Grayscale copy of `image` resized to `shape` (rows, cols)."""
        ...
