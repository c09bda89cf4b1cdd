# Licensed under the Apache License, Version 2.0
from __future__ import annotations

import logging
from typing import Any, List, Optional

import cv2
import numpy as np

from ...config import ComparisonSettings
from ...domain.models import FeatureSet

logger = logging.getLogger(__name__)


def _orb(settings: ComparisonSettings, is_render: bool):
    profile = settings.orb_for(is_render)
    return cv2.ORB_create(
        nfeatures=settings.orb_features,
        scaleFactor=settings.orb_scale_factor,
        nlevels=profile.nlevels,
        edgeThreshold=profile.edge_threshold,
        firstLevel=0,
        WTA_K=3,
        scoreType=cv2.ORB_HARRIS_SCORE,
        patchSize=profile.patch_size,
        fastThreshold=profile.fast_threshold,
    )


def detect_and_compute_features(
    image: np.ndarray,
    segments: np.ndarray,
    is_render: bool,
    settings: Optional[ComparisonSettings] = None,
) -> FeatureSet:
    """
    Detect ORB features on both the image and its segments and combine them.
    When only one side yields descriptors, that side is used on its own.
    """
    settings = settings or ComparisonSettings()
    orb = _orb(settings, is_render)

    kp1, desc1 = orb.detectAndCompute(image, None)
    kp2, desc2 = orb.detectAndCompute(segments, None)
    has1 = desc1 is not None and len(desc1) > 0
    has2 = desc2 is not None and len(desc2) > 0
    logger.debug(
        "ORB (%s): %d image keypoints, %d segment keypoints",
        "render" if is_render else "photo",
        len(kp1),
        len(kp2),
    )

    if has1 and has2:
        return FeatureSet(list(kp1) + list(kp2), np.vstack([desc1, desc2]))
    if has1:
        return FeatureSet(list(kp1), desc1)
    if has2:
        return FeatureSet(list(kp2), desc2)
    return FeatureSet()


def match_descriptors(
    descriptors1: np.ndarray, descriptors2: np.ndarray, ratio_threshold: float
) -> List[Any]:
    """k=2 Hamming matches filtered by Lowe's ratio test, best (smallest distance) first."""
    matcher = cv2.BFMatcher(cv2.NORM_HAMMING)
    knn = matcher.knnMatch(descriptors1, descriptors2, k=2)

    good = []
    for pair in knn:
        if len(pair) == 2:
            m, n = pair
            if m.distance < ratio_threshold * n.distance:
                good.append(m)
    return sorted(good, key=lambda m: m.distance)
