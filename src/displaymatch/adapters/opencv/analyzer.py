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

from __future__ import annotations

import logging
import math
import threading
from typing import Any, List, Optional, Tuple

import cv2
import numpy as np

from ...config import ComparisonSettings
from ...domain.errors import ImageShapeError
from ...domain.models import FeatureSet
from ...ports.analyzer import AnalyzerPort
from .features import detect_and_compute_features, match_descriptors

logger = logging.getLogger(__name__)

# Process-wide guard for OpenCV work; re-entrant because a comparison calls back
# into the render check.
OPENCV_LOCK = threading.RLock()

# Render detection
CANNY_LOW, CANNY_HIGH = 100, 200
RENDER_MIN_EDGE_SHARPNESS = 0.1
RENDER_MAX_NOISE_STD = 10.0
RENDER_MIN_HIST_STD = 1000.0

# Preprocessing
RENDER_CLAHE_CLIP = 2.0
PHOTO_CLAHE_CLIP = 3.0
CLAHE_TILES = (8, 8)
PHOTO_DENOISE_STRENGTH = 10.0
PHOTO_DENOISE_TEMPLATE_WINDOW = 21
PHOTO_DENOISE_SEARCH_WINDOW = 21
PHOTO_UNSHARP_SIGMA = 3

# Segment extraction
RENDER_THRESHOLD = 127
PHOTO_ADAPTIVE_BLOCK = 25
PHOTO_ADAPTIVE_C = 15


def to_gray(image: np.ndarray) -> np.ndarray:
    """
    Reduce an image array to contiguous 8-bit grayscale.

    2-D input passes through; 3 channels are read as RGB, 4 as RGBA (alpha ignored).
    Anything but uint8 raises ImageShapeError.
    """
    arr = np.asarray(image)
    if arr.dtype != np.uint8:
        raise ImageShapeError(f"Expected an 8-bit image, got dtype {arr.dtype}")
    if arr.ndim == 2:
        return np.ascontiguousarray(arr)
    if arr.ndim == 3 and arr.shape[2] == 1:
        return np.ascontiguousarray(arr[:, :, 0])
    if arr.ndim == 3 and arr.shape[2] == 3:
        return cv2.cvtColor(arr, cv2.COLOR_RGB2GRAY)
    if arr.ndim == 3 and arr.shape[2] == 4:
        return cv2.cvtColor(arr, cv2.COLOR_RGBA2GRAY)
    raise ImageShapeError(f"Unsupported image shape: {arr.shape}")


def gray_histogram(img: np.ndarray) -> np.ndarray:
    return cv2.calcHist([img], [0], None, [256], [0, 256])


def _rescaled_correlation(value: float) -> float:
    # [-1, 1] -> [0, 1]; degenerate (NaN/inf) correlation counts as 0
    if not math.isfinite(value):
        value = 0.0
    return (value + 1.0) / 2.0


class OpenCVAnalyzer(AnalyzerPort):
    """
    Render/photo aware image analysis steps.

    Renders are clean computer-generated screenshots of a display; photos are
    camera shots of a physical display. Each step takes the class into account.
    """

    lock = OPENCV_LOCK

    def __init__(self, settings: Optional[ComparisonSettings] = None) -> None:
        self._settings = settings or ComparisonSettings()

    def is_digital_render(self, image: np.ndarray) -> bool:
        """
        Sharp edges, low noise and a peaky histogram mark a digital render.
        Never raises: any failure is logged and reported as "not a render".
        """
        with self.lock:
            try:
                img = to_gray(image)

                edges = cv2.Canny(img, CANNY_LOW, CANNY_HIGH)
                edge_sharpness = float(np.mean(edges)) / 255.0

                blur = cv2.GaussianBlur(img, (5, 5), 0)
                diff = cv2.absdiff(img, blur)
                noise_std = float(np.std(diff))

                hist_std = float(np.std(gray_histogram(img)))
            except Exception as e:
                logger.warning("is_digital_render failed: %s", e)
                return False

        logger.debug(
            "render check: edge_sharpness=%.4f noise_std=%.3f hist_std=%.1f",
            edge_sharpness,
            noise_std,
            hist_std,
        )
        return (
            edge_sharpness > RENDER_MIN_EDGE_SHARPNESS
            and noise_std < RENDER_MAX_NOISE_STD
            and hist_std > RENDER_MIN_HIST_STD
        )

    def preprocess_image(self, image: np.ndarray, is_render: bool) -> np.ndarray:
        img = to_gray(image)

        if is_render:
            # contrast, then a light Laplacian edge boost
            clahe = cv2.createCLAHE(clipLimit=RENDER_CLAHE_CLIP, tileGridSize=CLAHE_TILES)
            enhanced = clahe.apply(img)
            edges = cv2.convertScaleAbs(cv2.Laplacian(enhanced, cv2.CV_64F))
            return cv2.addWeighted(enhanced, 0.8, edges, 0.2, 0)

        # denoise, contrast, unsharp mask, stretch
        result = cv2.fastNlMeansDenoising(
            img,
            None,
            PHOTO_DENOISE_STRENGTH,
            PHOTO_DENOISE_TEMPLATE_WINDOW,
            PHOTO_DENOISE_SEARCH_WINDOW,
        )
        clahe = cv2.createCLAHE(clipLimit=PHOTO_CLAHE_CLIP, tileGridSize=CLAHE_TILES)
        result = clahe.apply(result)
        blur = cv2.GaussianBlur(result, (0, 0), PHOTO_UNSHARP_SIGMA)
        result = cv2.addWeighted(result, 1.5, blur, -0.5, 0)
        return cv2.normalize(result, None, 0, 255, cv2.NORM_MINMAX)

    def extract_lcd_segments(self, image: np.ndarray, is_render: bool) -> np.ndarray:
        img = to_gray(image)

        if is_render:
            _, binary = cv2.threshold(img, RENDER_THRESHOLD, 255, cv2.THRESH_BINARY)
        else:
            binary = cv2.adaptiveThreshold(
                img,
                255,
                cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
                cv2.THRESH_BINARY,
                PHOTO_ADAPTIVE_BLOCK,
                PHOTO_ADAPTIVE_C,
            )

        size = 3 if is_render else 5
        kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (size, size))
        binary = cv2.morphologyEx(binary, cv2.MORPH_CLOSE, kernel)

        if not is_render:
            binary = cv2.morphologyEx(binary, cv2.MORPH_OPEN, kernel)
            binary = cv2.medianBlur(binary, 5)

        return binary

    def calculate_structural_similarity(
        self,
        image1: np.ndarray,
        image2: np.ndarray,
        segments1: np.ndarray,
        segments2: np.ndarray,
    ) -> float:
        """
        Weighted blend of image correlation, segment correlation and histogram
        correlation, each rescaled to [0, 1].

        The second image of each pair is the template and must fit inside the first.

        Raises:
            ImageShapeError: if a template is larger than its image.
        """
        img1, img2 = to_gray(image1), to_gray(image2)
        seg1, seg2 = to_gray(segments1), to_gray(segments2)
        for a, b, what in ((img1, img2, "image"), (seg1, seg2, "segments")):
            if b.shape[0] > a.shape[0] or b.shape[1] > a.shape[1]:
                raise ImageShapeError(
                    f"second {what} {b.shape} is larger than the first {a.shape}"
                )

        sim_orig = _rescaled_correlation(
            float(cv2.matchTemplate(img1, img2, cv2.TM_CCOEFF_NORMED)[0, 0])
        )
        sim_seg = _rescaled_correlation(
            float(cv2.matchTemplate(seg1, seg2, cv2.TM_CCOEFF_NORMED)[0, 0])
        )
        sim_hist = _rescaled_correlation(
            cv2.compareHist(gray_histogram(img1), gray_histogram(img2), cv2.HISTCMP_CORREL)
        )

        both_renders = self.is_digital_render(img1) and self.is_digital_render(img2)
        orig_weight = 0.2 if both_renders else 0.4
        seg_weight = 0.6 if both_renders else 0.4
        hist_weight = 0.2

        logger.debug(
            "structural: orig=%.4f seg=%.4f hist=%.4f both_renders=%s",
            sim_orig,
            sim_seg,
            sim_hist,
            both_renders,
        )
        return orig_weight * sim_orig + seg_weight * sim_seg + hist_weight * sim_hist

    def detect_features(
        self, image: np.ndarray, segments: np.ndarray, is_render: bool
    ) -> FeatureSet:
        return detect_and_compute_features(
            to_gray(image), to_gray(segments), is_render, self._settings
        )

    def match_features(
        self, features1: FeatureSet, features2: FeatureSet, ratio_threshold: float
    ) -> List[Any]:
        return match_descriptors(features1.descriptors, features2.descriptors, ratio_threshold)

    def resize_to(self, image: np.ndarray, shape: Tuple[int, ...]) -> np.ndarray:
        img = to_gray(image)
        rows, cols = shape[0], shape[1]
        if img.shape[:2] == (rows, cols):
            return img
        return cv2.resize(img, (cols, rows), interpolation=cv2.INTER_AREA)
