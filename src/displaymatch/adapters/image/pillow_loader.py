# Licensed under the Apache License, Version 2.0
from __future__ import annotations
import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from ...domain.errors import ImageLoadError
from ...ports.image_loader import ImageLoaderPort

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {
    ".jpg",
    ".jpeg",
    ".png",
    ".bmp",
    ".gif",
    ".tiff",
    ".tif",
    ".webp",
}


class PillowImageLoader(ImageLoaderPort):
    """
    Reads raster images with Pillow as 8-bit grayscale arrays (RGBA -> gray),
    and writes arrays back out in the format implied by the file suffix.
    """

    def supports(self, path: Path) -> bool:
        return Path(path).suffix.lower() in IMAGE_SUFFIXES

    def load(self, path: Union[str, Path]) -> np.ndarray:
        p = Path(path)
        if not self.supports(p):
            raise ImageLoadError(f"Unsupported image type: {p}")
        try:
            with Image.open(p) as im:
                rgba = np.asarray(im.convert("RGBA"))
        except (OSError, UnidentifiedImageError, Image.DecompressionBombError) as e:
            raise ImageLoadError(f"Cannot read image {p}: {e}") from e

        gray = cv2.cvtColor(rgba, cv2.COLOR_RGBA2GRAY)
        logger.debug("Loaded %s (%dx%d)", p, gray.shape[1], gray.shape[0])
        return gray

    def save(self, image: np.ndarray, path: Union[str, Path]) -> Path:
        p = Path(path)
        if not self.supports(p):
            raise ImageLoadError(f"Unsupported image type: {p}")
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            Image.fromarray(np.ascontiguousarray(image, dtype=np.uint8)).save(p)
        except OSError as e:
            raise ImageLoadError(f"Cannot write image {p}: {e}") from e
        return p
