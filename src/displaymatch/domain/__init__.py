from .errors import (
    ConfigurationError,
    DisplayMatchError,
    ImageLoadError,
    ImageShapeError,
)
from .models import BatchEntry, ComparisonResult, FeatureSet

__all__ = [
    "BatchEntry",
    "ComparisonResult",
    "ConfigurationError",
    "DisplayMatchError",
    "FeatureSet",
    "ImageLoadError",
    "ImageShapeError",
]
