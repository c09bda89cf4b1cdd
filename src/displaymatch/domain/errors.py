class DisplayMatchError(Exception):
    """Base exception for domain-specific errors."""


class ImageLoadError(DisplayMatchError):
    """Unreadable, missing or unsupported image files."""


class ImageShapeError(DisplayMatchError):
    """Image pair whose dimensions cannot be compared (template larger than image)."""


class ConfigurationError(DisplayMatchError):
    """Bad CLI args or unusable settings (e.g., malformed environment overrides)."""
