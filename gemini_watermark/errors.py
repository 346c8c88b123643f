"""
Watermark Errors

Exception hierarchy raised by the watermark engine.
"""


class WatermarkError(Exception):
    """Base class for all watermark engine errors."""


class ConstructionError(WatermarkError):
    """The engine could not be built."""


class LoadError(ConstructionError):
    """A reference capture is missing or cannot be decoded."""


class EmptyImageError(WatermarkError, ValueError):
    """An empty image buffer was passed to remove/add."""


class InvalidRegionError(WatermarkError, ValueError):
    """A custom watermark region has an unusable size."""


class DegenerateRegionError(WatermarkError):
    """The detection region has zero area after clamping to the image."""
