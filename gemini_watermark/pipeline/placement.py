"""
Watermark Placement

Size classes and bottom-right anchored placement of the Gemini watermark.

Gemini's rules:
- Large (96x96, 64px margin): BOTH width AND height > 1024
- Small (48x48, 32px margin): otherwise (including 1024x1024)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import InvalidRegionError


class WatermarkSize(Enum):
    """Watermark footprint size class."""
    SMALL = "small"  # 48x48
    LARGE = "large"  # 96x96


# Images must exceed this on both axes to get the large watermark
LARGE_IMAGE_THRESHOLD = 1024

# Custom regions smaller than this on either axis are rejected
MIN_CUSTOM_REGION = 4


@dataclass(frozen=True)
class PlacementRule:
    """Margins from the bottom-right corner and logo footprint."""
    margin_right: int
    margin_bottom: int
    logo_size: int

    def position(self, width: int, height: int) -> tuple[int, int]:
        """
        Top-left corner of the watermark.

        Not clamped: images smaller than margin + logo give negative
        coordinates, which the blend and detection code clip against the
        image bounds.
        """
        return (
            width - self.margin_right - self.logo_size,
            height - self.margin_bottom - self.logo_size,
        )


SMALL_PLACEMENT = PlacementRule(margin_right=32, margin_bottom=32, logo_size=48)
LARGE_PLACEMENT = PlacementRule(margin_right=64, margin_bottom=64, logo_size=96)


@dataclass(frozen=True)
class Region:
    """Axis-aligned pixel rectangle."""
    x: int
    y: int
    width: int
    height: int

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def intersect(self, width: int, height: int) -> "Region":
        """Clamp to an image of the given size. May return an empty region."""
        x1 = max(0, self.x)
        y1 = max(0, self.y)
        x2 = min(width, self.x + self.width)
        y2 = min(height, self.y + self.height)
        return Region(x1, y1, max(0, x2 - x1), max(0, y2 - y1))

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)


def get_watermark_size(width: int, height: int) -> WatermarkSize:
    """Size class from image dimensions. 1024x1024 is Small."""
    if width > LARGE_IMAGE_THRESHOLD and height > LARGE_IMAGE_THRESHOLD:
        return WatermarkSize.LARGE
    return WatermarkSize.SMALL


def get_placement(size: WatermarkSize) -> PlacementRule:
    """Placement rule bound to a size class."""
    if size == WatermarkSize.LARGE:
        return LARGE_PLACEMENT
    return SMALL_PLACEMENT


def get_watermark_config(width: int, height: int) -> PlacementRule:
    """Placement rule for the size class implied by the image dimensions."""
    return get_placement(get_watermark_size(width, height))


def watermark_region(
    width: int,
    height: int,
    force_size: Optional[WatermarkSize] = None
) -> tuple[WatermarkSize, Region]:
    """
    Resolve size class and the full (unclamped) watermark region.

    Args:
        width: Image width
        height: Image height
        force_size: Optional override of the geometric size class

    Returns:
        Tuple of (size, region)
    """
    size = force_size if force_size is not None else get_watermark_size(width, height)
    rule = get_placement(size)
    x, y = rule.position(width, height)
    return size, Region(x, y, rule.logo_size, rule.logo_size)


def size_hint(region: Region) -> WatermarkSize:
    """
    Size class closest to a custom region.

    For interactive callers that label a user-drawn rectangle. The engine
    picks custom maps by exact region size instead.
    """
    if region.width <= SMALL_PLACEMENT.logo_size and region.height <= SMALL_PLACEMENT.logo_size:
        return WatermarkSize.SMALL
    return WatermarkSize.LARGE


def clamp_custom_region(region: Region, width: int, height: int) -> Region:
    """
    Clamp a user-drawn rectangle to the image.

    Interactive callers run this before remove_watermark_custom. The engine
    accepts unclamped regions and clips them while blending.

    Raises:
        InvalidRegionError: if the clamped region is under 4px on either axis
    """
    clamped = region.intersect(width, height)
    if clamped.width < MIN_CUSTOM_REGION or clamped.height < MIN_CUSTOM_REGION:
        raise InvalidRegionError(
            f"Custom region too small: {clamped.width}x{clamped.height}"
        )
    return clamped
