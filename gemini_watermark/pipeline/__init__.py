"""
Gemini Watermark Pipeline

Opacity maps, placement, alpha blending, detection and the engine that ties
them together.
"""

from .placement import WatermarkSize, PlacementRule, Region, get_watermark_size, get_placement
from .alpha_map import build_alpha_maps, calculate_alpha_map, resize_alpha_map
from .blend import add_watermark_alpha_blend, remove_watermark_alpha_blend
from .detector import WatermarkDetector, DetectionResult
from .engine import WatermarkEngine

__all__ = [
    # Placement
    "WatermarkSize",
    "PlacementRule",
    "Region",
    "get_watermark_size",
    "get_placement",
    # Alpha maps
    "build_alpha_maps",
    "calculate_alpha_map",
    "resize_alpha_map",
    # Blending
    "add_watermark_alpha_blend",
    "remove_watermark_alpha_blend",
    # Detection
    "WatermarkDetector",
    "DetectionResult",
    # Engine
    "WatermarkEngine",
]
