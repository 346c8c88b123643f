"""
Gemini Watermark

Removes (or adds) the Gemini visible watermark by reverse alpha blending.
"""

from .errors import (
    WatermarkError,
    ConstructionError,
    LoadError,
    EmptyImageError,
    InvalidRegionError,
)
from .pipeline import WatermarkEngine, WatermarkDetector, DetectionResult, WatermarkSize, Region
from .processing import ProcessResult, process_image

__all__ = [
    "WatermarkEngine",
    "WatermarkDetector",
    "DetectionResult",
    "WatermarkSize",
    "Region",
    "ProcessResult",
    "process_image",
    "WatermarkError",
    "ConstructionError",
    "LoadError",
    "EmptyImageError",
    "InvalidRegionError",
]
