"""
Watermark Engine

Holds the two canonical opacity maps and exposes removal, addition and
detection of the Gemini watermark, at its standard position or in a custom
region.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np

from ..config import Settings, get_settings
from .alpha_map import build_alpha_maps, decode_capture, read_capture, resize_alpha_map
from .blend import add_watermark_alpha_blend, ensure_bgr, remove_watermark_alpha_blend
from .detector import DetectionResult, WatermarkDetector
from .placement import (
    LARGE_PLACEMENT,
    SMALL_PLACEMENT,
    Region,
    WatermarkSize,
    watermark_region,
)

logger = logging.getLogger(__name__)


class WatermarkEngine:
    """
    Gemini watermark engine.

    Immutable after construction: the opacity maps are read-only, so one
    engine can be shared by callers working on different images.
    """

    def __init__(
        self,
        bg_small: np.ndarray,
        bg_large: np.ndarray,
        logo_value: float = 1.0,
        detector: Optional[WatermarkDetector] = None,
    ):
        """
        Initialize engine from decoded reference captures.

        Args:
            bg_small: 48x48 capture of the logo over black (BGR)
            bg_large: 96x96 capture of the logo over black (BGR)
            logo_value: Normalized logo intensity (1.0 = white)
            detector: Optional preconfigured detector; built from the maps
                when omitted

        Raises:
            LoadError: if a capture is empty
        """
        self.logo_value = logo_value
        self._alpha_small, self._alpha_large = build_alpha_maps(bg_small, bg_large)
        self._detector = detector or WatermarkDetector(self._alpha_small, self._alpha_large)

    @classmethod
    def from_files(
        cls,
        bg_small_path: Union[str, Path],
        bg_large_path: Union[str, Path],
        logo_value: float = 1.0,
    ) -> "WatermarkEngine":
        """Build an engine from capture files on disk."""
        engine = cls(read_capture(bg_small_path), read_capture(bg_large_path), logo_value)
        logger.info("Loaded background captures from files")
        return engine

    @classmethod
    def from_bytes(
        cls,
        png_small: bytes,
        png_large: bytes,
        logo_value: float = 1.0,
    ) -> "WatermarkEngine":
        """Build an engine from embedded PNG data."""
        engine = cls(
            decode_capture(png_small, "embedded small background capture"),
            decode_capture(png_large, "embedded large background capture"),
            logo_value,
        )
        logger.info("Loaded embedded background captures")
        return engine

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "WatermarkEngine":
        """Build an engine from the configured capture paths."""
        if settings is None:
            settings = get_settings()
        return cls.from_files(settings.bg_small_path, settings.bg_large_path, settings.logo_value)

    @property
    def detector(self) -> WatermarkDetector:
        return self._detector

    def get_alpha_map(self, size: WatermarkSize) -> np.ndarray:
        """Canonical read-only opacity map for a size class."""
        if size == WatermarkSize.SMALL:
            return self._alpha_small
        return self._alpha_large

    def create_interpolated_alpha(self, width: int, height: int) -> np.ndarray:
        """
        Opacity map of arbitrary size resampled from the 96x96 map.

        The large map is always the source since it has the most detail.
        """
        return resize_alpha_map(self._alpha_large, width, height)

    def alpha_map_for_region(self, width: int, height: int) -> np.ndarray:
        """
        Opacity map for a custom region.

        Exact 48x48 and 96x96 regions get the canonical maps verbatim to
        avoid resampling error.
        """
        for rule, alpha_map in (
            (SMALL_PLACEMENT, self._alpha_small),
            (LARGE_PLACEMENT, self._alpha_large),
        ):
            if width == rule.logo_size and height == rule.logo_size:
                logger.info(f"Custom region matches {width}x{height}, using canonical alpha map")
                return alpha_map
        return self.create_interpolated_alpha(width, height)

    def _standard_placement(
        self,
        image: np.ndarray,
        force_size: Optional[WatermarkSize]
    ) -> tuple[np.ndarray, tuple[int, int], WatermarkSize]:
        h, w = image.shape[:2]
        size, region = watermark_region(w, h, force_size)
        alpha_map = self.get_alpha_map(size)
        return alpha_map, (region.x, region.y), size

    def remove_watermark(
        self,
        image: np.ndarray,
        force_size: Optional[WatermarkSize] = None
    ) -> np.ndarray:
        """
        Remove the watermark at its standard position.

        3-channel images are modified in place; 1- and 4-channel images are
        converted first. Always use the returned array.

        Args:
            image: Image buffer
            force_size: Optional override of the geometric size class

        Returns:
            The processed BGR image

        Raises:
            EmptyImageError: if the image is empty
        """
        image = ensure_bgr(image)
        alpha_map, pos, size = self._standard_placement(image, force_size)

        logger.debug(
            f"Removing watermark at {pos} with {alpha_map.shape[1]}x{alpha_map.shape[0]} "
            f"alpha map (size: {size.name.title()})"
        )
        remove_watermark_alpha_blend(image, alpha_map, pos, self.logo_value)
        return image

    def add_watermark(
        self,
        image: np.ndarray,
        force_size: Optional[WatermarkSize] = None
    ) -> np.ndarray:
        """
        Add the watermark at its standard position.

        Same buffer semantics as remove_watermark.
        """
        image = ensure_bgr(image)
        alpha_map, pos, size = self._standard_placement(image, force_size)

        logger.debug(
            f"Adding watermark at {pos} with {alpha_map.shape[1]}x{alpha_map.shape[0]} "
            f"alpha map (size: {size.name.title()})"
        )
        add_watermark_alpha_blend(image, alpha_map, pos, self.logo_value)
        return image

    def remove_watermark_custom(self, image: np.ndarray, region: Region) -> np.ndarray:
        """
        Remove a watermark occupying an arbitrary region.

        Args:
            image: Image buffer
            region: Watermark rectangle in image coordinates

        Returns:
            The processed BGR image
        """
        image = ensure_bgr(image)
        alpha_map = self.alpha_map_for_region(region.width, region.height)

        logger.info(
            f"Removing watermark at ({region.x},{region.y}) with "
            f"{region.width}x{region.height} alpha map"
        )
        remove_watermark_alpha_blend(image, alpha_map, (region.x, region.y), self.logo_value)
        return image

    def add_watermark_custom(self, image: np.ndarray, region: Region) -> np.ndarray:
        """Add a watermark scaled to an arbitrary region."""
        image = ensure_bgr(image)
        alpha_map = self.alpha_map_for_region(region.width, region.height)

        logger.info(
            f"Adding watermark at ({region.x},{region.y}) with "
            f"{region.width}x{region.height} alpha map"
        )
        add_watermark_alpha_blend(image, alpha_map, (region.x, region.y), self.logo_value)
        return image

    def detect_watermark(
        self,
        image: np.ndarray,
        force_size: Optional[WatermarkSize] = None
    ) -> DetectionResult:
        """Score the standard watermark region. See WatermarkDetector.detect."""
        return self._detector.detect(image, force_size)

    def locate_watermark(
        self,
        image: np.ndarray,
        force_size: Optional[WatermarkSize] = None
    ) -> tuple[Region, DetectionResult]:
        """
        Initial region for interactive custom mode.

        Returns the detected region, or the default placement region when
        nothing is detected.
        """
        detection = self.detect_watermark(image, force_size)
        if detection.detected:
            r = detection.region
            logger.info(
                f"Auto-detected watermark: ({r.x},{r.y}) {r.width}x{r.height} "
                f"confidence={detection.confidence:.2f} (spatial={detection.spatial_score:.2f}, "
                f"grad={detection.gradient_score:.2f}, var={detection.variance_score:.2f})"
            )
            return detection.region, detection

        h, w = image.shape[:2]
        _, fallback = watermark_region(w, h, force_size)
        logger.info(
            f"Detection: not found, using fallback: ({fallback.x},{fallback.y}) "
            f"{fallback.width}x{fallback.height}"
        )
        return fallback, detection
