"""
Watermark Detector

Decides whether the expected watermark region of an image actually carries
the Gemini watermark, without ground truth.

Three stages are fused into one confidence score:
1. Spatial structural correlation (NCC of luminance vs alpha map)
2. Gradient-domain correlation (NCC of Sobel magnitudes)
3. Variance dampening (texture flattening relative to the strip above)

Stage 1 doubles as a circuit breaker: a weak spatial match ends detection
before the more expensive stages run.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

import cv2
import numpy as np

from ..errors import DegenerateRegionError
from .blend import full_scale
from .placement import Region, WatermarkSize, get_placement, watermark_region

logger = logging.getLogger(__name__)


@dataclass
class DetectionResult:
    """Result of watermark detection."""
    detected: bool = False
    confidence: float = 0.0
    spatial_score: float = 0.0
    gradient_score: float = 0.0
    variance_score: float = 0.0
    size: WatermarkSize = WatermarkSize.SMALL
    region: Region = field(default_factory=lambda: Region(0, 0, 0, 0))  # Unclamped


def _to_gray_unit(region: np.ndarray) -> np.ndarray:
    """Grayscale float32 copy of a region scaled to [0, 1]."""
    # cvtColor only takes 8U/16U/32F, so convert before the color step
    gray = region.astype(np.float32)
    if gray.ndim == 3 and gray.shape[2] >= 3:
        gray = cv2.cvtColor(np.ascontiguousarray(gray[:, :, :3]), cv2.COLOR_BGR2GRAY)
    elif gray.ndim == 3:
        gray = np.ascontiguousarray(gray[:, :, 0])

    scale = full_scale(region)
    if scale != 1.0:
        gray /= scale
    return gray


def _ncc_peak(image: np.ndarray, template: np.ndarray) -> float:
    """Peak of the zero-mean normalized cross-correlation."""
    # Flat inputs have no structure to correlate
    if float(np.std(image)) < 1e-6 or float(np.std(template)) < 1e-6:
        return 0.0

    match = cv2.matchTemplate(
        np.ascontiguousarray(image, dtype=np.float32),
        np.ascontiguousarray(template, dtype=np.float32),
        cv2.TM_CCOEFF_NORMED,
    )
    _, max_val, _, _ = cv2.minMaxLoc(match)
    if math.isnan(max_val) or math.isinf(max_val):
        return 0.0
    return float(max_val)


def _gradient_magnitude(gray: np.ndarray) -> np.ndarray:
    gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
    return cv2.magnitude(gx, gy)


class WatermarkDetector:
    """
    Three-stage detector for the fixed Gemini watermark.

    Thresholds and fusion weights are calibrated constants; they can be
    overridden per instance but the defaults should be kept for
    compatibility.
    """

    # Stage 1 circuit breaker
    SPATIAL_THRESHOLD = 0.25

    # Fused confidence needed for detected=True
    DETECTION_THRESHOLD = 0.35

    # Fusion weights
    WEIGHT_SPATIAL = 0.50
    WEIGHT_GRADIENT = 0.30
    WEIGHT_VARIANCE = 0.20

    # Stage 3: reference strip must be taller than this (pixels)
    MIN_REFERENCE_HEIGHT = 8

    # Stage 3: minimum reference std-dev on the 0-255 scale
    MIN_REFERENCE_STD = 5.0

    def __init__(
        self,
        alpha_small: np.ndarray,
        alpha_large: np.ndarray,
        spatial_threshold: Optional[float] = None,
        detection_threshold: Optional[float] = None,
    ):
        """
        Initialize detector.

        Args:
            alpha_small: 48x48 opacity map
            alpha_large: 96x96 opacity map
            spatial_threshold: Override for the stage 1 circuit breaker
            detection_threshold: Override for the final decision threshold
        """
        self._alpha_maps = {
            WatermarkSize.SMALL: alpha_small,
            WatermarkSize.LARGE: alpha_large,
        }
        self.spatial_threshold = (
            self.SPATIAL_THRESHOLD if spatial_threshold is None else spatial_threshold
        )
        self.detection_threshold = (
            self.DETECTION_THRESHOLD if detection_threshold is None else detection_threshold
        )

    def _clamped_region(self, region: Region, width: int, height: int) -> Region:
        clamped = region.intersect(width, height)
        if clamped.is_empty:
            raise DegenerateRegionError(
                f"Watermark region {region.as_tuple()} outside {width}x{height} image"
            )
        return clamped

    def _variance_score(
        self,
        image: np.ndarray,
        gray_region: np.ndarray,
        roi: Region,
        logo_size: int
    ) -> float:
        """
        Stage 3: texture dampening against the strip directly above.

        Watermarks flatten the background variance under the logo.
        """
        ref_h = min(roi.y, logo_size)
        if ref_h <= self.MIN_REFERENCE_HEIGHT:
            return 0.0

        ref_region = image[roi.y - ref_h:roi.y, roi.x:roi.x + roi.width]
        gray_ref = _to_gray_unit(ref_region)

        # Std-devs on the 0-255 scale
        std_wm = float(np.std(gray_region)) * 255.0
        std_ref = float(np.std(gray_ref)) * 255.0

        if std_ref <= self.MIN_REFERENCE_STD:
            return 0.0

        return float(np.clip(1.0 - std_wm / std_ref, 0.0, 1.0))

    def detect(
        self,
        image: np.ndarray,
        force_size: Optional[WatermarkSize] = None
    ) -> DetectionResult:
        """
        Score the expected watermark region of an image.

        Args:
            image: BGR (or grayscale) image, not modified
            force_size: Optional override of the geometric size class

        Returns:
            DetectionResult with per-stage scores and fused confidence
        """
        result = DetectionResult()
        if image is None or image.size == 0:
            return result

        h, w = image.shape[:2]
        size, region = watermark_region(w, h, force_size)
        rule = get_placement(size)
        alpha_map = self._alpha_maps[size]

        result.size = size
        result.region = region

        try:
            roi = self._clamped_region(region, w, h)
        except DegenerateRegionError as e:
            logger.debug(f"Detection: {e}")
            return result

        gray_region = _to_gray_unit(image[roi.y:roi.y + roi.height, roi.x:roi.x + roi.width])
        ax = roi.x - region.x
        ay = roi.y - region.y
        alpha_region = np.array(alpha_map[ay:ay + roi.height, ax:ax + roi.width], dtype=np.float32)

        # Stage 1: spatial structural correlation
        spatial_score = _ncc_peak(gray_region, alpha_region)
        result.spatial_score = spatial_score

        if spatial_score < self.spatial_threshold:
            logger.debug(
                f"Detection: spatial={spatial_score:.3f} < {self.spatial_threshold:.2f}, rejected"
            )
            result.confidence = spatial_score * 0.5
            return result

        # Stage 2: gradient-domain correlation
        gradient_score = _ncc_peak(
            _gradient_magnitude(gray_region),
            _gradient_magnitude(alpha_region),
        )
        result.gradient_score = gradient_score

        # Stage 3: variance dampening
        variance_score = self._variance_score(image, gray_region, roi, rule.logo_size)
        result.variance_score = variance_score

        confidence = (
            spatial_score * self.WEIGHT_SPATIAL
            + gradient_score * self.WEIGHT_GRADIENT
            + variance_score * self.WEIGHT_VARIANCE
        )
        result.confidence = float(np.clip(confidence, 0.0, 1.0))
        result.detected = result.confidence >= self.detection_threshold

        logger.debug(
            f"Detection: spatial={spatial_score:.3f}, grad={gradient_score:.3f}, "
            f"var={variance_score:.3f} -> conf={result.confidence:.3f} "
            f"({'DETECTED' if result.detected else 'not detected'})"
        )

        return result
