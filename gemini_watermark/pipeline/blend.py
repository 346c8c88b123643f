"""
Alpha Blending

Forward and reverse alpha compositing of a single-color watermark.

Gemini adds the watermark with:
    watermarked = alpha * logo + (1 - alpha) * original

Reversing it:
    original = (watermarked - alpha * logo) / (1 - alpha)
"""

import logging
from typing import Optional

import numpy as np

from ..errors import EmptyImageError

logger = logging.getLogger(__name__)

# Noise-level alpha values are skipped by both add and remove
ALPHA_THRESHOLD = 0.002

# Cap alpha so (1 - alpha) never drops below 0.01
MAX_ALPHA = 0.99


def ensure_bgr(image: np.ndarray) -> np.ndarray:
    """
    Normalize an image buffer to 3-channel BGR.

    3-channel buffers are returned as-is (same object); 1- and 4-channel
    buffers are converted into a new array.

    Raises:
        EmptyImageError: if the buffer is empty
    """
    if image is None or image.size == 0:
        raise EmptyImageError("Empty image provided")

    # cvtColor rejects float64, so channels are broadcast with numpy
    if image.ndim == 2:
        return np.repeat(image[:, :, np.newaxis], 3, axis=2)

    channels = image.shape[2]
    if channels == 4:
        return np.ascontiguousarray(image[:, :, :3])
    if channels == 1:
        return np.repeat(image, 3, axis=2)
    return image


def full_scale(image: np.ndarray) -> float:
    """Channel value of full intensity: 255 for 8-bit, 1.0 for float buffers."""
    if np.issubdtype(image.dtype, np.integer):
        return float(np.iinfo(image.dtype).max)
    return 1.0


def _overlap(
    image: np.ndarray,
    alpha_map: np.ndarray,
    position: tuple[int, int]
) -> Optional[tuple[tuple[slice, slice], np.ndarray]]:
    """Intersection of the placed alpha map with the image bounds."""
    x, y = position
    alpha_h, alpha_w = alpha_map.shape[:2]
    img_h, img_w = image.shape[:2]

    x1 = max(0, x)
    y1 = max(0, y)
    x2 = min(img_w, x + alpha_w)
    y2 = min(img_h, y + alpha_h)

    if x1 >= x2 or y1 >= y2:
        return None

    alpha = alpha_map[y1 - y:y2 - y, x1 - x:x2 - x].astype(np.float64)
    return (slice(y1, y2), slice(x1, x2)), alpha


def _region(image: np.ndarray, rows: slice, cols: slice) -> np.ndarray:
    if image.ndim == 3:
        return image[rows, cols, :3]
    return image[rows, cols]


def _store(image: np.ndarray, rows: slice, cols: slice, values: np.ndarray) -> None:
    values = np.clip(values, 0.0, full_scale(image))
    if np.issubdtype(image.dtype, np.integer):
        values = np.rint(values)
    _region(image, rows, cols)[...] = values.astype(image.dtype)


def _expand(alpha: np.ndarray, image: np.ndarray) -> np.ndarray:
    return alpha[:, :, np.newaxis] if image.ndim == 3 else alpha


def add_watermark_alpha_blend(
    image: np.ndarray,
    alpha_map: np.ndarray,
    position: tuple[int, int],
    logo_value: float = 1.0
) -> None:
    """
    Composite the watermark onto the image in place.

    Alpha map pixels falling outside the image are skipped, as are pixels
    with alpha below ALPHA_THRESHOLD, so removal is an exact inverse.

    Args:
        image: BGR image, modified in place
        alpha_map: Opacity map
        position: Top-left (x, y) of the alpha map in image coordinates
        logo_value: Normalized logo intensity (1.0 = white)
    """
    overlap = _overlap(image, alpha_map, position)
    if overlap is None:
        logger.debug(f"Watermark at {position} lies outside the image, nothing to add")
        return

    (rows, cols), alpha = overlap
    logo = logo_value * full_scale(image)
    region = _region(image, rows, cols).astype(np.float64)
    mask = _expand(alpha >= ALPHA_THRESHOLD, image)
    a = _expand(alpha, image)

    blended = region * (1.0 - a) + logo * a
    _store(image, rows, cols, np.where(mask, blended, region))


def remove_watermark_alpha_blend(
    image: np.ndarray,
    alpha_map: np.ndarray,
    position: tuple[int, int],
    logo_value: float = 1.0
) -> None:
    """
    Reverse the watermark compositing in place.

    Pixels with alpha below ALPHA_THRESHOLD are left untouched and alpha is
    capped at MAX_ALPHA to keep the division bounded.

    Args:
        image: BGR image, modified in place
        alpha_map: Opacity map
        position: Top-left (x, y) of the alpha map in image coordinates
        logo_value: Normalized logo intensity (1.0 = white)
    """
    overlap = _overlap(image, alpha_map, position)
    if overlap is None:
        logger.debug(f"Watermark at {position} lies outside the image, nothing to remove")
        return

    (rows, cols), alpha = overlap
    logo = logo_value * full_scale(image)
    region = _region(image, rows, cols).astype(np.float64)

    mask = _expand(alpha >= ALPHA_THRESHOLD, image)
    a = _expand(np.minimum(alpha, MAX_ALPHA), image)

    restored = (region - a * logo) / (1.0 - a)
    _store(image, rows, cols, np.where(mask, restored, region))
