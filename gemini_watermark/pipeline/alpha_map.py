"""
Alpha Maps

Derives watermark opacity maps from reference captures and resamples them
for custom region sizes.

The reference captures are the watermark rendered on a pure black
background. On black, alpha blending gives pixel = alpha * logo, so with a
white logo alpha = max(B, G, R) / 255.
"""

import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from ..errors import InvalidRegionError, LoadError
from .placement import LARGE_PLACEMENT, SMALL_PLACEMENT

logger = logging.getLogger(__name__)


def decode_capture(data: bytes, name: str = "capture") -> np.ndarray:
    """
    Decode an encoded (PNG) reference capture to a BGR array.

    Raises:
        LoadError: if the bytes cannot be decoded
    """
    if not data:
        raise LoadError(f"Failed to decode {name}: no data")

    capture = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if capture is None or capture.size == 0:
        raise LoadError(f"Failed to decode {name}")
    return capture


def read_capture(path: Union[str, Path]) -> np.ndarray:
    """
    Read a reference capture from disk.

    Reads the raw bytes with numpy so non-ASCII paths work on every platform.

    Raises:
        LoadError: if the file is missing or cannot be decoded
    """
    path = Path(path)
    if not path.is_file():
        raise LoadError(f"Background capture not found: {path}")

    return decode_capture(np.fromfile(path, dtype=np.uint8).tobytes(), name=str(path))


def calculate_alpha_map(capture: np.ndarray) -> np.ndarray:
    """
    Opacity map from a capture over black.

    Args:
        capture: BGR (or single channel) 8-bit capture

    Returns:
        float32 map in [0, 1] with the capture's height and width
    """
    values = capture.astype(np.float32)
    if values.ndim == 3:
        values = values[:, :, :3].max(axis=2)
    return np.clip(values / 255.0, 0.0, 1.0)


def _fit_capture(capture: np.ndarray, size: int, label: str) -> np.ndarray:
    h, w = capture.shape[:2]
    if w != size or h != size:
        logger.warning(f"{label} capture is {w}x{h}, expected {size}x{size}. Resizing.")
        capture = cv2.resize(capture, (size, size), interpolation=cv2.INTER_AREA)
    return capture


def build_alpha_maps(
    bg_small: np.ndarray,
    bg_large: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """
    Build the canonical 48x48 and 96x96 opacity maps.

    Captures of the wrong size are area-resampled first. The returned maps
    are read-only.

    Args:
        bg_small: Small capture (expected 48x48)
        bg_large: Large capture (expected 96x96)

    Returns:
        Tuple of (alpha_small, alpha_large)
    """
    for label, capture in (("Small", bg_small), ("Large", bg_large)):
        if capture is None or capture.size == 0:
            raise LoadError(f"{label} background capture is empty")

    small = calculate_alpha_map(_fit_capture(bg_small, SMALL_PLACEMENT.logo_size, "Small"))
    large = calculate_alpha_map(_fit_capture(bg_large, LARGE_PLACEMENT.logo_size, "Large"))

    small.flags.writeable = False
    large.flags.writeable = False

    logger.debug(
        f"Alpha map small: {small.shape[1]}x{small.shape[0]}, "
        f"large: {large.shape[1]}x{large.shape[0]}"
    )
    logger.debug(f"Large alpha map range: {large.min():.4f} - {large.max():.4f}")

    return small, large


def resize_alpha_map(source: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Resample an opacity map to an arbitrary size.

    Bilinear when upscaling on either axis, area averaging otherwise. A
    request for the source size returns an unchanged copy.

    Args:
        source: Source opacity map
        width: Target width
        height: Target height

    Returns:
        New float32 opacity map of shape (height, width)
    """
    if width <= 0 or height <= 0:
        raise InvalidRegionError(f"Invalid alpha map size: {width}x{height}")

    src_h, src_w = source.shape[:2]
    if width == src_w and height == src_h:
        return source.copy()

    upscale = width > src_w or height > src_h
    interpolation = cv2.INTER_LINEAR if upscale else cv2.INTER_AREA
    resized = cv2.resize(
        np.array(source, dtype=np.float32),
        (width, height),
        interpolation=interpolation,
    )

    logger.debug(
        f"Created interpolated alpha map: {src_w}x{src_h} -> {width}x{height} "
        f"(method: {'bilinear' if upscale else 'area'})"
    )
    return resized
