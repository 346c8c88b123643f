from pathlib import Path

import cv2
import numpy as np
import pytest

from gemini_watermark.pipeline.engine import WatermarkEngine


def star_capture(size: int, peak: float = 0.5) -> np.ndarray:
    """
    Four-point sparkle rendered in white over black, as a BGR capture.

    Peak opacity stays well below 1 so reverse blending is well conditioned.
    """
    c = (size - 1) / 2.0
    yy, xx = np.mgrid[0:size, 0:size].astype(np.float32)
    dx = np.abs(xx - c) / (size / 2.0)
    dy = np.abs(yy - c) / (size / 2.0)
    alpha = np.clip(1.0 - (np.sqrt(dx) + np.sqrt(dy)), 0.0, 1.0) * peak
    gray = np.rint(alpha * 255.0).astype(np.uint8)
    return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)


@pytest.fixture
def bg_small() -> np.ndarray:
    return star_capture(48)


@pytest.fixture
def bg_large() -> np.ndarray:
    return star_capture(96)


@pytest.fixture
def engine(bg_small, bg_large) -> WatermarkEngine:
    return WatermarkEngine(bg_small, bg_large)


@pytest.fixture
def capture_files(tmp_path: Path, bg_small, bg_large) -> tuple[Path, Path]:
    small_path = tmp_path / "bg_48.png"
    large_path = tmp_path / "bg_96.png"
    cv2.imwrite(str(small_path), bg_small)
    cv2.imwrite(str(large_path), bg_large)
    return small_path, large_path


def gradient_image(width: int, height: int) -> np.ndarray:
    """Smooth horizontal ramp, BGR uint8."""
    ramp = np.linspace(60, 180, width, dtype=np.float32)
    gray = np.rint(np.tile(ramp, (height, 1))).astype(np.uint8)
    return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)


def gray_image(width: int, height: int, value: int = 128) -> np.ndarray:
    return np.full((height, width, 3), value, dtype=np.uint8)
