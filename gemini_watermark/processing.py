"""
Image Processing

File-level watermark removal/addition with detection-based skipping, plus
Pillow interop for callers holding PIL images.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np
from PIL import Image

from .config import get_settings
from .errors import WatermarkError
from .pipeline.engine import WatermarkEngine
from .pipeline.placement import WatermarkSize

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Outcome of processing one image file."""
    success: bool = False
    skipped: bool = False  # No watermark detected, file left untouched
    confidence: float = 0.0
    message: str = ""


def read_image(path: Union[str, Path]) -> Optional[np.ndarray]:
    """
    Read an image as BGR, supporting non-ASCII paths.

    Returns:
        The decoded image, or None if it cannot be read
    """
    path = Path(path)
    if not path.is_file():
        return None

    data = np.fromfile(path, dtype=np.uint8)
    if data.size == 0:
        return None
    return cv2.imdecode(data, cv2.IMREAD_COLOR)


def encode_params(path: Union[str, Path]) -> list[int]:
    """OpenCV encoder parameters for the output extension."""
    settings = get_settings()
    ext = Path(path).suffix.lower()

    if ext in (".jpg", ".jpeg"):
        return [cv2.IMWRITE_JPEG_QUALITY, settings.jpeg_quality]
    if ext == ".png":
        return [cv2.IMWRITE_PNG_COMPRESSION, settings.png_compression]
    if ext == ".webp":
        return [cv2.IMWRITE_WEBP_QUALITY, settings.webp_quality]
    return []


def write_image(path: Union[str, Path], image: np.ndarray) -> bool:
    """
    Encode and write an image, supporting non-ASCII paths.

    Returns:
        True on success
    """
    path = Path(path)
    ok, buf = cv2.imencode(path.suffix or ".png", image, encode_params(path))
    if not ok:
        return False
    buf.tofile(path)
    return True


def pil_to_bgr(image: Image.Image) -> np.ndarray:
    """Convert a PIL image to a BGR array."""
    return cv2.cvtColor(np.array(image.convert("RGB")), cv2.COLOR_RGB2BGR)


def bgr_to_pil(image: np.ndarray) -> Image.Image:
    """Convert a BGR array to a PIL image."""
    return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))


def process_image(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    remove: bool,
    engine: WatermarkEngine,
    force_size: Optional[WatermarkSize] = None,
    use_detection: Optional[bool] = None,
    detection_threshold: Optional[float] = None,
) -> ProcessResult:
    """
    Remove or add the watermark on one image file.

    When removing with detection enabled, images the detector rejects and
    that score below ``detection_threshold`` are skipped and not written.
    Errors are reported in the result rather than raised.

    Args:
        input_path: Source image
        output_path: Destination (may equal input_path)
        remove: True to remove, False to add
        engine: Watermark engine
        force_size: Optional size class override
        use_detection: Run detection before removal (default from settings)
        detection_threshold: Confidence below which undetected images are
            skipped (default from settings)

    Returns:
        ProcessResult
    """
    settings = get_settings()
    if use_detection is None:
        use_detection = settings.use_detection
    if detection_threshold is None:
        detection_threshold = settings.detection_threshold

    input_path = Path(input_path)
    output_path = Path(output_path)
    result = ProcessResult()

    try:
        image = read_image(input_path)
        if image is None:
            result.message = "Failed to load image"
            logger.error(f"Failed to load image: {input_path}")
            return result

        logger.info(f"Processing: {input_path.name} ({image.shape[1]}x{image.shape[0]})")

        if use_detection and remove:
            detection = engine.detect_watermark(image, force_size)
            result.confidence = detection.confidence

            if not detection.detected and detection.confidence < detection_threshold:
                result.skipped = True
                result.success = True
                result.message = (
                    f"No watermark detected ({detection.confidence * 100:.0f}%), skipped"
                )
                logger.info(
                    f"{input_path.name}: {result.message} (spatial={detection.spatial_score:.2f}, "
                    f"grad={detection.gradient_score:.2f}, var={detection.variance_score:.2f})"
                )
                return result

            logger.info(
                f"Watermark detected ({detection.confidence * 100:.0f}% confidence), processing..."
            )

        if remove:
            image = engine.remove_watermark(image, force_size)
        else:
            image = engine.add_watermark(image, force_size)

        output_path.parent.mkdir(parents=True, exist_ok=True)

        if not write_image(output_path, image):
            result.message = "Failed to write image"
            logger.error(f"Failed to write image: {output_path}")
            return result

        result.success = True
        result.message = "Watermark removed" if remove else "Watermark added"
        logger.info(f"Saved: {output_path.name}")
        return result

    except (WatermarkError, cv2.error, OSError) as e:
        result.message = f"Error: {e}"
        logger.error(f"Error processing {input_path}: {e}")
        return result
