import cv2
import numpy as np
import pytest

from gemini_watermark.config import Settings
from gemini_watermark.errors import ConstructionError, EmptyImageError, InvalidRegionError, LoadError
from gemini_watermark.pipeline.engine import WatermarkEngine
from gemini_watermark.pipeline.placement import Region, WatermarkSize

from conftest import gradient_image, gray_image


def test_from_files(capture_files):
    small_path, large_path = capture_files

    engine = WatermarkEngine.from_files(small_path, large_path)

    assert engine.get_alpha_map(WatermarkSize.SMALL).shape == (48, 48)
    assert engine.get_alpha_map(WatermarkSize.LARGE).shape == (96, 96)


def test_from_bytes(bg_small, bg_large):
    _, small_png = cv2.imencode(".png", bg_small)
    _, large_png = cv2.imencode(".png", bg_large)

    engine = WatermarkEngine.from_bytes(small_png.tobytes(), large_png.tobytes(), logo_value=0.8)

    assert engine.logo_value == 0.8
    assert engine.get_alpha_map(WatermarkSize.LARGE).max() > 0.4


def test_from_settings(capture_files):
    small_path, large_path = capture_files
    settings = Settings(bg_small_path=small_path, bg_large_path=large_path, logo_value=0.9)

    engine = WatermarkEngine.from_settings(settings)

    assert engine.logo_value == 0.9


def test_construction_fails_on_bad_capture(tmp_path, capture_files):
    small_path, _ = capture_files
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")

    with pytest.raises(LoadError):
        WatermarkEngine.from_files(small_path, broken)
    with pytest.raises(ConstructionError):
        WatermarkEngine.from_files(tmp_path / "missing.png", small_path)
    with pytest.raises(LoadError):
        WatermarkEngine.from_bytes(b"", b"")


def test_canonical_maps_are_read_only(engine):
    alpha = engine.get_alpha_map(WatermarkSize.SMALL)

    with pytest.raises(ValueError):
        alpha[0, 0] = 0.0


@pytest.mark.parametrize("method", ["remove_watermark", "add_watermark"])
def test_empty_image_rejected(engine, method):
    with pytest.raises(EmptyImageError):
        getattr(engine, method)(np.zeros((0, 0, 3), dtype=np.uint8))


@pytest.mark.parametrize("method", ["remove_watermark_custom", "add_watermark_custom"])
def test_empty_image_rejected_custom(engine, method):
    with pytest.raises(EmptyImageError):
        getattr(engine, method)(np.zeros((0, 0, 3), dtype=np.uint8), Region(0, 0, 48, 48))


def test_end_to_end_large(engine):
    original = gradient_image(2000, 2000)
    watermarked = engine.add_watermark(original.copy())

    detection = engine.detect_watermark(watermarked)
    assert detection.detected is True
    assert detection.confidence >= 0.35

    cleaned = engine.remove_watermark(watermarked)

    diff = np.abs(cleaned.astype(np.float64) - original.astype(np.float64))
    assert diff.mean() < 2.0
    assert diff[1840:1936, 1840:1936].mean() < 2.0


def test_add_modifies_in_place_and_only_the_region(engine):
    image = gray_image(900, 900)

    result = engine.add_watermark(image)

    assert result is image
    assert np.all(image[:820] == 128)
    assert image[820:868, 820:868].max() > 128


def test_forced_size_removal(engine):
    original = gray_image(900, 900)
    image = engine.add_watermark(original.copy(), force_size=WatermarkSize.LARGE)

    assert image[740:836, 740:836].max() > 128

    engine.remove_watermark(image, force_size=WatermarkSize.LARGE)
    assert np.abs(image.astype(np.int16) - original.astype(np.int16)).max() <= 2


def test_bgra_input_is_converted(engine):
    image = np.full((900, 900, 4), 128, dtype=np.uint8)

    result = engine.add_watermark(image)

    assert result.shape == (900, 900, 3)
    assert result is not image


def test_grayscale_input_is_converted(engine):
    result = engine.remove_watermark(np.full((900, 900), 128, dtype=np.uint8))

    assert result.shape == (900, 900, 3)


def test_custom_canonical_region_uses_canonical_map(engine):
    small = engine.alpha_map_for_region(48, 48)
    large = engine.alpha_map_for_region(96, 96)

    assert small is engine.get_alpha_map(WatermarkSize.SMALL)
    assert large is engine.get_alpha_map(WatermarkSize.LARGE)
    assert small.tobytes() == engine.get_alpha_map(WatermarkSize.SMALL).tobytes()


def test_interpolated_48_is_a_real_downsample(engine):
    resampled = engine.create_interpolated_alpha(48, 48)

    assert resampled.shape == (48, 48)
    assert resampled is not engine.get_alpha_map(WatermarkSize.SMALL)
    assert not np.shares_memory(resampled, engine.get_alpha_map(WatermarkSize.LARGE))


def test_interpolated_same_size_returns_equal_map(engine):
    resampled = engine.create_interpolated_alpha(96, 96)

    assert np.array_equal(resampled, engine.get_alpha_map(WatermarkSize.LARGE))


def test_custom_96_matches_standard_removal(engine):
    watermarked = engine.add_watermark(gradient_image(2000, 2000))

    standard = engine.remove_watermark(watermarked.copy())
    custom = engine.remove_watermark_custom(watermarked.copy(), Region(1840, 1840, 96, 96))

    assert np.array_equal(standard, custom)


def test_custom_region_roundtrip(engine):
    original = gradient_image(400, 300)
    region = Region(100, 80, 60, 70)

    watermarked = engine.add_watermark_custom(original.copy(), region)
    assert not np.array_equal(watermarked, original)
    assert np.array_equal(watermarked[:80], original[:80])

    cleaned = engine.remove_watermark_custom(watermarked, region)
    assert np.abs(cleaned.astype(np.int16) - original.astype(np.int16)).max() <= 2


def test_custom_region_invalid_size(engine):
    with pytest.raises(InvalidRegionError):
        engine.remove_watermark_custom(gray_image(100, 100), Region(0, 0, 0, 10))


def test_locate_watermark_detected(engine):
    image = engine.add_watermark(gray_image(2000, 2000))

    region, detection = engine.locate_watermark(image)

    assert detection.detected is True
    assert region == Region(1840, 1840, 96, 96)


def test_locate_watermark_fallback(engine):
    region, detection = engine.locate_watermark(gray_image(900, 900))

    assert detection.detected is False
    assert region == Region(820, 820, 48, 48)


def test_float64_single_channel_and_bgra_inputs(engine):
    removed = engine.remove_watermark(np.full((900, 900), 0.5))
    assert removed.shape == (900, 900, 3)
    assert removed.dtype == np.float64

    added = engine.add_watermark(np.full((900, 900, 4), 0.5))
    assert added.shape == (900, 900, 3)
    assert added[820:868, 820:868].max() > 0.5


def test_float_custom_region_roundtrip_is_exact(engine):
    rng = np.random.default_rng(5)
    original = rng.random((300, 300, 3))
    region = Region(100, 120, 150, 130)

    watermarked = engine.add_watermark_custom(original.copy(), region)
    assert not np.allclose(watermarked, original)

    cleaned = engine.remove_watermark_custom(watermarked, region)
    assert np.allclose(cleaned, original, atol=1e-6)
