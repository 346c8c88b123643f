"""
Watermark Configuration

Environment-based configuration for the watermark engine and file processing.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


ASSETS_DIR = Path(__file__).parent / "assets"


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_WATERMARK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Reference captures (logo rendered over pure black)
    bg_small_path: Path = ASSETS_DIR / "bg_48.png"
    bg_large_path: Path = ASSETS_DIR / "bg_96.png"

    # Logo color as a normalized channel value (1.0 = white)
    logo_value: float = 1.0

    # Skip policy applied on top of the detector's own decision
    use_detection: bool = True
    detection_threshold: float = 0.25

    # Output encoding
    jpeg_quality: int = 100
    png_compression: int = 6
    webp_quality: int = 101  # > 100 selects lossless

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
