"""
Logging Setup

Rich console logging for applications embedding the watermark engine.
"""

import logging
from typing import Optional

from rich.logging import RichHandler

from .config import get_settings


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure root logging with a RichHandler.

    Args:
        level: Log level name. Defaults to the configured ``log_level``.

    Returns:
        The package logger
    """
    if level is None:
        level = get_settings().log_level

    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True)],
        force=True,
    )
    return logging.getLogger("gemini_watermark")
