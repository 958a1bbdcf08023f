"""Centralized logging configuration for Vocal Range.

This module provides a consistent way to configure logging across the application.
"""

import logging
import sys
from typing import Optional

# Log levels for different modules
MODULE_LOG_LEVELS = {
    # Core modules
    "vocal_range": logging.INFO,
    "vocal_range.session": logging.INFO,
    "vocal_range.advisor": logging.INFO,
    "vocal_range.services.gemini_advisor": logging.INFO,
    # Per-frame modules, very chatty at DEBUG
    "vocal_range.services.pitch": logging.INFO,
    "vocal_range.note_utils": logging.INFO,
    "vocal_range.services.audio_providers": logging.INFO,
    "vocal_range.core": logging.WARNING,
    "vocal_range.cli": logging.WARNING,
    "vocal_range.logger": logging.WARNING,  # Logger module itself should be quiet
    # Libraries/third-party
    "sounddevice": logging.ERROR,
    "httpx": logging.WARNING,
    # Root logger
    "": logging.ERROR,
}

# Shared console handler
_console_handler: Optional[logging.Handler] = None


def setup_logging(level: Optional[str] = None) -> None:
    """Set up logging configuration for the application.

    Args:
        level: If provided, override all 'vocal_range' log levels with this level (e.g., "DEBUG").
    """
    global _console_handler

    # Create a single, shared console handler if it doesn't exist
    if _console_handler is None:
        _console_handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        _console_handler.setFormatter(formatter)
    elif _console_handler.stream is not sys.stdout:
        _console_handler.setStream(sys.stdout)

    # Determine log levels
    log_levels = MODULE_LOG_LEVELS.copy()
    if level:
        numeric_level = logging.getLevelName(level.upper())
        if isinstance(numeric_level, int):
            for module_name in log_levels:
                if module_name.startswith("vocal_range"):
                    log_levels[module_name] = numeric_level
        else:
            logging.getLogger(__name__).error(f"Invalid log level: {level}")

    # Apply module-specific levels
    for module_name, module_level in log_levels.items():
        logger = logging.getLogger(module_name if module_name else "")
        logger.setLevel(module_level)

        # Clear existing handlers and add the shared one
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        logger.addHandler(_console_handler)
        logger.propagate = False

    logging.getLogger("vocal_range").info("Logging configuration complete")
