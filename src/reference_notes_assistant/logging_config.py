"""
Logging configuration for the assistant.

Library modules only call ``logging.getLogger(__name__)``; handlers are
attached here, once, by the CLI.
"""

from __future__ import annotations

import logging

from rich.logging import RichHandler

PACKAGE_LOGGER = "reference_notes_assistant"


def configure_logging(level: str | int = logging.WARNING) -> logging.Logger:
    """Attach a rich handler to the package logger and set its level."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


def enable_debug_mode() -> logging.Logger:
    """Verbose logging for the package and its HTTP clients."""
    logger = configure_logging(logging.DEBUG)
    for name in ("httpx", "openai"):
        logging.getLogger(name).setLevel(logging.DEBUG)
    return logger


__all__ = ["configure_logging", "enable_debug_mode"]
