"""Logger module for mongo-loadsim

Usage:
    from mongoload.logger import Logger, session_logger

    session_logger.info("sim.start", event="sim.start", vus=10)

    # Or implement your own
    class MyCustomLogger(Logger):
        def info(self, message: str, **kwargs):
            # Your custom implementation
            pass
"""

import logging

from mongoload.config import Config

from .base import Logger
from .console_logger import ConsoleLogger
from .structured_logger import StructuredLogger


def build_logger(*, json_format: bool | None = None, level: str | None = None) -> Logger:
    """Build a logger from ``Config`` unless overridden."""
    resolved_level = logging.getLevelName((level or Config.log_level()).upper())
    if not isinstance(resolved_level, int):
        resolved_level = logging.INFO
    if json_format is None:
        json_format = Config.log_json()
    if json_format:
        return StructuredLogger(level=resolved_level, json_format=True)
    return ConsoleLogger(level=resolved_level)


# Shared logger instance for modules that just need basic console logging
session_logger: Logger = build_logger()

__all__ = [
    "Logger",
    "ConsoleLogger",
    "StructuredLogger",
    "build_logger",
    "session_logger",
]
