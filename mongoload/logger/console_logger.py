from __future__ import annotations

import logging
import sys
from typing import Any

from .base import Logger


class LiveStreamHandler(logging.StreamHandler):
    """StreamHandler that resolves ``sys.stdout``/``sys.stderr`` at emit time.

    pytest's ``capsys`` swaps the process streams per test, so binding the
    stream once at construction would write into a closed buffer.
    """

    def __init__(self, stream_name: str = "stderr") -> None:
        self._stream_name = stream_name
        super().__init__()

    @property  # type: ignore[override]
    def stream(self):
        return getattr(sys, self._stream_name)

    @stream.setter
    def stream(self, _value) -> None:
        pass


def _format_fields(fields: dict[str, Any]) -> str:
    parts = []
    for key, value in fields.items():
        if value is None:
            continue
        text = str(value)
        if " " in text:
            text = repr(text)
        parts.append(f"{key}={text}")
    return " ".join(parts)


class ConsoleLogger(Logger):
    """Human-readable logger writing ``message key=value ...`` lines to stderr."""

    def __init__(self, name: str = "mongoload", level: int = logging.INFO) -> None:
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level)
        self._logger.propagate = False
        if not self._logger.handlers:
            handler = LiveStreamHandler("stderr")
            handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)-7s %(message)s")
            )
            self._logger.addHandler(handler)

    @property
    def level(self) -> int:
        return self._logger.level

    def set_level(self, level: int) -> None:
        self._logger.setLevel(level)

    def _log(self, level: int, message: str, kwargs: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        # "event" duplicates the message in most call sites.
        fields = {k: v for k, v in kwargs.items() if not (k == "event" and v == message)}
        rendered = _format_fields(fields)
        self._logger.log(level, f"{message} {rendered}" if rendered else message)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs: Any) -> None:
        self._log(logging.CRITICAL, message, kwargs)
