"""Harness-specific exceptions.

Only ``ConfigError`` is fatal: it is raised before any virtual user starts.
``IterationError`` is created per failed iteration, logged and counted, and
never escapes the virtual user that produced it.
"""

from __future__ import annotations

from typing import Optional

from .base import ConfigurationError, LoadSimError


class ConfigError(ConfigurationError):
    """Invalid run configuration or unloadable script."""

    def __init__(self, message: str, **details):
        super().__init__("CONFIG_ERROR", message, details=details or None)


class IterationError(LoadSimError):
    """One iteration of the user function failed."""

    def __init__(
        self,
        message: str,
        *,
        vu_id: int,
        iteration: int,
        error_type: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            "ITERATION_ERROR",
            message,
            details={"vu_id": vu_id, "iteration": iteration, "error_type": error_type},
        )
        self.vu_id = vu_id
        self.iteration = iteration
        self.error_type = error_type
        self.cause = cause

    @classmethod
    def from_exception(cls, exc: BaseException, *, vu_id: int, iteration: int) -> "IterationError":
        return cls(
            str(exc) or type(exc).__name__,
            vu_id=vu_id,
            iteration=iteration,
            error_type=type(exc).__name__,
            cause=exc,
        )
