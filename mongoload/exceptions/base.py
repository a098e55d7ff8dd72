"""Base exception hierarchy for mongo-loadsim.

Every error carries a machine-readable ``code``, a human-readable
``message`` and an optional ``details`` dict so it can be logged as
structured fields without string parsing.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LoadSimError(Exception):
    """Base exception for all mongo-loadsim errors."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.code}: {self.message} (details: {self.details})"
        return f"{self.code}: {self.message}"

    def to_log_fields(self) -> Dict[str, Any]:
        return {"error_code": self.code, "error": self.message, **self.details}


class ValidationError(LoadSimError):
    """Raised when input data fails validation."""

    pass


class ConfigurationError(LoadSimError):
    """Raised when configuration is invalid or missing."""

    pass


class DatabaseError(LoadSimError):
    """Raised when the database collaborator fails an operation."""

    pass
