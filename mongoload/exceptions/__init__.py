"""Exception classes for mongo-loadsim."""

from .base import ConfigurationError, DatabaseError, LoadSimError, ValidationError
from .harness import ConfigError, IterationError

__all__ = [
    "LoadSimError",
    "ValidationError",
    "ConfigurationError",
    "DatabaseError",
    "ConfigError",
    "IterationError",
]
