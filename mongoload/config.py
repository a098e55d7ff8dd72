"""Environment-driven configuration.

All settings are read from ``MONGOLOAD_*`` environment variables so the same
scripts run unchanged on a laptop, in CI, and in a container:

    MONGOLOAD_MONGO_URI     mongodb://localhost:27017/
    MONGOLOAD_DATABASE      db
    MONGOLOAD_COLLECTION    collection
    MONGOLOAD_LOG_LEVEL     INFO
    MONGOLOAD_LOG_JSON      false
    MONGOLOAD_GRACE_PERIOD  30s
"""

from __future__ import annotations

import os
from typing import Optional

ENV_PREFIX = "MONGOLOAD"

DEFAULT_MONGO_URI = "mongodb://localhost:27017/"
DEFAULT_DATABASE = "db"
DEFAULT_COLLECTION = "collection"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_GRACE_PERIOD = "30s"

_TRUTHY = {"1", "true", "yes", "on"}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(f"{ENV_PREFIX}_{name}")
    if value is None or not value.strip():
        return default
    return value.strip()


class Config:
    """Accessors for runtime settings.

    Test mode forces debug logging so test runs never depend on the caller's
    environment.
    """

    _test_mode: bool = False

    @classmethod
    def mongo_uri(cls) -> str:
        return _env("MONGO_URI", DEFAULT_MONGO_URI)  # type: ignore[return-value]

    @classmethod
    def database(cls) -> str:
        return _env("DATABASE", DEFAULT_DATABASE)  # type: ignore[return-value]

    @classmethod
    def collection(cls) -> str:
        return _env("COLLECTION", DEFAULT_COLLECTION)  # type: ignore[return-value]

    @classmethod
    def log_level(cls) -> str:
        if cls._test_mode:
            return "DEBUG"
        return (_env("LOG_LEVEL", DEFAULT_LOG_LEVEL) or DEFAULT_LOG_LEVEL).upper()

    @classmethod
    def log_json(cls) -> bool:
        return (_env("LOG_JSON", "false") or "false").lower() in _TRUTHY

    @classmethod
    def grace_period(cls) -> str:
        return _env("GRACE_PERIOD", DEFAULT_GRACE_PERIOD)  # type: ignore[return-value]

    @classmethod
    def set_test_mode(cls) -> None:
        cls._test_mode = True

    @classmethod
    def clear_test_mode(cls) -> None:
        cls._test_mode = False

    @classmethod
    def is_test_mode(cls) -> bool:
        return cls._test_mode
