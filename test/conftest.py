"""Pytest configuration and fixtures

Provides shared fixtures for all tests: config test mode, a quiet logger,
and in-memory stand-ins for the database client.
"""

import sys
import threading
from pathlib import Path

import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from mongoload.config import Config  # noqa: E402
from mongoload.logger import ConsoleLogger  # noqa: E402


SAMPLE_DOCUMENTS = [
    {"name": "John", "address": "1 Main St", "created_at": 3},
    {"name": "John", "address": "2 Side St", "created_at": 2},
    {"name": "John", "address": "3 Back St", "created_at": 1},
]


class FakeDatabaseClient:
    """Thread-safe in-memory client returning fixed documents."""

    def __init__(self, documents=None, *, fail_every: int | None = None):
        self.documents = list(SAMPLE_DOCUMENTS if documents is None else documents)
        self.fail_every = fail_every
        self.pipelines: list[list[dict]] = []
        self.closed = False
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        with self._lock:
            return len(self.pipelines)

    def aggregate(self, pipeline):
        with self._lock:
            self.pipelines.append(list(pipeline))
            call_number = len(self.pipelines)
        if self.fail_every and call_number % self.fail_every == 0:
            raise RuntimeError(f"aggregate failed on call {call_number}")
        return list(self.documents)

    def ping(self):
        return None

    def close(self):
        self.closed = True


@pytest.fixture(scope="function", autouse=True)
def test_mode():
    """Run every test in config test mode (debug logging, no env leakage)."""
    Config.set_test_mode()

    yield

    Config.clear_test_mode()


@pytest.fixture
def quiet_logger():
    """Logger that drops everything below ERROR."""
    import logging

    return ConsoleLogger(name="mongoload.test", level=logging.ERROR)


@pytest.fixture
def fake_client():
    return FakeDatabaseClient()


@pytest.fixture
def make_client():
    """Factory for FakeDatabaseClient with custom documents or failure cadence."""
    return FakeDatabaseClient
