"""Named boolean checks, as load scripts use them::

    checks.check(result, {"Has result": lambda r: len(r) > 0})

Every predicate runs, even after an earlier one fails, so the summary shows
all failing checks rather than only the first. Failures are data, not
exceptions.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Mapping, TypeVar

from mongoload.logger import Logger, session_logger

from simulator.core.models import CheckResult, CheckSummary

T = TypeVar("T")

Predicate = Callable[[Any], Any]


class CheckSink:
    """Append-only store of CheckResults shared by all virtual users.

    Synchronous iteration functions run on worker threads, so appends are
    guarded by a ``threading.Lock`` rather than an asyncio lock.
    """

    def __init__(self, *, keep_results: bool = True) -> None:
        self._lock = threading.Lock()
        self._keep_results = keep_results
        self._results: list[CheckResult] = []
        self._passed: dict[str, int] = {}
        self._failed: dict[str, int] = {}

    def append(self, result: CheckResult) -> None:
        with self._lock:
            if self._keep_results:
                self._results.append(result)
            counts = self._passed if result.passed else self._failed
            counts[result.name] = counts.get(result.name, 0) + 1
            # Keep both maps keyed by every name seen.
            other = self._failed if result.passed else self._passed
            other.setdefault(result.name, 0)

    def results(self) -> list[CheckResult]:
        with self._lock:
            return list(self._results)

    def totals(self) -> tuple[int, int]:
        with self._lock:
            return sum(self._passed.values()), sum(self._failed.values())

    def summary(self) -> dict[str, CheckSummary]:
        with self._lock:
            return {
                name: CheckSummary(name=name, passed=self._passed[name], failed=self._failed[name])
                for name in self._passed
            }


class CheckEvaluator:
    def __init__(self, sink: CheckSink | None = None, *, logger: Logger | None = None) -> None:
        self._sink = sink if sink is not None else CheckSink()
        self._logger = logger or session_logger

    @property
    def sink(self) -> CheckSink:
        return self._sink

    def evaluate(self, value: T, assertions: Mapping[str, Callable[[T], Any]]) -> list[CheckResult]:
        """Evaluate all assertions and return their results without recording them."""
        results: list[CheckResult] = []
        for name, predicate in assertions.items():
            error: str | None = None
            try:
                passed = bool(predicate(value))
            except Exception as exc:
                passed = False
                error = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
            results.append(CheckResult(name=name, passed=passed, timestamp=time.time(), error=error))
        return results

    def check(self, value: T, assertions: Mapping[str, Callable[[T], Any]]) -> bool:
        """Run every assertion against ``value``; True iff all pass."""
        results = self.evaluate(value, assertions)
        for result in results:
            self._sink.append(result)
            if not result.passed:
                self._logger.debug(
                    "sim.check_failed",
                    event="sim.check_failed",
                    check=result.name,
                    error=result.error,
                )
        return all(r.passed for r in results)

    __call__ = check
