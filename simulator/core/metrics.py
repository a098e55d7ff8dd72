from __future__ import annotations

import asyncio
import math
import random
from dataclasses import dataclass, field
from typing import Any

from mongoload.logger import Logger, session_logger


def _percentile(sorted_values: list[float], p: float) -> float | None:
    """Linear-interpolated percentile of an ascending list."""

    if not sorted_values:
        return None

    if p <= 0:
        return float(sorted_values[0])
    if p >= 1:
        return float(sorted_values[-1])

    k = (len(sorted_values) - 1) * p
    f = int(math.floor(k))
    c = int(math.ceil(k))
    if f == c:
        return float(sorted_values[f])
    return float(sorted_values[f] * (c - k) + sorted_values[c] * (k - f))


class _ReservoirSampler:
    """Fixed-size uniform sample of an unbounded stream (Algorithm R).

    Long runs record millions of iterations; only ``max_size`` latencies are
    ever held in memory.
    """

    def __init__(self, max_size: int, *, seed: int | None = None) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be > 0")
        self._max_size = max_size
        self._rng = random.Random(seed)
        self._seen = 0
        self._values: list[float] = []

    def add(self, value: float) -> None:
        self._seen += 1
        if len(self._values) < self._max_size:
            self._values.append(value)
            return

        idx = self._rng.randrange(self._seen)
        if idx < self._max_size:
            self._values[idx] = value

    def values(self) -> list[float]:
        return list(self._values)


@dataclass
class _LatencyAgg:
    count: int = 0
    error_count: int = 0
    sum_ms: float = 0.0
    min_ms: float | None = None
    max_ms: float | None = None
    error_types: dict[str, int] = field(default_factory=dict)

    def observe(self, duration_ms: float, success: bool, error_type: str | None) -> None:
        self.count += 1
        if not success:
            self.error_count += 1
            key = error_type or "unknown"
            self.error_types[key] = self.error_types.get(key, 0) + 1
        self.sum_ms += duration_ms
        if self.min_ms is None or duration_ms < self.min_ms:
            self.min_ms = duration_ms
        if self.max_ms is None or duration_ms > self.max_ms:
            self.max_ms = duration_ms


class _Series:
    def __init__(self, sample_size: int) -> None:
        self.agg = _LatencyAgg()
        self.sample = _ReservoirSampler(sample_size)

    def observe(self, duration_ms: float, success: bool, error_type: str | None) -> None:
        self.agg.observe(duration_ms, success, error_type)
        self.sample.add(duration_ms)

    def report(self) -> dict[str, Any]:
        agg = self.agg
        values = sorted(self.sample.values())
        mean = (agg.sum_ms / agg.count) if agg.count else None
        error_rate = (agg.error_count / agg.count * 100) if agg.count else 0.0
        return {
            "count": agg.count,
            "error_count": agg.error_count,
            "error_rate_pct": round(error_rate, 2),
            "error_types": dict(agg.error_types),
            "min_ms": agg.min_ms,
            "max_ms": agg.max_ms,
            "mean_ms": mean,
            "p50_ms": _percentile(values, 0.50),
            "p90_ms": _percentile(values, 0.90),
            "p95_ms": _percentile(values, 0.95),
            "p99_ms": _percentile(values, 0.99),
            "sample_size": len(values),
        }


class MetricsCollector:
    """Latency and error metrics per operation and per operation+scenario."""

    def __init__(
        self,
        *,
        sample_size: int = 5000,
        logger: Logger | None = None,
    ) -> None:
        if sample_size <= 0:
            raise ValueError("sample_size must be > 0")
        self._logger = logger or session_logger
        self._lock = asyncio.Lock()
        self._sample_size = sample_size

        self._overall = _Series(sample_size)
        self._by_operation: dict[str, _Series] = {}
        # Key: (operation, scenario)
        self._by_operation_scenario: dict[tuple[str, str], _Series] = {}

    async def record(
        self,
        *,
        operation: str,
        duration_ms: float,
        success: bool,
        scenario: str | None = None,
        error_type: str | None = None,
    ) -> None:
        """Record one timed operation."""

        duration_ms = max(0.0, float(duration_ms))
        scenario_name = scenario or "default"

        async with self._lock:
            self._overall.observe(duration_ms, success, error_type)

            series = self._by_operation.get(operation)
            if series is None:
                series = self._by_operation[operation] = _Series(self._sample_size)
            series.observe(duration_ms, success, error_type)

            key = (operation, scenario_name)
            scoped = self._by_operation_scenario.get(key)
            if scoped is None:
                scoped = self._by_operation_scenario[key] = _Series(self._sample_size)
            scoped.observe(duration_ms, success, error_type)

        if not success and error_type:
            self._logger.debug(
                "sim.metric_error_recorded",
                event="sim.metric_error_recorded",
                operation=operation,
                scenario=scenario_name,
                error_type=error_type,
            )

    async def build_report(self) -> dict[str, Any]:
        async with self._lock:
            return {
                "overall": self._overall.report(),
                "by_operation": {name: s.report() for name, s in self._by_operation.items()},
                "by_operation_scenario": {
                    f"{operation}::{scenario}": s.report()
                    for (operation, scenario), s in self._by_operation_scenario.items()
                },
            }
