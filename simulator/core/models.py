from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_GRACE_PERIOD_SECONDS = 30.0


@dataclass(frozen=True)
class RunConfig:
    """Immutable description of one load run.

    At least one stop condition is required. With both set, ``duration_seconds``
    caps the run and ``iterations`` is the per-VU target; whichever is hit first
    stops a virtual user.
    """

    virtual_users: int
    duration_seconds: float | None = None
    iterations: int | None = None
    grace_period_seconds: float = DEFAULT_GRACE_PERIOD_SECONDS
    iteration_timeout_seconds: float | None = None


@dataclass
class VirtualUserState:
    """Per-VU counters, mutated only by the owning VirtualUser."""

    vu_id: int
    iteration_count: int = 0
    failed_iterations: int = 0
    running: bool = False
    abandoned: bool = False


@dataclass(frozen=True)
class CheckResult:
    name: str
    passed: bool
    timestamp: float
    error: str | None = None


@dataclass(frozen=True)
class CheckSummary:
    name: str
    passed: int
    failed: int

    @property
    def total(self) -> int:
        return self.passed + self.failed

    @property
    def pass_rate_pct(self) -> float:
        return round(self.passed / self.total * 100, 2) if self.total else 0.0


@dataclass
class RunMetrics:
    total_iterations: int
    total_checks_passed: int
    total_checks_failed: int
    failed_iterations: int = 0
    incomplete_iterations: int = 0
    virtual_users: int = 0
    started_at_monotonic: float = 0.0
    ended_at_monotonic: float = 0.0
    checks: dict[str, CheckSummary] = field(default_factory=dict)
    metrics_report: dict[str, Any] | None = None

    @property
    def duration_seconds(self) -> float:
        return max(0.0, self.ended_at_monotonic - self.started_at_monotonic)

    @property
    def iterations_per_second(self) -> float:
        duration = self.duration_seconds
        return (self.total_iterations / duration) if duration > 0 else 0.0

    @property
    def total_checks(self) -> int:
        return self.total_checks_passed + self.total_checks_failed

    @classmethod
    def merge_states(cls, states: list[VirtualUserState]) -> tuple[int, int, int]:
        """Sum per-VU counters into (iterations, failed, incomplete)."""
        iterations = sum(s.iteration_count for s in states)
        failed = sum(s.failed_iterations for s in states)
        incomplete = sum(1 for s in states if s.abandoned)
        return iterations, failed, incomplete
