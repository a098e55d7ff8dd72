from __future__ import annotations

from typing import Any

from simulator.core.models import RunConfig, RunMetrics
from simulator.core.timeparse import format_seconds


def build_run_report(config: RunConfig, metrics: RunMetrics) -> dict[str, Any]:
    config_payload = {
        "virtual_users": config.virtual_users,
        "duration_seconds": config.duration_seconds,
        "iterations": config.iterations,
        "grace_period_seconds": config.grace_period_seconds,
        "iteration_timeout_seconds": config.iteration_timeout_seconds,
    }
    return {
        "config": config_payload,
        "result": {
            "total_iterations": metrics.total_iterations,
            "failed_iterations": metrics.failed_iterations,
            "incomplete_iterations": metrics.incomplete_iterations,
            "total_checks_passed": metrics.total_checks_passed,
            "total_checks_failed": metrics.total_checks_failed,
            "duration_seconds": metrics.duration_seconds,
            "iterations_per_second": metrics.iterations_per_second,
        },
        "checks": {
            name: {
                "passed": summary.passed,
                "failed": summary.failed,
                "pass_rate_pct": summary.pass_rate_pct,
            }
            for name, summary in metrics.checks.items()
        },
        "metrics": metrics.metrics_report,
    }


def _fmt_ms(value: float | None) -> str:
    return "-" if value is None else f"{value:.2f}ms"


def format_summary(metrics: RunMetrics) -> str:
    """End-of-run text summary, one fact per line."""
    lines = [
        f"vus.................: {metrics.virtual_users}",
        f"duration............: {format_seconds(metrics.duration_seconds)}",
        f"iterations..........: {metrics.total_iterations} "
        f"({metrics.iterations_per_second:.2f}/s)",
        f"iterations_failed...: {metrics.failed_iterations}",
        f"iterations_incomplete: {metrics.incomplete_iterations}",
        f"checks..............: {metrics.total_checks_passed} passed, "
        f"{metrics.total_checks_failed} failed",
    ]

    for name, summary in sorted(metrics.checks.items()):
        mark = "ok" if summary.failed == 0 else "FAIL"
        lines.append(
            f"  [{mark}] {name}: {summary.passed}/{summary.total} ({summary.pass_rate_pct}%)"
        )

    overall = (metrics.metrics_report or {}).get("by_operation", {}).get("iteration")
    if overall:
        lines.append(
            "iteration_duration..: "
            f"avg={_fmt_ms(overall['mean_ms'])} min={_fmt_ms(overall['min_ms'])} "
            f"p50={_fmt_ms(overall['p50_ms'])} p90={_fmt_ms(overall['p90_ms'])} "
            f"p95={_fmt_ms(overall['p95_ms'])} max={_fmt_ms(overall['max_ms'])}"
        )
    return "\n".join(lines)
