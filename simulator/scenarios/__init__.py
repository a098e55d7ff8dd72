"""Pre-built load scenarios."""

from __future__ import annotations

__all__ = ["build_aggregate_config", "build_aggregate_iteration", "run_aggregate_scenario"]

from simulator.scenarios.aggregate import (
    build_aggregate_config,
    build_aggregate_iteration,
    run_aggregate_scenario,
)
