"""Aggregate scenario: one aggregation pipeline per iteration.

Each virtual user runs the pipeline against the configured collection and
checks that at least one document came back. The default pipeline selects
documents by name, projects a few fields and sorts newest first.

Usage from CLI::

    python -m simulator.run --scenario aggregate --vus 10 --duration 5m \\
        --mongo-uri mongodb://localhost:27017/ --database db --collection collection

Usage as library::

    from simulator.scenarios.aggregate import run_aggregate_scenario

    metrics = await run_aggregate_scenario(client=client, vus=10, duration_seconds=300)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from mongoload.db import DatabaseClient, Pipeline
from mongoload.exceptions import ConfigError
from mongoload.logger import Logger, session_logger

from simulator.core.checks import CheckEvaluator
from simulator.core.engine import Driver
from simulator.core.models import DEFAULT_GRACE_PERIOD_SECONDS, RunConfig, RunMetrics
from simulator.core.script import ScriptContext
from simulator.core.vu import IterationFunction

SCENARIO_NAME = "aggregate"

HAS_RESULT_CHECK = "Has result"


def default_pipeline() -> list[dict[str, Any]]:
    return [
        {"$match": {"name": "John"}},
        {"$project": {"name": 1, "address": 1, "created_at": 1}},
        {"$sort": {"created_at": -1}},
    ]


def load_pipeline_file(path: str) -> list[dict[str, Any]]:
    """Read a pipeline from a JSON file containing a list of stage objects."""
    pipeline_path = Path(path)
    try:
        data = json.loads(pipeline_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError("pipeline file not found", path=path) from exc
    except json.JSONDecodeError as exc:
        raise ConfigError("pipeline file is not valid JSON", path=path, error=str(exc)) from exc

    if not isinstance(data, list) or not data:
        raise ConfigError("pipeline file must contain a non-empty JSON array", path=path)

    for index, stage in enumerate(data):
        if not isinstance(stage, dict) or len(stage) != 1:
            raise ConfigError(
                "each pipeline stage must be an object with exactly one operator",
                path=path,
                stage_index=index,
            )
    return data


def build_aggregate_iteration(
    client: DatabaseClient,
    checks: CheckEvaluator,
    *,
    pipeline: Pipeline | None = None,
    logger: Logger | None = None,
) -> IterationFunction:
    """Build the iteration function: aggregate, log, check non-empty."""
    stages = list(pipeline) if pipeline is not None else default_pipeline()
    log = logger or session_logger

    def iteration() -> list[dict[str, Any]]:
        result = client.aggregate(stages)
        log.debug("sim.aggregate_result", event="sim.aggregate_result", documents=len(result), result=result)
        checks.check(result, {HAS_RESULT_CHECK: lambda r: len(r) > 0})
        return result

    return iteration


def setup(ctx: ScriptContext) -> IterationFunction:
    """Script entry point, so ``--script simulator.scenarios.aggregate`` works too."""
    if ctx.client is None:
        raise ConfigError("aggregate scenario requires a database client")
    return build_aggregate_iteration(ctx.client, ctx.checks, logger=ctx.logger)


def build_aggregate_config(
    *,
    vus: int = 10,
    duration_seconds: float | None = 300.0,
    iterations: int | None = None,
    grace_period_seconds: float = DEFAULT_GRACE_PERIOD_SECONDS,
    iteration_timeout_seconds: float | None = None,
) -> RunConfig:
    """Build a ``RunConfig`` with the scenario's defaults (10 VUs for 5 minutes)."""
    return RunConfig(
        virtual_users=vus,
        duration_seconds=duration_seconds,
        iterations=iterations,
        grace_period_seconds=grace_period_seconds,
        iteration_timeout_seconds=iteration_timeout_seconds,
    )


async def run_aggregate_scenario(
    *,
    client: DatabaseClient,
    vus: int = 10,
    duration_seconds: float | None = 300.0,
    iterations: int | None = None,
    pipeline: Pipeline | None = None,
    grace_period_seconds: float = DEFAULT_GRACE_PERIOD_SECONDS,
    logger: Logger | None = None,
) -> RunMetrics:
    """Run the aggregate scenario and return the run metrics.

    This is the programmatic entry point used by integration tests.
    """
    config = build_aggregate_config(
        vus=vus,
        duration_seconds=duration_seconds,
        iterations=iterations,
        grace_period_seconds=grace_period_seconds,
    )
    driver = Driver(config, logger=logger, scenario=SCENARIO_NAME)
    fn = build_aggregate_iteration(client, driver.checks, pipeline=pipeline, logger=logger)
    return await driver.run(fn)
