from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from mongoload.config import Config
from mongoload.db import MongoDatabaseClient
from mongoload.exceptions import ConfigError, DatabaseError
from mongoload.logger import Logger, build_logger, session_logger

from simulator.api.report import build_run_report, format_summary
from simulator.core.engine import Driver, validate_run_config
from simulator.core.models import RunConfig
from simulator.core.script import ScriptContext, build_iteration, load_script
from simulator.core.timeparse import parse_duration_to_seconds
from simulator.scenarios import aggregate

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="mongo-loadsim virtual-user load driver")
    parser.add_argument(
        "--vus",
        type=int,
        default=1,
        help="Number of concurrent virtual users",
    )
    parser.add_argument(
        "--duration",
        type=str,
        default=None,
        help="Run duration (e.g. 30s, 5m, 1m30s). Optional if --iterations is set.",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=None,
        help="Iterations per virtual user. Optional if --duration is set.",
    )
    parser.add_argument(
        "--grace-period",
        type=str,
        default=Config.grace_period(),
        help="Time in-flight iterations get to finish after the run stops (default 30s)",
    )
    parser.add_argument(
        "--iteration-timeout",
        type=str,
        default=None,
        help="Fail any single iteration that runs longer than this",
    )
    parser.add_argument(
        "--script",
        type=str,
        default=None,
        help="Script setup reference: package.module[:setup] or path/to/file.py[:setup]",
    )
    parser.add_argument(
        "--scenario",
        type=str,
        choices=[aggregate.SCENARIO_NAME],
        default=aggregate.SCENARIO_NAME,
        help="Built-in scenario used when --script is not given",
    )
    parser.add_argument(
        "--mongo-uri",
        type=str,
        default=Config.mongo_uri(),
        help="MongoDB connection string (env MONGOLOAD_MONGO_URI)",
    )
    parser.add_argument(
        "--database",
        type=str,
        default=Config.database(),
        help="Database name (env MONGOLOAD_DATABASE)",
    )
    parser.add_argument(
        "--collection",
        type=str,
        default=Config.collection(),
        help="Collection name (env MONGOLOAD_COLLECTION)",
    )
    parser.add_argument(
        "--pipeline-file",
        type=str,
        default=None,
        help="JSON file with the aggregation pipeline for the aggregate scenario",
    )
    parser.add_argument(
        "--ping",
        action="store_true",
        help="Ping the database before starting and abort if it is unreachable",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write summary report JSON to this path",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        default=Config.log_json(),
        help="Emit JSON log lines on stdout (env MONGOLOAD_LOG_JSON)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Do not print the end-of-run summary",
    )
    return parser


def _parse_optional_duration(raw: str | None, *, flag: str, logger: Logger) -> float | None:
    if raw is None:
        return None
    try:
        return parse_duration_to_seconds(raw)
    except ValueError as exc:
        logger.error(
            "sim.invalid_duration",
            event="sim.invalid_duration",
            flag=flag,
            provided=raw,
            error=str(exc),
        )
        raise


def _build_config(args, logger: Logger) -> RunConfig:
    duration_seconds = _parse_optional_duration(args.duration, flag="--duration", logger=logger)
    grace_seconds = _parse_optional_duration(args.grace_period, flag="--grace-period", logger=logger)
    timeout_seconds = _parse_optional_duration(
        args.iteration_timeout, flag="--iteration-timeout", logger=logger
    )

    config = RunConfig(
        virtual_users=args.vus,
        duration_seconds=duration_seconds,
        iterations=args.iterations,
        grace_period_seconds=grace_seconds if grace_seconds is not None else 0.0,
        iteration_timeout_seconds=timeout_seconds,
    )
    validate_run_config(config)
    return config


def _write_report(path: str, payload: dict, logger: Logger) -> None:
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(payload, indent=2, sort_keys=True, default=str), encoding="utf-8")
    logger.info("sim.report_written", event="sim.report_written", path=str(output_path))


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logger = build_logger(json_format=True) if args.log_json else session_logger

    try:
        config = _build_config(args, logger)
    except ValueError:
        return EXIT_CONFIG
    except ConfigError as exc:
        logger.error(
            "sim.invalid_config",
            event="sim.invalid_config",
            recovery="Provide --vus >= 1 and --duration > 0 or --iterations >= 1",
            **exc.to_log_fields(),
        )
        return EXIT_CONFIG

    try:
        client = MongoDatabaseClient.connect(
            args.mongo_uri,
            args.database,
            args.collection,
            logger=logger,
        )
    except DatabaseError as exc:
        logger.error("sim.invalid_mongo_uri", event="sim.invalid_mongo_uri", **exc.to_log_fields())
        return EXIT_CONFIG

    try:
        if args.ping:
            try:
                client.ping()
            except DatabaseError as exc:
                logger.error(
                    "sim.database_unreachable",
                    event="sim.database_unreachable",
                    recovery="Check --mongo-uri and that the server is running",
                    **exc.to_log_fields(),
                )
                return EXIT_FATAL

        scenario_name = None if args.script else args.scenario
        driver = Driver(config, logger=logger, scenario=scenario_name or "script")
        context = ScriptContext(checks=driver.checks, logger=logger, config=config, client=client)

        try:
            if args.script:
                fn = build_iteration(load_script(args.script), context)
            else:
                pipeline = aggregate.load_pipeline_file(args.pipeline_file) if args.pipeline_file else None
                fn = aggregate.build_aggregate_iteration(
                    client, driver.checks, pipeline=pipeline, logger=logger
                )
            metrics = asyncio.run(driver.run(fn))
        except ConfigError as exc:
            logger.error("sim.invalid_config", event="sim.invalid_config", **exc.to_log_fields())
            return EXIT_CONFIG
        except Exception as exc:
            logger.critical(
                "sim.fatal",
                event="sim.fatal",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return EXIT_FATAL
    finally:
        client.close()

    logger.info(
        "sim.summary",
        event="sim.summary",
        total_iterations=metrics.total_iterations,
        checks_passed=metrics.total_checks_passed,
        checks_failed=metrics.total_checks_failed,
    )

    if args.output:
        _write_report(args.output, build_run_report(config, metrics), logger)

    if not args.quiet:
        print(format_summary(metrics))

    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
