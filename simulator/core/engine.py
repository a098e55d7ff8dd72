from __future__ import annotations

import asyncio
import signal
import time
from concurrent.futures import ThreadPoolExecutor

from mongoload.exceptions import ConfigError
from mongoload.logger import Logger, session_logger

from simulator.core.checks import CheckEvaluator, CheckSink
from simulator.core.metrics import MetricsCollector
from simulator.core.models import RunConfig, RunMetrics
from simulator.core.vu import IterationFunction, VirtualUser


def validate_run_config(config: RunConfig) -> None:
    """Raise ``ConfigError`` for any config a run cannot start with."""
    if config.virtual_users < 1:
        raise ConfigError("virtual_users must be >= 1", virtual_users=config.virtual_users)

    if config.duration_seconds is None and config.iterations is None:
        raise ConfigError("one of duration_seconds or iterations must be provided")

    if config.duration_seconds is not None and config.duration_seconds <= 0:
        raise ConfigError("duration must be > 0", duration_seconds=config.duration_seconds)

    if config.iterations is not None and config.iterations < 1:
        raise ConfigError("iterations must be >= 1", iterations=config.iterations)

    if config.grace_period_seconds < 0:
        raise ConfigError(
            "grace period must be >= 0", grace_period_seconds=config.grace_period_seconds
        )

    if config.iteration_timeout_seconds is not None and config.iteration_timeout_seconds <= 0:
        raise ConfigError(
            "iteration timeout must be > 0",
            iteration_timeout_seconds=config.iteration_timeout_seconds,
        )


class Driver:
    """Runs an iteration function across concurrent virtual users.

    Each VU is an asyncio task. Stop conditions: the configured duration
    elapses (a timer sets the shared stop event), every VU reaches its
    iteration target, or SIGINT/SIGTERM arrives. After a stop, VUs get
    ``grace_period_seconds`` to finish their current iteration; whatever is
    still running afterwards is cancelled and reported as incomplete.

    Per-VU counters stay local to each VirtualUser and are summed once all
    tasks have finished.

    ``run`` returns once the grace period is over, but a blocking iteration
    function that was abandoned keeps its worker thread until the call
    returns. ``concurrent.futures`` joins those threads at interpreter exit,
    so a process running a hung blocking call does not exit before it ends.
    Give such calls their own timeouts (``serverSelectionTimeoutMS``,
    ``socketTimeoutMS``) to bound that wait.

    Without an explicit ``checks`` evaluator the driver only counts check
    outcomes per name. Pass ``CheckEvaluator(CheckSink())`` to keep every
    ``CheckResult`` for ``sink.results()``.
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        logger: Logger | None = None,
        checks: CheckEvaluator | None = None,
        metrics: MetricsCollector | None = None,
        scenario: str | None = None,
        handle_signals: bool = True,
    ) -> None:
        self._config = config
        self._logger = logger or session_logger
        self._checks = checks or CheckEvaluator(CheckSink(keep_results=False), logger=self._logger)
        self._metrics = metrics or MetricsCollector(logger=self._logger)
        self._scenario = scenario
        self._handle_signals = handle_signals
        self._stop_event: asyncio.Event | None = None

    @property
    def config(self) -> RunConfig:
        return self._config

    @property
    def checks(self) -> CheckEvaluator:
        """Evaluator iteration functions should call; feeds the run summary."""
        return self._checks

    def stop(self) -> None:
        """Request a graceful stop of a running run."""
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self, fn: IterationFunction) -> RunMetrics:
        validate_run_config(self._config)
        if not callable(fn):
            raise ConfigError("iteration function must be callable", got=type(fn).__name__)

        config = self._config
        stop_event = asyncio.Event()
        self._stop_event = stop_event

        executor = ThreadPoolExecutor(
            max_workers=config.virtual_users,
            thread_name_prefix="vu",
        )
        vus = [
            VirtualUser(
                vu_id,
                iterations=config.iterations,
                iteration_timeout_seconds=config.iteration_timeout_seconds,
                executor=executor,
                scenario=self._scenario,
                logger=self._logger,
                metrics=self._metrics,
            )
            for vu_id in range(config.virtual_users)
        ]

        self._logger.info(
            "sim.start",
            event="sim.start",
            vus=config.virtual_users,
            duration_seconds=config.duration_seconds,
            iterations=config.iterations,
            grace_period_seconds=config.grace_period_seconds,
            iteration_timeout_seconds=config.iteration_timeout_seconds,
            scenario=self._scenario,
        )

        started = time.monotonic()
        timer: asyncio.Task[None] | None = None
        loop = asyncio.get_running_loop()

        def _handle_signal(signum: int, _frame) -> None:  # pragma: no cover
            self._logger.warning("sim.signal", event="sim.signal", signum=signum)
            loop.call_soon_threadsafe(stop_event.set)

        try:
            with _SignalHandlers(_handle_signal if self._handle_signals else None):
                tasks = [
                    asyncio.create_task(vu.loop(fn, stop_event), name=f"vu-{vu.vu_id}")
                    for vu in vus
                ]
                if config.duration_seconds is not None:
                    timer = asyncio.create_task(_stop_after(stop_event, config.duration_seconds))

                await self._drain(tasks, stop_event)
        finally:
            if timer is not None:
                timer.cancel()
            # Abandoned sync iterations may still hold worker threads.
            executor.shutdown(wait=False, cancel_futures=True)
            self._stop_event = None

        ended = time.monotonic()

        iterations, failed, incomplete = RunMetrics.merge_states([vu.state for vu in vus])
        passed_checks, failed_checks = self._checks.sink.totals()

        result = RunMetrics(
            total_iterations=iterations,
            total_checks_passed=passed_checks,
            total_checks_failed=failed_checks,
            failed_iterations=failed,
            incomplete_iterations=incomplete,
            virtual_users=config.virtual_users,
            started_at_monotonic=started,
            ended_at_monotonic=ended,
            checks=self._checks.sink.summary(),
            metrics_report=await self._metrics.build_report(),
        )

        self._logger.info(
            "sim.end",
            event="sim.end",
            total_iterations=result.total_iterations,
            failed_iterations=result.failed_iterations,
            incomplete_iterations=result.incomplete_iterations,
            checks_passed=result.total_checks_passed,
            checks_failed=result.total_checks_failed,
            duration_seconds=round(result.duration_seconds, 3),
            iterations_per_second=round(result.iterations_per_second, 2),
        )
        return result

    async def _drain(self, tasks: list[asyncio.Task[int]], stop_event: asyncio.Event) -> None:
        stop_waiter = asyncio.create_task(stop_event.wait())
        remaining: set[asyncio.Task] = set(tasks)
        try:
            while remaining and not stop_event.is_set():
                _, pending = await asyncio.wait(
                    remaining | {stop_waiter},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                remaining = {t for t in pending if t is not stop_waiter}
        finally:
            stop_waiter.cancel()

        if remaining:
            grace = self._config.grace_period_seconds
            self._logger.info(
                "sim.draining",
                event="sim.draining",
                in_flight=len(remaining),
                grace_period_seconds=grace,
            )
            if grace > 0:
                _, remaining = await asyncio.wait(remaining, timeout=grace)

            if remaining:
                for task in remaining:
                    task.cancel()
                await asyncio.gather(*remaining, return_exceptions=True)
                self._logger.warning(
                    "sim.grace_period_expired",
                    event="sim.grace_period_expired",
                    abandoned_vus=len(remaining),
                )

        for task in tasks:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                self._logger.error(
                    "sim.vu_crashed",
                    event="sim.vu_crashed",
                    task=task.get_name(),
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                raise exc


async def run(
    config: RunConfig,
    fn: IterationFunction,
    *,
    logger: Logger | None = None,
    checks: CheckEvaluator | None = None,
) -> RunMetrics:
    """Run ``fn`` under ``config`` and return the aggregated metrics."""
    return await Driver(config, logger=logger, checks=checks).run(fn)


async def _stop_after(stop_event: asyncio.Event, duration_seconds: float) -> None:
    await asyncio.sleep(max(0.0, duration_seconds))
    stop_event.set()


class _SignalHandlers:
    """Install SIGINT/SIGTERM handlers for the duration of a run."""

    def __init__(self, handler) -> None:
        self._handler = handler
        self._previous: dict[int, object] = {}

    def __enter__(self):
        if self._handler is None:
            return self
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                self._previous[signum] = signal.signal(signum, self._handler)
            except (ValueError, OSError):
                # Not on the main thread, or the platform forbids it.
                continue
        return self

    def __exit__(self, exc_type, exc, tb):
        for signum, previous in self._previous.items():
            try:
                signal.signal(signum, previous)  # type: ignore[arg-type]
            except (ValueError, OSError):
                continue
        return False
