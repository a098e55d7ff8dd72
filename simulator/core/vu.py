from __future__ import annotations

import asyncio
import inspect
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Awaitable, Callable, Union

from mongoload.exceptions import IterationError
from mongoload.logger import Logger, session_logger

from simulator.core.metrics import MetricsCollector
from simulator.core.models import VirtualUserState

IterationFunction = Callable[[], Union[Any, Awaitable[Any]]]

ITERATION_OPERATION = "iteration"


class _IterationTimedOut(Exception):
    """The per-iteration timeout fired before the iteration finished."""


class VirtualUser:
    """One simulated client: calls the iteration function in a loop.

    Coroutine functions are awaited on the event loop. Plain callables run on
    ``executor`` (a worker thread) so blocking driver calls do not stall the
    other virtual users.

    The stop event is only consulted between iterations. Cancellation of the
    task (the driver's grace period ran out) abandons the in-flight iteration;
    it is neither counted nor recorded.

    A plain callable that times out keeps its worker thread busy. The VU then
    moves to a fresh single-worker executor of its own so later iterations
    do not queue behind the stuck call.
    """

    def __init__(
        self,
        vu_id: int,
        *,
        iterations: int | None = None,
        iteration_timeout_seconds: float | None = None,
        executor: Executor | None = None,
        scenario: str | None = None,
        logger: Logger | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._state = VirtualUserState(vu_id=vu_id)
        self._iterations = iterations
        self._timeout = iteration_timeout_seconds
        self._executor = executor
        self._scenario = scenario
        self._logger = logger or session_logger
        self._metrics = metrics
        self._spare_executors: list[ThreadPoolExecutor] = []

    @property
    def vu_id(self) -> int:
        return self._state.vu_id

    @property
    def state(self) -> VirtualUserState:
        return self._state

    async def loop(self, fn: IterationFunction, stop_event: asyncio.Event) -> int:
        """Run iterations until stopped; returns the completed iteration count.

        The first iteration always runs, so every VU contributes at least one
        iteration to a run regardless of how early the stop arrives.
        """
        state = self._state
        state.running = True
        self._logger.debug("sim.vu_start", event="sim.vu_start", vu_id=state.vu_id)
        try:
            while True:
                await self._run_iteration(fn)
                if stop_event.is_set():
                    break
                if self._iterations is not None and state.iteration_count >= self._iterations:
                    break
        except asyncio.CancelledError:
            state.abandoned = True
            self._logger.warning(
                "sim.vu_abandoned",
                event="sim.vu_abandoned",
                vu_id=state.vu_id,
                completed_iterations=state.iteration_count,
            )
            raise
        finally:
            state.running = False
            for spare in self._spare_executors:
                spare.shutdown(wait=False)

        self._logger.debug(
            "sim.vu_stop",
            event="sim.vu_stop",
            vu_id=state.vu_id,
            iterations=state.iteration_count,
            failed_iterations=state.failed_iterations,
        )
        return state.iteration_count

    async def _run_iteration(self, fn: IterationFunction) -> None:
        state = self._state
        iteration = state.iteration_count
        error: IterationError | None = None
        start = time.monotonic()

        try:
            result = await self._invoke(fn)
            if isinstance(result, BaseException):
                # Clients that report errors as return values.
                error = IterationError.from_exception(result, vu_id=state.vu_id, iteration=iteration)
        except _IterationTimedOut:
            error = IterationError(
                f"iteration exceeded {self._timeout}s",
                vu_id=state.vu_id,
                iteration=iteration,
                error_type="timeout",
            )
        except Exception as exc:
            error = IterationError.from_exception(exc, vu_id=state.vu_id, iteration=iteration)

        duration_ms = (time.monotonic() - start) * 1000
        state.iteration_count += 1

        if error is not None:
            state.failed_iterations += 1
            self._logger.warning(
                "sim.iteration_error",
                event="sim.iteration_error",
                duration_ms=round(duration_ms, 2),
                **error.to_log_fields(),
            )

        if self._metrics is not None:
            await self._metrics.record(
                operation=ITERATION_OPERATION,
                duration_ms=duration_ms,
                success=error is None,
                scenario=self._scenario,
                error_type=error.error_type if error is not None else None,
            )

    async def _invoke(self, fn: IterationFunction) -> Any:
        threaded = not inspect.iscoroutinefunction(fn)
        if threaded:
            loop = asyncio.get_running_loop()
            awaitable: Awaitable[Any] = loop.run_in_executor(self._executor, fn)
        else:
            awaitable = fn()

        if self._timeout is None:
            result = await awaitable
        else:
            # asyncio.wait never raises on timeout, so a TimeoutError raised by
            # fn itself stays an ordinary iteration error.
            future = asyncio.ensure_future(awaitable)
            try:
                done, _ = await asyncio.wait({future}, timeout=self._timeout)
            except asyncio.CancelledError:
                future.cancel()
                raise
            if not done:
                future.cancel()
                if threaded:
                    self._replace_executor()
                raise _IterationTimedOut()
            result = future.result()

        if inspect.isawaitable(result):
            result = await result
        return result

    def _replace_executor(self) -> None:
        spare = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"vu-{self.vu_id}")
        self._spare_executors.append(spare)
        self._executor = spare
        self._logger.debug(
            "sim.vu_executor_replaced",
            event="sim.vu_executor_replaced",
            vu_id=self.vu_id,
        )
