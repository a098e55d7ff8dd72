"""Tests for VirtualUser iteration loop and fault isolation."""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from simulator.core.metrics import MetricsCollector
from simulator.core.vu import VirtualUser


class TestVirtualUserLoop:
    @pytest.mark.asyncio
    async def test_runs_configured_iterations(self, quiet_logger):
        calls = []
        vu = VirtualUser(0, iterations=5, logger=quiet_logger)

        count = await vu.loop(lambda: calls.append(1), asyncio.Event())

        assert count == 5
        assert len(calls) == 5
        assert vu.state.running is False
        assert vu.state.failed_iterations == 0

    @pytest.mark.asyncio
    async def test_fault_isolation_every_third_call_fails(self, quiet_logger):
        """A VU configured for 9 iterations completes all 9; 3 are failures."""
        calls = {"n": 0}

        def flaky():
            calls["n"] += 1
            if calls["n"] % 3 == 0:
                raise RuntimeError("boom")
            return "ok"

        vu = VirtualUser(7, iterations=9, logger=quiet_logger)
        count = await vu.loop(flaky, asyncio.Event())

        assert count == 9
        assert vu.state.iteration_count == 9
        assert vu.state.failed_iterations == 3

    @pytest.mark.asyncio
    async def test_async_iteration_function(self, quiet_logger):
        seen = []

        async def iteration():
            await asyncio.sleep(0)
            seen.append(1)

        vu = VirtualUser(0, iterations=3, logger=quiet_logger)
        assert await vu.loop(iteration, asyncio.Event()) == 3
        assert len(seen) == 3

    @pytest.mark.asyncio
    async def test_returned_exception_counts_as_failure(self, quiet_logger):
        vu = VirtualUser(0, iterations=2, logger=quiet_logger)

        await vu.loop(lambda: ConnectionError("no server"), asyncio.Event())

        assert vu.state.iteration_count == 2
        assert vu.state.failed_iterations == 2

    @pytest.mark.asyncio
    async def test_stop_event_checked_between_iterations(self, quiet_logger):
        stop = asyncio.Event()
        calls = {"n": 0}

        async def iteration():
            calls["n"] += 1
            if calls["n"] == 4:
                stop.set()

        vu = VirtualUser(0, logger=quiet_logger)
        count = await vu.loop(iteration, stop)

        assert count == 4

    @pytest.mark.asyncio
    async def test_first_iteration_runs_even_if_already_stopped(self, quiet_logger):
        stop = asyncio.Event()
        stop.set()

        vu = VirtualUser(0, logger=quiet_logger)
        assert await vu.loop(lambda: None, stop) == 1

    @pytest.mark.asyncio
    async def test_iteration_timeout(self, quiet_logger):
        async def slow():
            await asyncio.sleep(1.0)

        collector = MetricsCollector(sample_size=10, logger=quiet_logger)
        vu = VirtualUser(
            0,
            iterations=2,
            iteration_timeout_seconds=0.05,
            logger=quiet_logger,
            metrics=collector,
        )
        await vu.loop(slow, asyncio.Event())

        assert vu.state.iteration_count == 2
        assert vu.state.failed_iterations == 2
        report = await collector.build_report()
        assert report["overall"]["error_types"] == {"timeout": 2}

    @pytest.mark.asyncio
    async def test_cancellation_marks_abandoned(self, quiet_logger):
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.sleep(10)

        vu = VirtualUser(3, logger=quiet_logger)
        task = asyncio.create_task(vu.loop(hang, asyncio.Event()))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert vu.state.abandoned is True
        assert vu.state.iteration_count == 0
        assert vu.state.running is False

    @pytest.mark.asyncio
    async def test_records_iteration_metrics(self, quiet_logger):
        collector = MetricsCollector(sample_size=10, logger=quiet_logger)
        calls = {"n": 0}

        def iteration():
            calls["n"] += 1
            if calls["n"] == 2:
                raise KeyError("missing")

        vu = VirtualUser(0, iterations=3, scenario="aggregate", logger=quiet_logger, metrics=collector)
        await vu.loop(iteration, asyncio.Event())

        report = await collector.build_report()
        assert report["by_operation"]["iteration"]["count"] == 3
        assert report["by_operation"]["iteration"]["error_types"] == {"KeyError": 1}
        assert report["by_operation_scenario"]["iteration::aggregate"]["count"] == 3

    @pytest.mark.asyncio
    async def test_sync_timeout_does_not_starve_later_iterations(self, quiet_logger):
        """Only the hung call times out; the VU moves off the busy worker."""
        release = threading.Event()
        calls = {"n": 0}

        def iteration():
            calls["n"] += 1
            if calls["n"] == 1:
                release.wait(5)

        executor = ThreadPoolExecutor(max_workers=1)
        collector = MetricsCollector(sample_size=10, logger=quiet_logger)
        vu = VirtualUser(
            0,
            iterations=5,
            iteration_timeout_seconds=0.1,
            executor=executor,
            logger=quiet_logger,
            metrics=collector,
        )
        try:
            await vu.loop(iteration, asyncio.Event())
        finally:
            release.set()
            executor.shutdown(wait=True)

        assert calls["n"] == 5
        assert vu.state.iteration_count == 5
        assert vu.state.failed_iterations == 1
        report = await collector.build_report()
        assert report["overall"]["error_types"] == {"timeout": 1}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("timeout", [None, 5.0])
    async def test_timeout_error_raised_by_function_keeps_its_type(self, quiet_logger, timeout):
        def iteration():
            raise TimeoutError("socket read timed out")

        collector = MetricsCollector(sample_size=10, logger=quiet_logger)
        vu = VirtualUser(
            0,
            iterations=1,
            iteration_timeout_seconds=timeout,
            logger=quiet_logger,
            metrics=collector,
        )
        await vu.loop(iteration, asyncio.Event())

        assert vu.state.failed_iterations == 1
        report = await collector.build_report()
        assert report["overall"]["error_types"] == {"TimeoutError": 1}
