"""
Unit tests for TaskSupervisor.

Tests cover:
- Units run without the caller waiting
- Faults are logged and counted, never propagated
- Coroutine units run as detached tasks
- Shutdown does not wait and refuses new work
"""

import asyncio
import logging
import threading
import time

import pytest

from backend.greenlight.background import TaskSupervisor


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.01)


class TestTaskSupervisor:
    """Tests for TaskSupervisor."""

    @pytest.fixture
    def supervisor(self):
        supervisor = TaskSupervisor(max_workers=2, name="test")
        yield supervisor
        supervisor.shutdown()

    def test_runs_unit(self, supervisor):
        done = threading.Event()
        supervisor.run(done.set)

        assert done.wait(2.0)
        wait_until(lambda: supervisor.completed_count == 1)
        assert supervisor.failed_count == 0

    def test_caller_does_not_wait(self, supervisor):
        release = threading.Event()
        supervisor.run(release.wait, 5.0)

        # run() returned while the unit is still blocked
        assert supervisor.in_flight == 1
        release.set()
        wait_until(lambda: supervisor.in_flight == 0)

    def test_fault_is_logged_not_raised(self, supervisor, caplog):
        def boom():
            raise RuntimeError("smtp unreachable")

        with caplog.at_level(logging.ERROR, logger="backend.greenlight.background"):
            supervisor.run(boom)
            wait_until(lambda: supervisor.completed_count == 1)

        assert supervisor.failed_count == 1
        assert any("smtp unreachable" in r.getMessage() for r in caplog.records)

    def test_later_units_run_after_fault(self, supervisor):
        def boom():
            raise ValueError("bad template")

        done = threading.Event()
        supervisor.run(boom)
        supervisor.run(done.set)

        assert done.wait(2.0)
        wait_until(lambda: supervisor.completed_count == 2)
        assert supervisor.failed_count == 1

    def test_run_after_shutdown_raises(self):
        supervisor = TaskSupervisor(max_workers=1)
        supervisor.shutdown()

        with pytest.raises(RuntimeError):
            supervisor.run(lambda: None)

    def test_shutdown_does_not_wait(self):
        supervisor = TaskSupervisor(max_workers=1)
        release = threading.Event()
        supervisor.run(release.wait, 5.0)

        started = time.monotonic()
        supervisor.shutdown()
        assert time.monotonic() - started < 1.0

        release.set()

    def test_shutdown_is_idempotent(self):
        supervisor = TaskSupervisor(max_workers=1)
        supervisor.shutdown()
        supervisor.shutdown()

    def test_concurrent_run_and_shutdown(self):
        """Each unit is either accepted and tracked, or refused with RuntimeError."""
        supervisor = TaskSupervisor(max_workers=2)
        go = threading.Event()
        accepted = []
        refused = []
        unexpected = []

        def submitter():
            go.wait(2.0)
            for _ in range(200):
                try:
                    supervisor.run(lambda: None)
                except RuntimeError:
                    refused.append(1)
                except Exception as e:
                    unexpected.append(e)
                else:
                    accepted.append(1)

        threads = [threading.Thread(target=submitter) for _ in range(4)]
        for t in threads:
            t.start()
        go.set()
        time.sleep(0.001)
        supervisor.shutdown()
        for t in threads:
            t.join(5.0)

        assert unexpected == []
        assert len(accepted) + len(refused) == 800
        with pytest.raises(RuntimeError):
            supervisor.run(lambda: None)


class TestTaskSupervisorAsync:
    """Tests for coroutine units."""

    @pytest.mark.asyncio
    async def test_coroutine_unit_runs(self):
        supervisor = TaskSupervisor(max_workers=1)
        done = asyncio.Event()

        async def unit():
            done.set()

        supervisor.run(unit)
        await asyncio.wait_for(done.wait(), 2.0)
        supervisor.shutdown()

    @pytest.mark.asyncio
    async def test_coroutine_fault_is_isolated(self):
        supervisor = TaskSupervisor(max_workers=1)

        async def boom():
            raise RuntimeError("async failure")

        supervisor.run(boom)
        for _ in range(100):
            if supervisor.completed_count:
                break
            await asyncio.sleep(0.01)

        assert supervisor.failed_count == 1
        supervisor.shutdown()

    @pytest.mark.asyncio
    async def test_unit_survives_cancelled_caller(self):
        """Cancelling the scheduling task does not cancel the unit."""
        supervisor = TaskSupervisor(max_workers=1)
        done = asyncio.Event()

        async def unit():
            await asyncio.sleep(0.05)
            done.set()

        async def request_handler():
            supervisor.run(unit)
            await asyncio.sleep(10)

        handler = asyncio.create_task(request_handler())
        await asyncio.sleep(0.01)
        handler.cancel()

        await asyncio.wait_for(done.wait(), 2.0)
        supervisor.shutdown()
