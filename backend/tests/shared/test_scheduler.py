"""Tests for shared/scheduler.py."""

import asyncio

import pytest

from shared.scheduler import PeriodicTask, Scheduler


class TestPeriodicTask:
    @pytest.mark.asyncio
    async def test_run_once_returns_result(self):
        task = PeriodicTask("count", 60, lambda: 3)
        assert await task.run_once() == 3

    @pytest.mark.asyncio
    async def test_run_once_awaits_coroutines(self):
        async def sweep():
            return 2

        assert await PeriodicTask("async", 60, sweep).run_once() == 2

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self):
        def sweep():
            raise RuntimeError("boom")

        assert await PeriodicTask("broken", 60, sweep).run_once() is None

    @pytest.mark.asyncio
    async def test_runs_on_interval_until_stopped(self):
        calls = []
        task = PeriodicTask("tick", 0.01, lambda: calls.append(1))
        task.start()
        await asyncio.sleep(0.05)
        await task.stop()

        assert calls
        assert not task.running
        count = len(calls)
        await asyncio.sleep(0.03)
        assert len(calls) == count


class TestScheduler:
    @pytest.mark.asyncio
    async def test_start_and_stop_all(self):
        scheduler = Scheduler()
        scheduler.add("a", 60, lambda: None)
        scheduler.add("b", 60, lambda: None)

        scheduler.start()
        assert all(task.running for task in scheduler.tasks)

        await scheduler.stop()
        assert not any(task.running for task in scheduler.tasks)
