"""
Periodic background tasks.

Used for the housekeeping sweeps (session cache, entitlement cache,
rate-limit counters, cached database files). A sweep failure is logged
and the task keeps its schedule; stale entries simply wait for the next tick.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

SweepFn = Callable[[], Union[Any, Awaitable[Any]]]


class PeriodicTask:
    """Runs ``fn`` every ``interval`` seconds until stopped."""

    def __init__(self, name: str, interval: float, fn: SweepFn):
        self.name = name
        self.interval = interval
        self._fn = fn
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the task on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"sweep:{self.name}")

    async def stop(self) -> None:
        """Cancel the task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def run_once(self) -> Any:
        """Run one sweep, logging (not raising) any failure."""
        try:
            result = self._fn()
            if inspect.isawaitable(result):
                result = await result
            if result:
                logger.debug(f"Sweep {self.name} removed {result} entries")
            return result
        except Exception:
            logger.exception(f"Sweep {self.name} failed; will retry next cycle")
            return None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()


class Scheduler:
    """Owns a set of periodic tasks with a shared start/stop lifecycle."""

    def __init__(self) -> None:
        self._tasks: list[PeriodicTask] = []

    @property
    def tasks(self) -> list[PeriodicTask]:
        return list(self._tasks)

    def add(self, name: str, interval: float, fn: SweepFn) -> PeriodicTask:
        task = PeriodicTask(name, interval, fn)
        self._tasks.append(task)
        return task

    def start(self) -> None:
        for task in self._tasks:
            task.start()
        logger.info(f"Started {len(self._tasks)} background sweeps")

    async def stop(self) -> None:
        for task in self._tasks:
            await task.stop()
