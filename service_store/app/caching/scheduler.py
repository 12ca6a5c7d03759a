"""
Cancellable recurring background task.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional

from shared.logging import get_logger

Job = Callable[[], Awaitable[bool]]
Sleep = Callable[[float], Awaitable[None]]


class ScheduledTask:
    """
    Runs ``job`` after ``initial_delay``, then every ``interval`` seconds
    until the job returns True or the task is stopped.

    ``done`` is set once the loop exits for any reason. Passing ``sleep``
    replaces the wall-clock wait, which lets tests drive the schedule without
    real timers; ``delays`` records every wait that was requested.
    """

    def __init__(
        self,
        name: str,
        job: Job,
        *,
        initial_delay: float,
        interval: float,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.name = name
        self.initial_delay = initial_delay
        self.interval = interval
        self.delays: List[float] = []
        self.runs = 0
        self._job = job
        self._sleep = sleep
        self._stopped = asyncio.Event()
        self._done = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.logger = get_logger(f"store.scheduler.{name}")

    @property
    def done(self) -> asyncio.Event:
        return self._done

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _wait(self, delay: float) -> bool:
        """Wait ``delay`` seconds; False when the task was stopped meanwhile."""
        self.delays.append(delay)
        if self._sleep is not None:
            await self._sleep(delay)
            return not self._stopped.is_set()
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False

    async def run(self) -> None:
        """Drive the schedule inline until the job succeeds or stop() is called."""
        try:
            delay = self.initial_delay
            while await self._wait(delay):
                self.runs += 1
                try:
                    finished = await self._job()
                except Exception as exc:
                    self.logger.error("Scheduled job failed", task=self.name, error=str(exc))
                    finished = False

                if finished:
                    self.logger.info("Scheduled job completed", task=self.name, runs=self.runs)
                    break

                self.logger.info("Scheduled job rescheduled", task=self.name, next_run_in=self.interval)
                delay = self.interval
        finally:
            self._done.set()

    def start(self) -> asyncio.Task:
        """Schedule ``run`` on the current event loop."""
        if self.running:
            return self._task  # type: ignore[return-value]
        self._stopped.clear()
        self._done.clear()
        self._task = asyncio.create_task(self.run(), name=f"scheduled:{self.name}")
        return self._task

    async def stop(self) -> None:
        """Stop waiting for the next run; an in-flight job is left to finish."""
        self._stopped.set()
        if self._task is not None and not self._task.done():
            await self._task
        self._task = None
