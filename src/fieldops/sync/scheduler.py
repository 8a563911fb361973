# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""PeriodicTask — fixed-interval asyncio job with a reentrancy guard.

A tick that fires while the previous run is still in flight is skipped,
not queued.  An exception in one run is logged and counted; the loop keeps
going on the next interval.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Union

log = logging.getLogger(__name__)

TaskFunc = Callable[[], Union[Awaitable[Any], Any]]


class PeriodicTask:
    def __init__(self, name: str, interval: float, func: TaskFunc) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self._func = func
        self._task: asyncio.Task | None = None
        self._busy = False
        self._inflight: set[asyncio.Future] = set()
        self.runs = 0
        self.skipped = 0
        self.failures = 0
        self.last_error: str | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def busy(self) -> bool:
        return self._busy

    def start(self) -> None:
        """Schedule the loop on the running event loop. No-op if already started."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=f"periodic-{self.name}")
        log.info("Periodic task %s started (every %.1fs)", self.name, self.interval)

    async def cancel(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        for run in list(self._inflight):
            run.cancel()
        log.info("Periodic task %s stopped", self.name)

    async def run_once(self) -> bool:
        """Run the job now unless a run is already in flight. Returns False if skipped."""
        if self._busy:
            self.skipped += 1
            log.debug("Periodic task %s still busy; tick skipped", self.name)
            return False
        self._busy = True
        try:
            result = self._func()
            if inspect.isawaitable(result):
                await result
            self.runs += 1
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.failures += 1
            self.last_error = str(exc)
            log.warning("Periodic task %s failed: %s", self.name, exc)
        finally:
            self._busy = False
        return True

    async def _loop(self) -> None:
        while True:
            # Each tick is its own task so a slow run does not delay the clock
            run = asyncio.ensure_future(self.run_once())
            self._inflight.add(run)
            run.add_done_callback(self._inflight.discard)
            await asyncio.sleep(self.interval)

    def stats(self) -> dict:
        return {
            "name": self.name,
            "interval": self.interval,
            "running": self.running,
            "runs": self.runs,
            "skipped": self.skipped,
            "failures": self.failures,
            "lastError": self.last_error,
        }
