"""
Single-flight periodic scheduler.

Drives a tick callable every ``interval`` seconds on the running asyncio
loop.  At most one tick is ever in flight: a period that comes round while
the previous tick is still waiting on the gateway is skipped and counted,
never queued behind it.

``stop()`` ends the timer at once but lets an in-flight tick finish;
``drain()`` waits for that tick to land.

Usage:
    sched = TickScheduler(controller.tick, interval=5.0, name="transfer")
    sched.start()
    ...
    await sched.stop()
    await sched.drain()
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger("paystream.scheduler")

TickFn = Callable[[], Union[Awaitable[Any], Any]]
ErrorFn = Callable[[BaseException], None]


class TickScheduler:
    """Runs ``tick`` periodically, one invocation at a time."""

    def __init__(
        self,
        tick: TickFn,
        interval: float,
        name: str = "tick",
        on_error: Optional[ErrorFn] = None,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._tick = tick
        self.interval = interval
        self.name = name
        self.on_error = on_error
        self._task: Optional[asyncio.Task] = None
        self._in_flight: Optional[asyncio.Task] = None
        self.ticks_started = 0
        self.ticks_skipped = 0
        self.ticks_failed = 0

    # ── State ───────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    # ── Lifecycle ───────────────────────────────────────────────

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"{self.name}-timer")
        logger.debug(f"{self.name} scheduler started ({self.interval}s)")

    async def stop(self) -> None:
        """Stop future ticks. Does not cancel a tick already in flight."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug(f"{self.name} scheduler stopped")

    async def drain(self) -> None:
        """Wait for the in-flight tick, if any, to finish."""
        if self._in_flight is not None:
            await self._in_flight

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.fire()

    # ── Ticking ─────────────────────────────────────────────────

    def fire(self) -> bool:
        """Start one tick now unless one is already running."""
        if self.in_flight:
            self.ticks_skipped += 1
            logger.debug(f"{self.name} tick skipped: previous tick still in flight")
            return False
        self.ticks_started += 1
        self._in_flight = asyncio.get_running_loop().create_task(
            self._invoke(), name=f"{self.name}-{self.ticks_started}",
        )
        return True

    async def _invoke(self) -> Any:
        try:
            result = self._tick()
            if inspect.isawaitable(result):
                result = await result
            return result
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.ticks_failed += 1
            logger.error(f"{self.name} tick raised {type(exc).__name__}: {exc}")
            if self.on_error is not None:
                self.on_error(exc)
            return None

    def stats(self) -> dict:
        return {
            "running": self.running,
            "in_flight": self.in_flight,
            "ticks_started": self.ticks_started,
            "ticks_skipped": self.ticks_skipped,
            "ticks_failed": self.ticks_failed,
        }
