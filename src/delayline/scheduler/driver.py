"""
scheduler/driver.py — TickDriver

Drives a Scheduler from the asyncio event loop for applications that have no
frame loop of their own. Wakes every `tick_interval` seconds, measures how
much time really passed with a monotonic clock, clamps that delta to
`max_tick_dt` (a stalled loop must not fast-forward every timer at once) and
calls scheduler.update(dt).

The Scheduler itself stays delta-driven; this is just one caller.

Usage::

    driver = TickDriver.from_settings(settings, scheduler)
    await driver.start()    # non-blocking, runs as a background asyncio Task
    ...
    await driver.stop()
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional

from delayline.observability.logger import get_logger
from delayline.scheduler.scheduler import Scheduler

log = get_logger(__name__)


class TickDriver:

    def __init__(
        self,
        scheduler: Scheduler,
        tick_interval: float = 1.0 / 60.0,
        max_tick_dt: float = 0.25,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            scheduler:     The Scheduler to update.
            tick_interval: Seconds to sleep between updates.
            max_tick_dt:   Upper bound on the dt passed to a single update.
            clock:         Monotonic time source in seconds (injectable for tests).
        """
        if tick_interval <= 0:
            raise ValueError("tick_interval must be > 0")
        if max_tick_dt <= 0:
            raise ValueError("max_tick_dt must be > 0")
        self._scheduler = scheduler
        self._tick_interval = tick_interval
        self._max_tick_dt = max_tick_dt
        self._clock = clock

        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._last: Optional[float] = None
        self.tick_count = 0
        self.error_count = 0

    # ── Factory ───────────────────────────────────────────────────────────────

    @classmethod
    def from_settings(cls, settings, scheduler: Scheduler) -> "TickDriver":
        """Create a TickDriver from delayline Settings."""
        return cls(
            scheduler=scheduler,
            tick_interval=settings.scheduler.tick_interval,
            max_tick_dt=settings.scheduler.max_tick_dt,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the tick loop. Calling start() twice is a no-op."""
        if self._running:
            log.warning("driver.already_running")
            return
        self._running = True
        self._last = self._clock()
        self._task = asyncio.create_task(
            self._tick_loop(), name=f"delayline:driver:{self._scheduler.name}",
        )
        log.info("driver.started", tick_interval=self._tick_interval, scheduler=self._scheduler.name)

    async def stop(self) -> None:
        """Cancel the tick loop and wait for it to finish."""
        if not self._running:
            return
        self._running = False
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        log.info("driver.stopped", ticks=self.tick_count, errors=self.error_count)

    # ── Tick loop ─────────────────────────────────────────────────────────────

    def step(self) -> float:
        """Measure elapsed time since the last step and update once. Returns dt."""
        now = self._clock()
        last = self._last if self._last is not None else now
        self._last = now
        dt = min(max(now - last, 0.0), self._max_tick_dt)
        self._scheduler.update(dt)
        self.tick_count += 1
        return dt

    async def _tick_loop(self) -> None:
        """Wake every tick_interval and advance the scheduler."""
        log.debug("driver.tick_loop.started")
        while self._running:
            try:
                await asyncio.sleep(self._tick_interval)
                self.step()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.error_count += 1
                log.error("driver.tick_loop.error", error=str(e), error_type=type(e).__name__)
