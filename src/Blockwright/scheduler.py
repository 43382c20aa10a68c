"""Periodic autonomous planner loop."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum

import structlog

from Blockwright.metrics import inc_counter

log = structlog.get_logger()


class TickOutcome(str, Enum):
    RAN = "ran"
    WANDERED = "wandered"
    SKIPPED_BUSY = "skipped_busy"
    STOPPED = "stopped"
    FAILED = "failed"


TickFn = Callable[[], Awaitable[TickOutcome]]


class PlannerLoop:
    """Run ``tick_fn`` now and then every ``interval`` seconds while running.

    Ticks run one after another on a single task. ``stop()`` only prevents
    future ticks; a tick already in progress finishes normally.
    """

    def __init__(self, tick_fn: TickFn, interval: float = 5.0) -> None:
        self._tick_fn = tick_fn
        self._interval = interval
        self._running = False
        self._wake = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.last_outcome: TickOutcome | None = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """Start ticking; must be called from inside the event loop."""
        if self._running:
            return False
        self._running = True
        self._wake.clear()
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
        log.info("loop.started", interval_s=self._interval)
        return True

    def stop(self) -> bool:
        if not self._running:
            return False
        self._running = False
        self._wake.set()
        log.info("loop.stopped")
        return True

    async def tick(self) -> TickOutcome:
        if not self._running:
            outcome = TickOutcome.STOPPED
        else:
            try:
                outcome = await self._tick_fn()
            except Exception:
                log.error("loop.tick.error", exc_info=True)
                outcome = TickOutcome.FAILED
        self.last_outcome = outcome
        inc_counter(f"loop.tick.{outcome.value}")
        log.debug("loop.tick", outcome=outcome.value)
        return outcome

    async def _run(self) -> None:
        while self._running:
            await self.tick()
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass

    async def aclose(self) -> None:
        """Stop and wait for the in-flight tick, if any, to finish."""
        self.stop()
        task = self._task
        if task is not None:
            await task
            self._task = None
