"""
Interval Loop - Scoped periodic task with an in-flight guard.

Runs a tick immediately on start and then every ``interval`` seconds.
The timer does not wait for the tick: when a tick is still running at
the next deadline, that deadline is skipped, so at most one tick is
outstanding per loop. Ticks never raise into the loop; failures are
logged and the next deadline retries.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

__all__ = ["IntervalLoop"]

logger = structlog.get_logger(__name__)


class IntervalLoop:
    """Periodic background tick owned by a view, dialog or open thread.

    Acquire with start() (or ``async with``), release with stop(). stop()
    cancels both the timer and an in-flight tick and is safe to call on
    any exit path, more than once.

    Example:
        loop = IntervalLoop(poller.tick, interval=1.0, name="status")

        async with loop:
            ...  # view is mounted

        # Out-of-band refresh (push hint)
        loop.trigger(coalesce=True)
    """

    def __init__(
        self,
        tick: Callable[[], Awaitable[Any]],
        interval: float,
        name: str = "interval",
    ) -> None:
        """Initialize loop.

        Args:
            tick: Coroutine function run on every deadline
            interval: Seconds between deadlines
            name: Label used in log events
        """
        self.tick = tick
        self.interval = interval
        self.name = name

        self.skipped_ticks = 0
        self._task: asyncio.Task | None = None
        self._in_flight: asyncio.Task | None = None
        self._rerun = False
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    async def start(self) -> None:
        """Fire the first tick and start the timer."""
        if self._running:
            return

        self._running = True
        self.trigger()
        self._task = asyncio.create_task(self._timer())

        logger.debug("interval_loop_started", loop=self.name, interval=self.interval)

    async def stop(self) -> None:
        """Cancel the timer and any in-flight tick."""
        self._running = False
        self._rerun = False

        current = asyncio.current_task()
        tasks = [t for t in (self._task, self._in_flight) if t is not None and t is not current]
        self._task = None
        self._in_flight = None

        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

        logger.debug("interval_loop_stopped", loop=self.name, skipped=self.skipped_ticks)

    def trigger(self, *, coalesce: bool = False) -> bool:
        """Run a tick now unless one is already in flight.

        Args:
            coalesce: When a tick is in flight, run exactly one more tick
                after it finishes instead of dropping this request.

        Returns:
            True if a tick was started
        """
        if not self._running:
            return False

        if self.in_flight:
            if coalesce:
                self._rerun = True
            else:
                self.skipped_ticks += 1
            return False

        self._in_flight = asyncio.create_task(self._run_tick())
        return True

    async def drain(self) -> None:
        """Wait until no tick is in flight (including a queued rerun)."""
        while self.in_flight:
            task = self._in_flight
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
            # Let a queued rerun get scheduled before re-checking
            await asyncio.sleep(0)

    async def _timer(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            if self._running:
                self.trigger()

    async def _run_tick(self) -> None:
        try:
            await self.tick()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("interval_tick_failed", loop=self.name, error=str(e))
        finally:
            if self._in_flight is asyncio.current_task():
                self._in_flight = None
            if self._rerun and self._running:
                self._rerun = False
                self.trigger()

    async def __aenter__(self) -> "IntervalLoop":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def status(self) -> dict:
        """Current loop status."""
        return {
            "name": self.name,
            "running": self._running,
            "interval": self.interval,
            "in_flight": self.in_flight,
            "skipped_ticks": self.skipped_ticks,
        }
