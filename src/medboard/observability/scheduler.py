"""Cancellable periodic refresh loop owned by the dashboard."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

RefreshCallback = Callable[[], Awaitable[None]]


class RefreshScheduler:
    """Run ``callback`` every ``interval_seconds`` until stopped.

    Ticks are fire-and-forget relative to the loop: a tick that is still
    running when the next one comes due causes that next tick to be
    skipped, never run concurrently. Tick exceptions are logged and do
    not stop the loop. ``interval_seconds`` may be changed while running;
    the new value applies from the next sleep.
    """

    def __init__(self, interval_seconds: float, callback: RefreshCallback):
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._task: asyncio.Task | None = None
        self._tick: asyncio.Task | None = None
        self.skipped_ticks = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start the loop. Returns False if it was already running."""
        if self.is_running:
            return False
        self._task = asyncio.create_task(self._run(), name="dashboard-refresh")
        logger.info("refresh_scheduler_started", interval_seconds=self.interval_seconds)
        return True

    async def stop(self) -> bool:
        """Cancel future ticks. Returns False if it was not running.

        A tick already in flight runs to completion in the background.
        """
        task, self._task = self._task, None
        if task is None or task.done():
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("refresh_scheduler_stopped", skipped_ticks=self.skipped_ticks)
        return True

    async def drain(self) -> None:
        """Wait for a tick that is still in flight, if any."""
        tick = self._tick
        if tick is None or tick.done():
            return
        await asyncio.shield(tick)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            if self._tick is not None and not self._tick.done():
                self.skipped_ticks += 1
                logger.warning("dashboard_refresh_skipped", reason="previous_tick_running")
                continue
            self._tick = asyncio.create_task(self._run_tick(), name="dashboard-refresh-tick")

    async def _run_tick(self) -> None:
        try:
            await self._callback()
        except Exception as exc:  # noqa: BLE001
            logger.error("dashboard_refresh_failed", error=str(exc))
