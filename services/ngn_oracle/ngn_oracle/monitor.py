from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .subscriptions import SubscriptionManager

logger = logging.getLogger(__name__)


class ContinuousMonitor:
    """Runs `cycle` now and then every interval until stopped. A failing tick is logged, not fatal."""

    def __init__(self, cycle: Callable[[], Awaitable[None]], subscriptions: Optional["SubscriptionManager"] = None):
        self.cycle = cycle
        self.subscriptions = subscriptions
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _tick(self) -> None:
        self.ticks += 1
        try:
            await self.cycle()
        except Exception as e:
            logger.error(f"Error during price monitoring: {e}")

    async def _loop(self, interval_sec: float) -> None:
        while True:
            await asyncio.sleep(interval_sec)
            await self._tick()

    async def start(self, interval_ms: int) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        await self._cancel()
        logger.info(f"Starting price monitoring (interval: {interval_ms / 1000}s)...")
        await self._tick()
        self._task = asyncio.create_task(self._loop(interval_ms / 1000.0))

    async def _cancel(self) -> bool:
        task, self._task = self._task, None
        if task is None:
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return True

    async def stop(self) -> None:
        if await self._cancel():
            logger.info("Price monitoring stopped")
        if self.subscriptions is not None:
            await self.subscriptions.stop_polling()
            await self.subscriptions.teardown_all()
            self.subscriptions.reset()
