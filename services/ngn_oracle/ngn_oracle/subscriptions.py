"""
Push subscriptions that survive endpoint rotation.

Callers declare what they want (`subscribe`); the registry records what is
actually installed on the current handle. Rotation empties the registry
against the old handle and rebuilds it from the desired set on the new one.
Delivery uses polling log filters, which is how push events work over plain
HTTP JSON-RPC. Each poll first installs any desired subscription that is
still missing, so a failed first install is picked up on the next tick.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, List, Optional

from .models import AnswerUpdatedLog

if TYPE_CHECKING:  # pragma: no cover
    from .retry import RetryExecutor
    from .transport import Connection, TransportHandle

logger = logging.getLogger(__name__)

Handler = Callable[[AnswerUpdatedLog], Awaitable[None]]


@dataclass
class Subscription:
    event_name: str
    filter_id: str
    handler: Handler
    endpoint: str


class SubscriptionManager:
    def __init__(self, connection: "Connection", executor: Optional["RetryExecutor"] = None):
        self.connection = connection
        self.executor = executor
        self._desired: Dict[str, Handler] = {}
        self._installed: Dict[str, Subscription] = {}
        self._poll_task: Optional[asyncio.Task] = None
        connection.add_rotation_hooks(self.teardown_all, self.reestablish)

    @property
    def desired(self) -> Dict[str, Handler]:
        return dict(self._desired)

    @property
    def registry(self) -> Dict[str, Subscription]:
        return dict(self._installed)

    async def _install(self, handle: "TransportHandle", event_name: str, handler: Handler) -> Subscription:
        filter_id = await handle.open_filter(event_name)
        sub = Subscription(event_name, filter_id, handler, handle.endpoint)
        self._installed[event_name] = sub
        return sub

    async def subscribe(self, event_name: str, handler: Handler) -> Subscription:
        self._desired[event_name] = handler
        previous = self._installed.pop(event_name, None)
        if previous is not None:
            await self._uninstall(previous)
        return await self._install(self.connection.handle, event_name, handler)

    async def _uninstall(self, sub: Subscription) -> None:
        try:
            await self.connection.handle.close_filter(sub.filter_id)
        except Exception as e:
            # The handle may already be dead; nothing to recover.
            logger.warning(
                f"Teardown of {sub.event_name} failed: {e}",
                extra={"event": "subscription_teardown_failed", "endpoint": sub.endpoint,
                       "filter_id": sub.filter_id},
            )

    async def teardown_all(self) -> None:
        installed = list(self._installed.values())
        self._installed.clear()
        for sub in installed:
            await self._uninstall(sub)

    def missing(self) -> List[str]:
        return [name for name in self._desired if name not in self._installed]

    async def reestablish(self) -> None:
        """Install every desired subscription that is not on the current handle."""
        missing = self.missing()
        if not missing:
            return
        logger.info("Re-establishing event listeners...")
        handle = self.connection.handle
        for event_name in missing:
            handler = self._desired[event_name]
            try:
                await self._install(handle, event_name, handler)
            except Exception as e:
                logger.error(f"Failed to re-establish listener for {event_name}: {e}")

    def reset(self) -> None:
        self._desired.clear()

    # ---------------- delivery ----------------

    async def _changes(self, event_name: str) -> List[AnswerUpdatedLog]:
        async def op(handle: "TransportHandle") -> List[AnswerUpdatedLog]:
            # Look the filter up per attempt: a rotation in between replaces it.
            sub = self._installed.get(event_name)
            if sub is None:
                return []
            return await handle.contract.filter_changes(sub.filter_id)

        if self.executor is None:
            return await op(self.connection.handle)
        return await self.executor.execute_with_retry(op)

    async def _install_missing(self) -> None:
        if not self.missing():
            return
        if self.executor is None:
            await self.reestablish()
            return
        # Same hold as a rotation, so the two never interleave.
        async with self.executor.gate:
            await self.reestablish()

    async def poll_once(self) -> int:
        await self._install_missing()
        delivered = 0
        for event_name in list(self._installed):
            try:
                logs = await self._changes(event_name)
            except Exception as e:
                logger.error(f"Polling {event_name} failed: {e}")
                continue
            sub = self._installed.get(event_name)
            if sub is None:
                continue
            for log in logs:
                try:
                    await sub.handler(log)
                    delivered += 1
                except Exception as e:
                    logger.error(f"Error processing {event_name} event: {e}")
        return delivered

    async def _poll_loop(self, interval_sec: float) -> None:
        while True:
            await asyncio.sleep(interval_sec)
            await self.poll_once()

    def start_polling(self, interval_sec: float) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._poll_task = asyncio.create_task(self._poll_loop(interval_sec))

    async def stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()
