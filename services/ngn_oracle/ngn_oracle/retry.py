"""
Classified retry with endpoint rotation and exponential backoff.

State per call: Attempting -> Succeeded | Rotating+Waiting -> Attempting | Failed.
Transient failures (throttling, expired filters) rotate the endpoint pool and
back off before the next attempt; anything else is retried immediately, and
the last attempt's error is raised once the cap is reached.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

from .errors import ErrorKind, classify

if TYPE_CHECKING:  # pragma: no cover
    from .gate import SerializationGate
    from .transport import Connection, TransportHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[["TransportHandle"], Awaitable[T]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000
    multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Backoff in seconds after the zero-based `attempt` failed."""
        delay_ms = min(self.base_delay_ms * (self.multiplier ** attempt), self.max_delay_ms)
        return delay_ms / 1000.0


class RetryExecutor:
    def __init__(
        self,
        connection: "Connection",
        gate: "SerializationGate",
        policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.connection = connection
        self.gate = gate
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def execute_with_retry(self, operation: Operation, max_attempts: Optional[int] = None) -> T:
        attempts = max_attempts if max_attempts is not None else self.policy.max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        last_exc: Optional[BaseException] = None
        for i in range(attempts):
            last = i == attempts - 1
            try:
                async with self.gate:
                    return await operation(self.connection.handle)
            except Exception as exc:
                last_exc = exc
                kind = classify(exc)
                if last:
                    break
                if kind.transient:
                    label = "Rate limit" if kind is ErrorKind.RATE_LIMITED else "Filter error"
                    logger.warning(
                        f"{label} hit on {self.connection.current()}, rotating RPC... "
                        f"(attempt {i + 1}/{attempts})"
                    )
                    async with self.gate:
                        await self.connection.rotate()
                    await self._sleep(self.policy.delay_for(i))
                else:
                    logger.info(f"Attempt {i + 1}/{attempts} failed: {type(exc).__name__}: {exc}")
        assert last_exc is not None
        raise last_exc
