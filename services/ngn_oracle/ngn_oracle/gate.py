from __future__ import annotations

import asyncio


class SerializationGate:
    """Process-wide admission control: one provider call in flight at a time."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self.in_flight = 0
        self.peak_in_flight = 0
        self.acquisitions = 0

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    async def __aenter__(self) -> "SerializationGate":
        await self._lock.acquire()
        self.in_flight += 1
        self.acquisitions += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.in_flight -= 1
        self._lock.release()
