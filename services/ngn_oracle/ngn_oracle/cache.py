from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

STATIC_KEYS = ("decimals", "description")


class StaticValueCache:
    """
    Write-once cache for provider values that never change while the process
    runs. Concurrent misses on the same key share one fetch.
    """

    def __init__(self):
        self._values: Dict[str, Any] = {}
        self._locks: Dict[str, asyncio.Lock] = {k: asyncio.Lock() for k in STATIC_KEYS}

    def _check(self, key: str) -> None:
        if key not in STATIC_KEYS:
            raise KeyError(f"not a static key: {key!r}")

    def peek(self, key: str) -> Optional[Any]:
        self._check(key)
        return self._values.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    async def get_or_fetch(self, key: str, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        self._check(key)
        if key in self._values:
            return self._values[key]
        async with self._locks[key]:
            if key in self._values:
                return self._values[key]
            value = await fetcher()
            self._values[key] = value
            logger.debug(f"Cached {key}={value!r}")
            return value
