from __future__ import annotations

import itertools
from typing import Any, List, Optional

import httpx

from ..errors import RpcError


class RpcClient:
    """JSON-RPC 2.0 over HTTP POST against a single endpoint."""

    def __init__(self, endpoint: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=self.timeout)
        self._ids = itertools.count(1)

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        resp = await self._client.post(self.endpoint, json=payload)
        if resp.status_code == 429:
            raise RpcError(429, "too many requests", endpoint=self.endpoint)
        resp.raise_for_status()
        js = resp.json()
        if not isinstance(js, dict):
            raise RpcError(None, f"invalid response to {method}", endpoint=self.endpoint)
        err = js.get("error")
        if err:
            if isinstance(err, dict):
                raise RpcError(err.get("code"), str(err.get("message", "")), endpoint=self.endpoint, data=err.get("data"))
            raise RpcError(None, str(err), endpoint=self.endpoint)
        return js.get("result")

    async def close(self):
        await self._client.aclose()
