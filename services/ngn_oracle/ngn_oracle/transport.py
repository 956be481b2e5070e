"""
Endpoint pool, transport handle and rotation.

A `Connection` owns exactly one current `TransportHandle`. Rotation tears down
whatever is bound to the old handle, moves the pool forward, builds a fresh
handle and lets registered hooks reconcile themselves against it.
"""
from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable, List, Sequence

from .clients import OracleContract, RpcClient
from .errors import ConstructionError
from .settings import Settings

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")

RotationHook = Callable[[], Awaitable[None]]


class EndpointPool:
    def __init__(self, endpoints: Sequence[str]):
        if not endpoints:
            raise ConstructionError("endpoint pool is empty")
        self._endpoints = list(endpoints)
        self._index = 0

    @property
    def index(self) -> int:
        return self._index

    @property
    def endpoints(self) -> List[str]:
        return list(self._endpoints)

    def __len__(self) -> int:
        return len(self._endpoints)

    def current(self) -> str:
        return self._endpoints[self._index]

    def peek_next(self) -> str:
        return self._endpoints[(self._index + 1) % len(self._endpoints)]

    def advance(self) -> str:
        self._index = (self._index + 1) % len(self._endpoints)
        return self.current()


class TransportHandle:
    """Live binding to the aggregator at one endpoint."""

    EVENTS = ("AnswerUpdated",)

    def __init__(self, endpoint: str, rpc: RpcClient, contract: OracleContract):
        self.endpoint = endpoint
        self.rpc = rpc
        self.contract = contract

    async def open_filter(self, event_name: str) -> str:
        if event_name not in self.EVENTS:
            raise ValueError(f"unknown event {event_name!r}")
        return await self.contract.new_answer_filter()

    async def close_filter(self, filter_id: str) -> bool:
        return await self.contract.uninstall_filter(filter_id)

    async def close(self):
        await self.rpc.close()


HandleFactory = Callable[[str], TransportHandle]


def validate_settings(settings: Settings, endpoints: Sequence[str] = ()) -> str:
    """Check the contract address, credential and endpoint URLs; returns the address."""
    address = (settings.ORACLE_CONTRACT_ADDRESS or "").strip()
    if not _ADDRESS_RE.match(address):
        raise ConstructionError(f"invalid ORACLE_CONTRACT_ADDRESS: {address!r}")
    if not _KEY_RE.match((settings.PRIVATE_KEY or "").strip()):
        raise ConstructionError("invalid PRIVATE_KEY: expected 32 bytes of hex")
    for endpoint in endpoints:
        if not endpoint.startswith(("http://", "https://")):
            raise ConstructionError(f"invalid RPC endpoint: {endpoint!r}")
    return address


def build_handle(endpoint: str, settings: Settings) -> TransportHandle:
    address = validate_settings(settings, [endpoint])
    rpc = RpcClient(endpoint, timeout=settings.RPC_TIMEOUT_SEC)
    return TransportHandle(endpoint, rpc, OracleContract(rpc, address))


class Connection:
    def __init__(self, pool: EndpointPool, factory: HandleFactory):
        self.pool = pool
        self._factory = factory
        self._teardown_hooks: List[RotationHook] = []
        self._reconcile_hooks: List[RotationHook] = []
        self.handle = factory(pool.current())
        logger.info(f"Using RPC endpoint: {pool.current()}")

    def current(self) -> str:
        return self.pool.current()

    def add_rotation_hooks(self, teardown: RotationHook, reconcile: RotationHook) -> None:
        self._teardown_hooks.append(teardown)
        self._reconcile_hooks.append(reconcile)

    async def rotate(self) -> str:
        """Switch to the next endpoint; a factory failure propagates unretried."""
        # Build first: a factory failure leaves pool, handle and registry untouched.
        new = self._factory(self.pool.peek_next())
        old = self.handle
        for hook in self._teardown_hooks:
            await hook()
        endpoint = self.pool.advance()
        self.handle = new
        try:
            await old.close()
        except Exception as e:
            logger.debug(f"Closing handle for {old.endpoint} failed: {e}")
        for hook in self._reconcile_hooks:
            await hook()
        logger.warning(f"Rotated to RPC endpoint: {endpoint}")
        return endpoint

    async def close(self):
        await self.handle.close()
