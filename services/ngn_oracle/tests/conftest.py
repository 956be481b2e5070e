import os
from collections import defaultdict
from typing import Any, Dict, List

import pytest

from ngn_oracle.errors import RpcError
from ngn_oracle.models import AnswerUpdatedLog, RawRound

ADDRESS = "0x" + "ab" * 20


@pytest.fixture(scope="session", autouse=True)
def _env_setup():
    # Settings must never reach a real RPC endpoint from tests
    os.environ.setdefault("ORACLE_CONTRACT_ADDRESS", ADDRESS)
    os.environ.setdefault("RPC_ENDPOINTS", "http://rpc-a.test,http://rpc-b.test,http://rpc-c.test")
    os.environ.setdefault("LOG_LEVEL", "debug")
    os.environ.setdefault("CORS_ALLOW_ORIGINS", "")


def rate_limited(endpoint: str = "") -> RpcError:
    return RpcError(-32016, "over rate limit", endpoint=endpoint)


def filter_gone(endpoint: str = "") -> RpcError:
    return RpcError(-32000, "filter not found", endpoint=endpoint)


class FakeProvider:
    """
    Scripted stand-in for the remote aggregator, shared by every fake handle.

    `fail(method, *excs)` queues exceptions raised by the next calls of
    `method`, whatever endpoint they hit; `fail_on(endpoint, method, exc)`
    makes one endpoint fail persistently.
    """

    def __init__(self):
        self.decimals = 6
        self.description = "NGN / USD"
        self.answer = 689
        self.round = RawRound(
            round_id=18446744073709551617,
            answer=689,
            started_at=1_700_000_000,
            updated_at=1_700_000_060,
            answered_in_round=18446744073709551617,
        )
        self.head = 1000
        self.logs: List[AnswerUpdatedLog] = []
        self.calls: List[tuple] = []
        self._queued: Dict[str, List[BaseException]] = defaultdict(list)
        self._sticky: Dict[tuple, BaseException] = {}
        self._filter_seq = 0
        self.open_filters: Dict[str, str] = {}
        self.pending: Dict[str, List[AnswerUpdatedLog]] = defaultdict(list)

    def fail(self, method: str, *excs: BaseException) -> None:
        self._queued[method].extend(excs)

    def fail_on(self, endpoint: str, method: str, exc: BaseException) -> None:
        self._sticky[(endpoint, method)] = exc

    def calls_to(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[1] == method]

    async def hit(self, endpoint: str, method: str, *args: Any) -> None:
        self.calls.append((endpoint, method) + args)
        if (endpoint, method) in self._sticky:
            raise self._sticky[(endpoint, method)]
        if self._queued[method]:
            raise self._queued[method].pop(0)


class FakeContract:
    def __init__(self, endpoint: str, provider: FakeProvider):
        self.endpoint = endpoint
        self.p = provider

    async def decimals(self) -> int:
        await self.p.hit(self.endpoint, "decimals")
        return self.p.decimals

    async def description(self) -> str:
        await self.p.hit(self.endpoint, "description")
        return self.p.description

    async def latest_answer(self) -> int:
        await self.p.hit(self.endpoint, "latest_answer")
        return self.p.answer

    async def latest_round_data(self) -> RawRound:
        await self.p.hit(self.endpoint, "latest_round_data")
        return self.p.round

    async def block_number(self) -> int:
        await self.p.hit(self.endpoint, "block_number")
        return self.p.head

    async def query_answer_updated(self, from_block: int, to_block: int) -> List[AnswerUpdatedLog]:
        await self.p.hit(self.endpoint, "query_answer_updated", from_block, to_block)
        return [log for log in self.p.logs if from_block <= log.block_number <= to_block]

    async def new_answer_filter(self) -> str:
        await self.p.hit(self.endpoint, "new_answer_filter")
        self.p._filter_seq += 1
        fid = f"0x{self.p._filter_seq:x}"
        self.p.open_filters[fid] = self.endpoint
        return fid

    async def filter_changes(self, filter_id: str) -> List[AnswerUpdatedLog]:
        await self.p.hit(self.endpoint, "filter_changes", filter_id)
        if filter_id not in self.p.open_filters:
            raise filter_gone(self.endpoint)
        logs, self.p.pending[filter_id] = self.p.pending[filter_id], []
        return logs

    async def uninstall_filter(self, filter_id: str) -> bool:
        await self.p.hit(self.endpoint, "uninstall_filter", filter_id)
        return self.p.open_filters.pop(filter_id, None) is not None


class FakeHandle:
    def __init__(self, endpoint: str, provider: FakeProvider):
        self.endpoint = endpoint
        self.contract = FakeContract(endpoint, provider)
        self.closed = False

    async def open_filter(self, event_name: str) -> str:
        return await self.contract.new_answer_filter()

    async def close_filter(self, filter_id: str) -> bool:
        return await self.contract.uninstall_filter(filter_id)

    async def close(self):
        self.closed = True


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture()
def provider():
    return FakeProvider()


@pytest.fixture()
def handle_factory(provider):
    built: List[FakeHandle] = []

    def factory(endpoint: str) -> FakeHandle:
        h = FakeHandle(endpoint, provider)
        built.append(h)
        return h

    factory.built = built
    return factory


@pytest.fixture()
def sleeper():
    return RecordingSleep()


@pytest.fixture()
def service(handle_factory, sleeper):
    from ngn_oracle.oracle import OracleService

    return OracleService(
        endpoints=["A", "B", "C"],
        factory=handle_factory,
        sleep=sleeper,
        filter_poll_interval_sec=0.01,
    )
