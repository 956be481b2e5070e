from __future__ import annotations

from typing import Any, Dict, List

from ..errors import AbiDecodeError
from ..models import AnswerUpdatedLog, RawRound
from . import abi
from .rpc import RpcClient


def decode_answer_updated(log: Dict[str, Any]) -> AnswerUpdatedLog:
    """current and roundId are indexed (topics 1 and 2); updatedAt is the data word."""
    topics = log.get("topics") or []
    if len(topics) < 3:
        raise AbiDecodeError(f"AnswerUpdated log has {len(topics)} topics")
    return AnswerUpdatedLog(
        current=abi.topic_int(topics[1], signed=True),
        round_id=abi.topic_int(topics[2]),
        updated_at=abi.decode_uint(log.get("data") or "0x"),
        block_number=int(str(log.get("blockNumber") or "0x0"), 16),
        transaction_hash=str(log.get("transactionHash") or ""),
    )


class OracleContract:
    """Typed read-only proxy to the aggregator at one endpoint."""

    def __init__(self, rpc: RpcClient, address: str):
        self.rpc = rpc
        self.address = address

    async def _eth_call(self, fn: str) -> str:
        call = {"to": self.address, "data": abi.SELECTORS[fn]}
        result = await self.rpc.call("eth_call", [call, "latest"])
        if not result or result == "0x":
            raise AbiDecodeError(f"empty result from {fn}() at {self.address}")
        return str(result)

    async def decimals(self) -> int:
        return abi.decode_uint(await self._eth_call("decimals"))

    async def description(self) -> str:
        return abi.decode_string(await self._eth_call("description"))

    async def latest_answer(self) -> int:
        return abi.decode_int(await self._eth_call("latestAnswer"))

    async def latest_round_data(self) -> RawRound:
        w = abi.words(await self._eth_call("latestRoundData"), expected=5)
        return RawRound(
            round_id=abi.to_uint(w[0]),
            answer=abi.to_int(w[1]),
            started_at=abi.to_uint(w[2]),
            updated_at=abi.to_uint(w[3]),
            answered_in_round=abi.to_uint(w[4]),
        )

    async def block_number(self) -> int:
        return int(str(await self.rpc.call("eth_blockNumber")), 16)

    async def query_answer_updated(self, from_block: int, to_block: int) -> List[AnswerUpdatedLog]:
        flt = {
            "address": self.address,
            "topics": [abi.ANSWER_UPDATED_TOPIC],
            "fromBlock": abi.block_tag(from_block),
            "toBlock": abi.block_tag(to_block),
        }
        logs = await self.rpc.call("eth_getLogs", [flt]) or []
        return [decode_answer_updated(log) for log in logs]

    # ---- polling filters (push delivery over plain HTTP) ----

    async def new_answer_filter(self) -> str:
        flt = {"address": self.address, "topics": [abi.ANSWER_UPDATED_TOPIC]}
        return str(await self.rpc.call("eth_newFilter", [flt]))

    async def filter_changes(self, filter_id: str) -> List[AnswerUpdatedLog]:
        logs = await self.rpc.call("eth_getFilterChanges", [filter_id]) or []
        return [decode_answer_updated(log) for log in logs]

    async def uninstall_filter(self, filter_id: str) -> bool:
        return bool(await self.rpc.call("eth_uninstallFilter", [filter_id]))
