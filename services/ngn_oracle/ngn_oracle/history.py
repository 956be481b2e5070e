from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Awaitable, Callable, List, Tuple

from .errors import InvalidRateError
from .models import AnswerUpdatedLog, HistoricalEvent
from .quotes import iso_from_unix, translate

if TYPE_CHECKING:  # pragma: no cover
    from .retry import RetryExecutor
    from .transport import TransportHandle

logger = logging.getLogger(__name__)

Window = Tuple[int, int]


def plan_windows(from_block: int, to_block: int, batch_size: int) -> List[Window]:
    """Consecutive inclusive windows of `batch_size` blocks; the last one stops at `to_block`."""
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    return [(start, min(start + batch_size - 1, to_block)) for start in range(from_block, to_block + 1, batch_size)]


class HistoricalQueryBatcher:
    def __init__(
        self,
        executor: "RetryExecutor",
        get_decimals: Callable[[], Awaitable[int]],
        base: str = "USD",
        counter: str = "NGN",
    ):
        self.executor = executor
        self.get_decimals = get_decimals
        self.base = base
        self.counter = counter

    async def _window(self, from_block: int, to_block: int) -> List[AnswerUpdatedLog]:
        async def op(handle: "TransportHandle") -> List[AnswerUpdatedLog]:
            return await handle.contract.query_answer_updated(from_block, to_block)

        return await self.executor.execute_with_retry(op)

    async def query(self, block_range: int, batch_size: int = 50) -> List[HistoricalEvent]:
        if block_range < 0:
            raise ValueError("block_range must be non-negative")
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        logger.info(f"Querying historical events (last {block_range} blocks)...")

        async def head_op(handle: "TransportHandle") -> int:
            return await handle.contract.block_number()

        head = await self.executor.execute_with_retry(head_op)
        from_block = max(head - block_range, 0)

        if block_range <= batch_size:
            logs = await self._window(from_block, head)
            return await self.process(logs)

        windows = plan_windows(from_block, head, batch_size)
        logger.info(f"Querying in {len(windows)} batches...")
        logs: List[AnswerUpdatedLog] = []
        for start, end in windows:
            try:
                logs.extend(await self._window(start, end))
            except Exception as e:
                logger.error(f"Error querying batch {start}-{end}: {e}")
        logger.info(f"Found {len(logs)} price update events")
        return await self.process(logs)

    async def process(self, logs: List[AnswerUpdatedLog]) -> List[HistoricalEvent]:
        if not logs:
            return []
        decimals = await self.get_decimals()
        out: List[HistoricalEvent] = []
        for log in logs:
            try:
                q = translate(log.current, decimals, self.base, self.counter)
            except InvalidRateError:
                logger.warning(f"Skipping zero answer in block {log.block_number} ({log.transaction_hash})")
                continue
            out.append(HistoricalEvent(
                block_number=log.block_number,
                transaction_hash=log.transaction_hash,
                round_id=str(log.round_id),
                answer=log.current,
                usd_to_ngn=q.direct,
                ngn_to_usd=q.inverse,
                formatted_price=q.formatted_price,
                reverse_price=q.reverse_price,
                updated_at=log.updated_at,
                updated_at_formatted=iso_from_unix(log.updated_at),
            ))
        return out
