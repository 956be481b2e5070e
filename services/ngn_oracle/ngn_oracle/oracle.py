"""
OracleService: the read operations offered to the HTTP routes and the console
runner, composed from the access-layer parts.

Each instance owns its own pool, handle, cache, registry and gate; nothing is
kept at module level, so several services can run side by side (tests do).
"""
from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import List, Optional

from .cache import StaticValueCache
from .gate import SerializationGate
from .history import HistoricalQueryBatcher
from .models import AnswerUpdatedLog, Conversion, HistoricalEvent, PriceSnapshot, RoundData
from .monitor import ContinuousMonitor
from .quotes import iso_from_unix, now_utc_iso, translate
from .retry import RetryExecutor, RetryPolicy, Sleep
from .settings import Settings, get_settings
from .subscriptions import SubscriptionManager
from .transport import Connection, EndpointPool, HandleFactory, build_handle, validate_settings

logger = logging.getLogger(__name__)

ANSWER_UPDATED = "AnswerUpdated"


class OracleService:
    def __init__(
        self,
        endpoints: List[str],
        factory: HandleFactory,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[Sleep] = None,
        base: str = "USD",
        counter: str = "NGN",
        filter_poll_interval_sec: float = 4.0,
        history_batch_size: int = 50,
    ):
        self.base = base
        self.counter = counter
        self.filter_poll_interval_sec = filter_poll_interval_sec
        self.history_batch_size = history_batch_size
        self.pool = EndpointPool(endpoints)
        self.connection = Connection(self.pool, factory)
        self.gate = SerializationGate()
        self.executor = RetryExecutor(self.connection, self.gate, policy, sleep=sleep or asyncio.sleep)
        self.cache = StaticValueCache()
        self.subscriptions = SubscriptionManager(self.connection, self.executor)
        self.batcher = HistoricalQueryBatcher(self.executor, self.get_decimals, base, counter)
        self.monitor = ContinuousMonitor(self.display_current_price, self.subscriptions)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "OracleService":
        s = settings or get_settings()
        # Every endpoint is checked now, not when rotation first reaches it.
        validate_settings(s, s.endpoint_list())
        service = cls(
            endpoints=s.endpoint_list(),
            factory=partial(build_handle, settings=s),
            policy=s.retry_policy(),
            base=s.BASE_CURRENCY,
            counter=s.COUNTER_CURRENCY,
            filter_poll_interval_sec=s.FILTER_POLL_INTERVAL_SEC,
            history_batch_size=s.HISTORY_BATCH_SIZE,
        )
        logger.info(f"Oracle initialized with address: {s.ORACLE_CONTRACT_ADDRESS}")
        return service

    @property
    def endpoint(self) -> str:
        return self.connection.current()

    # ---------------- cached statics ----------------

    async def get_decimals(self) -> int:
        async def fetch() -> int:
            return await self.executor.execute_with_retry(lambda h: h.contract.decimals())
        return int(await self.cache.get_or_fetch("decimals", fetch))

    async def get_description(self) -> str:
        async def fetch() -> str:
            return await self.executor.execute_with_retry(lambda h: h.contract.description())
        return str(await self.cache.get_or_fetch("description", fetch))

    # ---------------- reads ----------------

    async def get_current_price(self) -> PriceSnapshot:
        decimals = await self.get_decimals()
        description = await self.get_description()
        answer = await self.executor.execute_with_retry(lambda h: h.contract.latest_answer())
        q = translate(answer, decimals, self.base, self.counter)
        return PriceSnapshot(
            usd_to_ngn=q.direct,
            ngn_to_usd=q.inverse,
            decimals=decimals,
            description=description,
            formatted_price=q.formatted_price,
            reverse_price=q.reverse_price,
            timestamp=now_utc_iso(),
        )

    async def get_latest_round_data(self) -> RoundData:
        decimals = await self.get_decimals()
        raw = await self.executor.execute_with_retry(lambda h: h.contract.latest_round_data())
        q = translate(raw.answer, decimals, self.base, self.counter)
        return RoundData(
            round_id=str(raw.round_id),
            answer=raw.answer,
            usd_to_ngn=q.direct,
            ngn_to_usd=q.inverse,
            formatted_price=q.formatted_price,
            reverse_price=q.reverse_price,
            started_at=raw.started_at,
            updated_at=raw.updated_at,
            answered_in_round=str(raw.answered_in_round),
            updated_at_formatted=iso_from_unix(raw.updated_at),
        )

    async def query_historical_events(self, block_range: int = 100, batch_size: Optional[int] = None) -> List[HistoricalEvent]:
        if batch_size is None:
            batch_size = self.history_batch_size
        return await self.batcher.query(block_range, batch_size)

    async def convert_usd_to_ngn(self, amount: float) -> Conversion:
        price = await self.get_current_price()
        converted = amount * price.usd_to_ngn
        return Conversion(
            amount=amount,
            converted=converted,
            rate=price.usd_to_ngn,
            formatted_result=f"{amount:g} {self.base} = {converted:.2f} {self.counter}",
            timestamp=price.timestamp,
        )

    async def convert_ngn_to_usd(self, amount: float) -> Conversion:
        price = await self.get_current_price()
        converted = amount * price.ngn_to_usd
        return Conversion(
            amount=amount,
            converted=converted,
            rate=price.ngn_to_usd,
            formatted_result=f"{amount:g} {self.counter} = {converted:.6f} {self.base}",
            timestamp=price.timestamp,
        )

    # ---------------- push events ----------------

    async def _on_answer_updated(self, log: AnswerUpdatedLog) -> None:
        decimals = await self.get_decimals()
        q = translate(log.current, decimals, self.base, self.counter)
        logger.info(
            f"Price Update Event: round={log.round_id} {q.formatted_price} | {q.reverse_price} "
            f"updated={iso_from_unix(log.updated_at)} block={log.block_number} tx={log.transaction_hash}"
        )

    async def setup_event_listeners(self) -> bool:
        try:
            await self.subscriptions.subscribe(ANSWER_UPDATED, self._on_answer_updated)
            installed = True
        except Exception as e:
            # Stays in the desired set; the poll loop retries the install.
            logger.error(f"Failed to setup event listeners: {e}")
            installed = False
        self.subscriptions.start_polling(self.filter_poll_interval_sec)
        if installed:
            logger.info("Event listeners set up successfully")
        return installed

    # ---------------- monitoring ----------------

    async def display_current_price(self) -> None:
        price = await self.get_current_price()
        logger.info(f"Current Exchange Rates: {price.formatted_price} | {price.reverse_price} (checked {price.timestamp})")

    async def monitor_price(self, interval_ms: int = 60000) -> None:
        await self.monitor.start(interval_ms)

    async def stop_monitoring(self) -> None:
        await self.monitor.stop()

    async def aclose(self) -> None:
        await self.stop_monitoring()
        await self.connection.close()
