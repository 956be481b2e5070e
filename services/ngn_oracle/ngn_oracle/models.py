from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel


# ---------------- records returned by the core ----------------

@dataclass(frozen=True, slots=True)
class RawRound:
    """latestRoundData() exactly as the aggregator returns it."""
    round_id: int
    answer: int
    started_at: int
    updated_at: int
    answered_in_round: int


@dataclass(frozen=True, slots=True)
class AnswerUpdatedLog:
    """One decoded AnswerUpdated log, from eth_getLogs or a filter poll."""
    current: int
    round_id: int
    updated_at: int
    block_number: int
    transaction_hash: str


@dataclass(frozen=True, slots=True)
class Quote:
    direct: float          # counter units per 1 base unit (NGN per USD)
    inverse: float         # base units per 1 counter unit (USD per NGN)
    decimals: int
    formatted_price: str   # "1 USD = 1451.38 NGN"
    reverse_price: str     # "1 NGN = 0.000689 USD"


@dataclass(frozen=True, slots=True)
class PriceSnapshot:
    usd_to_ngn: float
    ngn_to_usd: float
    decimals: int
    description: str
    formatted_price: str
    reverse_price: str
    timestamp: str


@dataclass(frozen=True, slots=True)
class RoundData:
    # Round ids are uint80 on chain; kept as strings so callers only compare them.
    round_id: str
    answer: int
    usd_to_ngn: float
    ngn_to_usd: float
    formatted_price: str
    reverse_price: str
    started_at: int
    updated_at: int
    answered_in_round: str
    updated_at_formatted: str


@dataclass(frozen=True, slots=True)
class HistoricalEvent:
    block_number: int
    transaction_hash: str
    round_id: str
    answer: int
    usd_to_ngn: float
    ngn_to_usd: float
    formatted_price: str
    reverse_price: str
    updated_at: int
    updated_at_formatted: str


@dataclass(frozen=True, slots=True)
class Conversion:
    amount: float
    converted: float
    rate: float
    formatted_result: str
    timestamp: str


# ---------------- HTTP envelopes ----------------

class ErrorBody(BaseModel):
    code: Literal["BAD_INPUT", "UPSTREAM_ERROR", "RATE_LIMIT", "INTERNAL"]
    message: str
    source: Literal["ngn_oracle", "rpc"] = "ngn_oracle"
    retriable: bool = False
    details: Optional[Dict[str, Any]] = None


class OkEnvelope(BaseModel):
    ok: Literal[True] = True
    data: Dict[str, Any]
    ts: datetime


class ErrEnvelope(BaseModel):
    ok: Literal[False] = False
    error: ErrorBody
    ts: datetime
