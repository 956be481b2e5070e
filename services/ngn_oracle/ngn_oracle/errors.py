"""
Error taxonomy for the oracle access layer.

`classify` is the only place that knows how a provider reports throttling or
an expired log filter; the retry executor works purely on `ErrorKind`.
"""
from __future__ import annotations

import enum
from typing import Any, Optional

import httpx

RATE_LIMIT_CODES = frozenset({-32016, -32005, 429})
RATE_LIMIT_MARKERS = ("rate limit", "too many requests")
FILTER_EXPIRED_MARKERS = ("filter not found",)


class OracleError(Exception):
    """Base class for errors raised by the oracle core."""


class ConstructionError(OracleError):
    """A transport handle could not be built (bad configuration)."""


class AbiDecodeError(OracleError):
    """A provider result did not have the expected ABI shape."""


class InvalidRateError(OracleError, ZeroDivisionError):
    """The raw answer is zero, so the reciprocal rate is undefined."""


class RpcError(OracleError):
    """An error payload (or throttling status) returned by a JSON-RPC endpoint."""

    def __init__(self, code: Optional[int], message: str, endpoint: str = "", data: Any = None):
        super().__init__(f"rpc error {code}: {message}")
        self.code = code
        self.message = message
        self.endpoint = endpoint
        self.data = data


class ErrorKind(enum.Enum):
    RATE_LIMITED = "RATE_LIMITED"
    FILTER_EXPIRED = "FILTER_EXPIRED"
    OTHER = "OTHER"

    @property
    def transient(self) -> bool:
        return self is not ErrorKind.OTHER


def _mentions(text: str, markers) -> bool:
    lowered = (text or "").lower()
    return any(m in lowered for m in markers)


def classify(exc: BaseException) -> ErrorKind:
    """Map a raw transport failure onto the retry taxonomy."""
    if isinstance(exc, RpcError):
        detail = f"{exc.message} {exc.data or ''}"
        if exc.code in RATE_LIMIT_CODES or _mentions(detail, RATE_LIMIT_MARKERS):
            return ErrorKind.RATE_LIMITED
        if _mentions(detail, FILTER_EXPIRED_MARKERS):
            return ErrorKind.FILTER_EXPIRED
        return ErrorKind.OTHER
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 429:
        return ErrorKind.RATE_LIMITED
    return ErrorKind.OTHER
