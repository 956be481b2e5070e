"""Resilient reader for the on-chain NGN/USD price feed."""

from .errors import ConstructionError, ErrorKind, InvalidRateError, OracleError, RpcError, classify
from .oracle import OracleService

__all__ = [
    "ConstructionError",
    "ErrorKind",
    "InvalidRateError",
    "OracleError",
    "OracleService",
    "RpcError",
    "classify",
]
