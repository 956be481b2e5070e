from __future__ import annotations

import logging
import math
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from .errors import ErrorKind, InvalidRateError, OracleError, classify
from .models import ErrEnvelope, ErrorBody, OkEnvelope
from .oracle import OracleService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_oracle(request: Request) -> Optional[OracleService]:
    return getattr(request.app.state, "oracle", None)


def ok(data: Dict[str, Any]) -> OkEnvelope:
    return OkEnvelope(ok=True, data=data, ts=datetime.now(timezone.utc))


def err(code: str, message: str, status_code: int, source: str = "ngn_oracle", retriable: bool = False, details=None) -> JSONResponse:
    body = ErrEnvelope(
        ok=False,
        error=ErrorBody(code=code, message=message, source=source, retriable=retriable, details=details),
        ts=datetime.now(timezone.utc),
    )
    return JSONResponse(body.model_dump(mode="json"), status_code=status_code)


def upstream_error(action: str, exc: Exception) -> JSONResponse:
    logger.error(f"Error {action}: {exc}")
    if isinstance(exc, InvalidRateError):
        return err("UPSTREAM_ERROR", "invalid rate", 502, details={"reason": str(exc)})
    if isinstance(exc, (OracleError, httpx.HTTPError)):
        if classify(exc) is ErrorKind.RATE_LIMITED:
            return err("RATE_LIMIT", f"Failed {action}", 503, source="rpc", retriable=True)
        return err("UPSTREAM_ERROR", f"Failed {action}", 502, source="rpc", retriable=True, details={"reason": str(exc)})
    return err("INTERNAL", f"Failed {action}", 500)


def _parse_amount(raw: str) -> Optional[float]:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


@router.get("/health")
async def health(oracle: Optional[OracleService] = Depends(get_oracle)):
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "oracle": "initialized" if oracle is not None else "not initialized",
        "endpoint": oracle.endpoint if oracle is not None else None,
    }


def _unavailable() -> JSONResponse:
    return err("INTERNAL", "oracle not initialized", 503)


@router.get("/api/price")
async def price(oracle: Optional[OracleService] = Depends(get_oracle)):
    if oracle is None:
        return _unavailable()
    try:
        snap = await oracle.get_current_price()
    except Exception as e:
        return upstream_error("fetching price data", e)
    return ok(asdict(snap))


@router.get("/api/round")
async def round_data(oracle: Optional[OracleService] = Depends(get_oracle)):
    if oracle is None:
        return _unavailable()
    try:
        rd = await oracle.get_latest_round_data()
    except Exception as e:
        return upstream_error("fetching round data", e)
    return ok(asdict(rd))


@router.get("/api/convert/usd-to-ngn/{amount}")
async def usd_to_ngn(amount: str, oracle: Optional[OracleService] = Depends(get_oracle)):
    value = _parse_amount(amount)
    if value is None:
        return err("BAD_INPUT", "Invalid amount provided", 400)
    if oracle is None:
        return _unavailable()
    try:
        conv = await oracle.convert_usd_to_ngn(value)
    except Exception as e:
        return upstream_error("converting currency", e)
    return ok({
        "usd_amount": conv.amount,
        "ngn_amount": conv.converted,
        "rate": conv.rate,
        "formatted_result": conv.formatted_result,
        "timestamp": conv.timestamp,
    })


@router.get("/api/convert/ngn-to-usd/{amount}")
async def ngn_to_usd(amount: str, oracle: Optional[OracleService] = Depends(get_oracle)):
    value = _parse_amount(amount)
    if value is None:
        return err("BAD_INPUT", "Invalid amount provided", 400)
    if oracle is None:
        return _unavailable()
    try:
        conv = await oracle.convert_ngn_to_usd(value)
    except Exception as e:
        return upstream_error("converting currency", e)
    return ok({
        "ngn_amount": conv.amount,
        "usd_amount": conv.converted,
        "rate": conv.rate,
        "formatted_result": conv.formatted_result,
        "timestamp": conv.timestamp,
    })


@router.get("/api/history")
async def history(
    blocks: int = Query(50, ge=1, le=10000, description="How many recent blocks to scan"),
    oracle: Optional[OracleService] = Depends(get_oracle),
):
    if oracle is None:
        return _unavailable()
    try:
        events = await oracle.query_historical_events(blocks)
    except Exception as e:
        return upstream_error("fetching historical data", e)
    return ok({
        "events": [asdict(ev) for ev in events],
        "count": len(events),
        "blocks_queried": blocks,
    })
