from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, localcontext

from .errors import InvalidRateError
from .models import Quote


def qd(x: Decimal, q: str = "0.01") -> str:
    return str(x.quantize(Decimal(q), rounding=ROUND_HALF_UP))


def translate(answer: int, decimals: int, base: str = "USD", counter: str = "NGN") -> Quote:
    """
    Turn a raw aggregator answer into both directions of the rate.

    The feed reports `inverse` (base units per 1 counter unit, e.g. USD per NGN);
    `direct` is its reciprocal. A zero answer has no reciprocal.
    """
    if decimals < 0:
        raise ValueError("decimals must be non-negative")
    with localcontext() as ctx:
        ctx.prec = 50
        inverse = Decimal(int(answer)).scaleb(-int(decimals))
        if inverse == 0:
            raise InvalidRateError(f"raw answer {answer} gives a zero rate")
        direct = Decimal(1) / inverse
    return Quote(
        direct=float(direct),
        inverse=float(inverse),
        decimals=int(decimals),
        formatted_price=f"1 {base} = {qd(direct)} {counter}",
        reverse_price=f"1 {counter} = {qd(inverse, '0.000001')} {base}",
    )


def iso_from_unix(ts: int) -> str:
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).isoformat()


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
