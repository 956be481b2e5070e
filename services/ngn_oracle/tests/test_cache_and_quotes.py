import asyncio
import math

import pytest

from ngn_oracle.cache import StaticValueCache
from ngn_oracle.errors import InvalidRateError
from ngn_oracle.quotes import translate


@pytest.mark.asyncio
async def test_fetcher_runs_once_per_key():
    cache = StaticValueCache()
    calls = 0

    async def fetch():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.001)
        return 8

    results = await asyncio.gather(*(cache.get_or_fetch("decimals", fetch) for _ in range(5)))
    results.append(await cache.get_or_fetch("decimals", fetch))

    assert results == [8] * 6
    assert calls == 1
    assert cache.peek("decimals") == 8


@pytest.mark.asyncio
async def test_failed_fetch_leaves_key_empty():
    cache = StaticValueCache()

    async def broken():
        raise RuntimeError("rpc down")

    async def good():
        return "NGN / USD"

    with pytest.raises(RuntimeError):
        await cache.get_or_fetch("description", broken)
    assert "description" not in cache
    assert await cache.get_or_fetch("description", good) == "NGN / USD"


@pytest.mark.asyncio
async def test_unknown_key_rejected():
    cache = StaticValueCache()

    async def fetch():
        return 1

    with pytest.raises(KeyError):
        await cache.get_or_fetch("latestAnswer", fetch)


def test_translate_worked_example():
    q = translate(689, 6)
    assert q.inverse == pytest.approx(0.000689)
    assert q.direct == pytest.approx(1451.3788, rel=1e-6)
    assert q.formatted_price == "1 USD = 1451.38 NGN"
    assert q.reverse_price == "1 NGN = 0.000689 USD"
    assert q.decimals == 6


@pytest.mark.parametrize("answer,decimals", [(689, 6), (1, 0), (123456789, 8), (-42, 3), (10 ** 30, 18)])
def test_direct_times_inverse_is_one(answer, decimals):
    q = translate(answer, decimals)
    assert math.isclose(q.direct * q.inverse, 1.0, rel_tol=1e-12)


def test_translate_uses_currency_labels():
    q = translate(2, 0, base="EUR", counter="GBP")
    assert q.formatted_price == "1 EUR = 0.50 GBP"
    assert q.reverse_price == "1 GBP = 2.000000 EUR"


def test_zero_answer_has_no_reciprocal():
    with pytest.raises(InvalidRateError):
        translate(0, 6)
    with pytest.raises(ZeroDivisionError):
        translate(0, 0)


def test_negative_decimals_rejected():
    with pytest.raises(ValueError):
        translate(689, -1)
