"""
Exchange rates for the wallet path.

    rates = StaticRates({("RWF", "ETH"): Decimal(1) / Decimal(3_500_000)})
    match await rates.get_exchange_rate("RWF", "ETH"):
        case Ok(rate): ...
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, ROUND_HALF_UP
from typing import Protocol

import httpx
from kungfu import LazyCoroResult, Result, Ok, Error

from storefront.errors import Failure, Failures
from storefront.lift import provider

WEI_PER_ETH = Decimal(10) ** 18

DEFAULT_RATES: Mapping[tuple[str, str], Decimal] = {
    ("RWF", "ETH"): Decimal(1) / Decimal(3_500_000),
}


class ExchangeRateProvider(Protocol):
    async def get_exchange_rate(self, source: str, target: str) -> Result[Decimal, Failure]: ...


class StaticRates:
    def __init__(self, rates: Mapping[tuple[str, str], Decimal] = DEFAULT_RATES) -> None:
        self._rates = {(s.upper(), t.upper()): rate for (s, t), rate in rates.items()}

    async def get_exchange_rate(self, source: str, target: str) -> Result[Decimal, Failure]:
        key = (source.upper(), target.upper())
        if key[0] == key[1]:
            return Ok(Decimal(1))
        if key in self._rates:
            return Ok(self._rates[key])
        inverse = (key[1], key[0])
        if inverse in self._rates and self._rates[inverse]:
            return Ok(Decimal(1) / self._rates[inverse])
        return Error(Failures.provider(f"No exchange rate for {source}/{target}"))


class HttpExchangeRates:
    """
    Rate lookup over HTTP.

    Expects ``GET {url}?base=RWF&symbols=ETH`` to answer
    ``{"rates": {"ETH": "0.000000285"}}``.
    """

    def __init__(self, url: str, client: httpx.AsyncClient) -> None:
        self._url = url
        self._client = client

    def _fetch(self, source: str, target: str) -> LazyCoroResult[dict, Failure]:
        async def impl() -> dict:
            response = await self._client.get(self._url, params={"base": source, "symbols": target})
            response.raise_for_status()
            return response.json()
        return provider(impl, "Exchange rate lookup failed")

    async def get_exchange_rate(self, source: str, target: str) -> Result[Decimal, Failure]:
        match await self._fetch(source.upper(), target.upper()):
            case Error(e):
                return Error(e)
            case Ok(body):
                raw = (body.get("rates") or {}).get(target.upper())
                if raw is None:
                    return Error(Failures.provider(f"No exchange rate for {source}/{target}"))
                return Ok(Decimal(str(raw)))


async def quote_wei(
    rates: ExchangeRateProvider,
    amount: Decimal,
    source: str,
    target: str,
) -> Result[int, Failure]:
    """Order amount converted to the target coin, in wei."""
    match await rates.get_exchange_rate(source, target):
        case Error(e):
            return Error(e)
        case Ok(rate):
            return Ok(to_wei(amount * rate))


def to_wei(amount: Decimal) -> int:
    return int((amount * WEI_PER_ETH).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def wei_hex(wei: int) -> str:
    return hex(wei)


__all__ = (
    "ExchangeRateProvider",
    "StaticRates",
    "HttpExchangeRates",
    "DEFAULT_RATES",
    "WEI_PER_ETH",
    "quote_wei",
    "to_wei",
    "wei_hex",
)
