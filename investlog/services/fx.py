"""Display-currency conversion backed by the price cache."""

from __future__ import annotations

import logging
from decimal import Decimal

from investlog.providers import ExchangeRateClient, ExchangeRateError

from .price_cache import PriceCache
from .profit import round_currency

logger = logging.getLogger(__name__)


def rate_key(base: str, target: str) -> str:
    return f"{base.strip().upper()}/{target.strip().upper()}"


def convert(amount: Decimal, rate: Decimal) -> Decimal:
    return round_currency(Decimal(amount) * rate)


class ExchangeRateService:
    """One conversion rate per currency pair, refreshed at the daily cutover.

    When the API fails the last cached rate is used, however old.
    """

    def __init__(self, client: ExchangeRateClient, cache: PriceCache) -> None:
        self._client = client
        self._cache = cache

    async def get_rate(self, base: str, target: str, *, force: bool = False) -> Decimal | None:
        key = rate_key(base, target)
        if key.split("/")[0] == key.split("/")[1]:
            return Decimal("1")
        if not force:
            entry = await self._cache.get_fresh(key)
            if entry is not None:
                return entry.price
        try:
            rate = await self._client.fetch_rate(base, target)
        except ExchangeRateError as exc:
            logger.warning("Exchange rate %s unavailable: %s", key, exc)
            return await self._cache.current_price(key)
        await self._cache.set(key, rate)
        return rate


__all__ = ["ExchangeRateService", "convert", "rate_key"]
