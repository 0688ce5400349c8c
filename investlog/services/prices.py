"""Interactive price lookups and bulk refreshes through the price cache."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable

from sqlalchemy.exc import SQLAlchemyError

from .price_cache import PriceCache
from .quotes import QuoteFetcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceQuote:
    symbol: str
    price: Decimal
    cached: bool
    last_update: dt.datetime


@dataclass(frozen=True)
class RefreshResult:
    symbol: str
    price: Decimal | None = None
    last_update: dt.datetime | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.price is not None


def normalize_symbols(symbols: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for symbol in symbols:
        normalized = str(symbol).strip().upper()
        if normalized:
            seen.setdefault(normalized, None)
    if not seen:
        raise ValueError("Symbol list must not be empty")
    return list(seen)


class PriceService:
    def __init__(
        self,
        fetcher: QuoteFetcher,
        cache: PriceCache,
        *,
        interactive_retries: int = 1,
        request_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._fetcher = fetcher
        self._cache = cache
        self.interactive_retries = interactive_retries
        self.request_delay = request_delay
        self._sleep = sleep

    async def get_price(self, symbol: str, *, force: bool = False) -> PriceQuote | None:
        """Price one instrument; ``None`` when every provider failed."""

        symbol = symbol.strip().upper()
        if not symbol:
            raise ValueError("Symbol must not be empty")
        if not force:
            entry = await self._cache.get_fresh(symbol)
            if entry is not None:
                logger.debug("Using cached %s = %s (updated %s)", symbol, entry.price, entry.updated_at)
                return PriceQuote(symbol=symbol, price=entry.price, cached=True, last_update=entry.updated_at)
        price = await self._fetcher.fetch(symbol, retries=self.interactive_retries)
        if price is None:
            return None
        entry = await self._cache.set(symbol, price)
        return PriceQuote(symbol=symbol, price=entry.price, cached=False, last_update=entry.updated_at)

    async def _refresh_one(self, symbol: str, *, force: bool, retries: int | None) -> RefreshResult:
        if not force:
            entry = await self._cache.get_fresh(symbol)
            if entry is not None:
                return RefreshResult(symbol=symbol, price=entry.price, last_update=entry.updated_at)
        price = await self._fetcher.fetch(symbol, retries=retries)
        if price is None:
            return RefreshResult(symbol=symbol, error="price not found")
        try:
            entry = await self._cache.set(symbol, price)
        except SQLAlchemyError as exc:
            logger.exception("Failed to cache %s", symbol)
            return RefreshResult(symbol=symbol, error=f"storage error: {exc.__class__.__name__}")
        return RefreshResult(symbol=symbol, price=entry.price, last_update=entry.updated_at)

    async def refresh(
        self,
        symbols: Iterable[str],
        *,
        force: bool = True,
        retries: int | None = None,
        request_delay: float | None = None,
    ) -> dict[str, RefreshResult]:
        """Fetch symbols one at a time, pausing between upstream requests.

        A failing symbol is reported in its own result and never aborts the
        rest of the batch.
        """

        ordered = normalize_symbols(symbols)
        delay = self.request_delay if request_delay is None else request_delay
        results: dict[str, RefreshResult] = {}
        for index, symbol in enumerate(ordered):
            if index > 0 and delay > 0:
                await self._sleep(delay)
            results[symbol] = await self._refresh_one(symbol, force=force, retries=retries)
        succeeded = sum(1 for result in results.values() if result.ok)
        logger.info("Price refresh finished: %d succeeded, %d failed", succeeded, len(results) - succeeded)
        return results


__all__ = ["PriceQuote", "PriceService", "RefreshResult", "normalize_symbols"]
