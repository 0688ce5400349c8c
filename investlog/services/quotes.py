"""Quote source adapter: ordered provider fallback with linear backoff."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, Sequence

from investlog.config import AppSettings
from investlog.providers import AlphaVantageClient, FinnhubClient, QuoteProvider, QuoteProviderError

logger = logging.getLogger(__name__)


class QuoteFetcher:
    """Fetch one instrument's current price from the first provider that has it.

    Every provider is tried in order for each attempt; the whole sequence is
    repeated up to ``retries`` more times, attempt ``k`` waiting
    ``k * base_delay`` seconds first. ``None`` means no provider produced a
    positive price. Nothing is cached here.
    """

    def __init__(
        self,
        providers: Sequence[QuoteProvider],
        *,
        retries: int = 0,
        base_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._providers = list(providers)
        self.retries = retries
        self.base_delay = base_delay
        self._sleep = sleep

    @property
    def provider_names(self) -> list[str]:
        return [provider.name for provider in self._providers]

    async def _try_providers(self, symbol: str) -> Decimal | None:
        for provider in self._providers:
            try:
                price = await provider.fetch_price(symbol)
            except QuoteProviderError as exc:
                logger.warning("%s failed for %s: %s", provider.name, symbol, exc)
                continue
            if price is None or price <= 0:
                logger.warning("%s returned unusable price %r for %s", provider.name, price, symbol)
                continue
            logger.info("%s = %s (%s)", symbol, price, provider.name)
            return price
        return None

    async def fetch(self, symbol: str, *, retries: int | None = None) -> Decimal | None:
        symbol = symbol.strip().upper()
        if not symbol:
            raise ValueError("Symbol must not be empty")
        if not self._providers:
            logger.error("No quote providers configured; cannot price %s", symbol)
            return None
        attempts = (self.retries if retries is None else retries) + 1
        for attempt in range(attempts):
            if attempt > 0:
                wait = attempt * self.base_delay
                logger.info("Retrying %s in %.1fs (attempt %d/%d)", symbol, wait, attempt + 1, attempts)
                await self._sleep(wait)
            price = await self._try_providers(symbol)
            if price is not None:
                return price
        logger.error("%s not found after %d attempt(s)", symbol, attempts)
        return None

    async def aclose(self) -> None:
        for provider in self._providers:
            await provider.aclose()


def build_providers(settings: AppSettings, *, client: Any | None = None) -> list[QuoteProvider]:
    """Instantiate the configured providers in fallback order, skipping those without keys."""

    providers: list[QuoteProvider] = []
    for name in settings.quote_providers:
        key = name.strip().lower()
        if key == "finnhub":
            if not settings.finnhub_api_key:
                logger.warning("Finnhub API key not configured; provider skipped")
                continue
            providers.append(
                FinnhubClient(settings.finnhub_api_key, timeout=settings.quote_timeout_seconds, client=client)
            )
        elif key == "alpha_vantage":
            if not settings.alphavantage_api_key:
                logger.warning("Alpha Vantage API key not configured; provider skipped")
                continue
            providers.append(
                AlphaVantageClient(
                    settings.alphavantage_api_key,
                    timeout=settings.quote_timeout_seconds,
                    client=client,
                )
            )
        else:
            logger.warning("Unknown quote provider %r ignored", name)
    return providers


__all__ = ["QuoteFetcher", "build_providers"]
