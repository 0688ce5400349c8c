"""Alpha Vantage client used for fallback quotes."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from decimal import Decimal
from typing import Any, Awaitable, Callable, Deque

import httpx

from .base import QuoteProviderError, get_json, parse_positive_price

BASE_URL = "https://www.alphavantage.co/query"
_ERROR_KEYS = ("Note", "Information", "Error Message")


class AlphaVantageClient:
    """Throttled Alpha Vantage client for ``GLOBAL_QUOTE`` lookups."""

    name = "alpha_vantage"

    def __init__(
        self,
        api_key: str,
        *,
        requests_per_minute: int = 5,
        timeout: float = 10.0,
        client: Any | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if not api_key:
            raise ValueError("Alpha Vantage API key is required")
        self._api_key = api_key
        self._requests_per_minute = max(1, requests_per_minute)
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self._clock = clock
        self._sleep = sleep
        self._calls: Deque[float] = deque()
        self._lock = asyncio.Lock()

    async def _throttle(self) -> None:
        async with self._lock:
            now = self._clock()
            while self._calls and now - self._calls[0] >= 60:
                self._calls.popleft()
            if len(self._calls) >= self._requests_per_minute:
                await self._sleep(60 - (now - self._calls[0]))
                self._calls.popleft()
            self._calls.append(self._clock())

    async def _call(self, params: dict[str, Any]) -> dict[str, Any]:
        await self._throttle()
        payload = await get_json(
            self._client,
            BASE_URL,
            {**params, "apikey": self._api_key},
            timeout=self._timeout,
            source="Alpha Vantage",
        )
        for key in _ERROR_KEYS:
            if key in payload:
                raise QuoteProviderError(f"Alpha Vantage: {payload[key]}")
        return payload

    async def fetch_price(self, symbol: str) -> Decimal:
        payload = await self._call({"function": "GLOBAL_QUOTE", "symbol": symbol})
        quote = payload.get("Global Quote")
        if not isinstance(quote, dict) or not quote:
            raise QuoteProviderError(f"Alpha Vantage returned no quote for {symbol}")
        return parse_positive_price(quote.get("05. price"), source="Alpha Vantage", symbol=symbol)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["AlphaVantageClient"]
