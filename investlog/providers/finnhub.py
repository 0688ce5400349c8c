"""Finnhub quote client."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import httpx

from .base import QuoteProviderError, get_json, parse_positive_price

BASE_URL = "https://finnhub.io/api/v1/quote"


class FinnhubClient:
    """Current-price lookups against the Finnhub ``/quote`` endpoint."""

    name = "finnhub"

    def __init__(
        self,
        api_key: str,
        *,
        timeout: float = 10.0,
        client: Any | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Finnhub API key is required")
        self._api_key = api_key
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    async def fetch_price(self, symbol: str) -> Decimal:
        payload = await get_json(
            self._client,
            BASE_URL,
            {"symbol": symbol, "token": self._api_key},
            timeout=self._timeout,
            source="Finnhub",
        )
        if "error" in payload:
            raise QuoteProviderError(f"Finnhub error for {symbol}: {payload['error']}")
        # {c: current, h: high, l: low, o: open, pc: previous close, t: timestamp}
        return parse_positive_price(payload.get("c"), source="Finnhub", symbol=symbol)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["FinnhubClient"]
