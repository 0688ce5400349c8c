"""Exchange-rate client for display-currency conversion."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import httpx

from .base import QuoteProviderError, get_json, parse_positive_price

DEFAULT_URL = "https://open.er-api.com/v6/latest"


class ExchangeRateError(RuntimeError):
    """Raised when the exchange-rate API cannot produce a rate."""


class ExchangeRateClient:
    def __init__(
        self,
        base_url: str = DEFAULT_URL,
        *,
        timeout: float = 10.0,
        client: Any | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    async def fetch_rate(self, base: str, target: str) -> Decimal:
        """Return how many units of ``target`` one unit of ``base`` buys."""

        try:
            payload = await get_json(
                self._client,
                f"{self._base_url}/{base.upper()}",
                {},
                timeout=self._timeout,
                source="Exchange-rate API",
            )
            if payload.get("result") == "error":
                raise ExchangeRateError(f"Exchange-rate API error: {payload.get('error-type', 'unknown')}")
            rates = payload.get("rates")
            if not isinstance(rates, dict):
                raise ExchangeRateError("Exchange-rate payload has no rates")
            return parse_positive_price(rates.get(target.upper()), source="Exchange-rate API", symbol=target)
        except QuoteProviderError as exc:
            raise ExchangeRateError(str(exc)) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["ExchangeRateClient", "ExchangeRateError", "DEFAULT_URL"]
