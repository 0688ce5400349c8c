"""Test doubles shared across the suite."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any

from investlog.providers import QuoteProviderError


class StubProvider:
    """Quote provider returning canned prices, or raising for unknown symbols."""

    def __init__(self, name: str, prices: dict[str, Any] | None = None, *, fail: bool = False) -> None:
        self.name = name
        self.prices = dict(prices or {})
        self.fail = fail
        self.calls: list[str] = []
        self.closed = False

    async def fetch_price(self, symbol: str) -> Decimal:
        self.calls.append(symbol)
        if self.fail or symbol not in self.prices:
            raise QuoteProviderError(f"{self.name} has no price for {symbol}")
        return Decimal(str(self.prices[symbol]))

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, now: dt.datetime) -> None:
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + dt.timedelta(**delta)


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class StubResponse:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class StubClient:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self.payload = payload
        self.status_code = status_code
        self.calls: list[tuple[str, dict[str, object]]] = []

    async def get(self, url: str, params: dict[str, object], timeout: float) -> StubResponse:
        self.calls.append((url, params))
        return StubResponse(self.payload, self.status_code)

    async def aclose(self) -> None:  # pragma: no cover - included for interface completeness
        return None
