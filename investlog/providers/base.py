"""Shared provider contract and payload helpers."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

import httpx


class QuoteProviderError(RuntimeError):
    """Raised when a provider cannot produce a usable price."""


class QuoteProvider(Protocol):
    """A single upstream source of current prices."""

    name: str

    async def fetch_price(self, symbol: str) -> Decimal:
        """Return a positive price or raise :class:`QuoteProviderError`."""
        ...

    async def aclose(self) -> None:
        ...


def parse_positive_price(raw: Any, *, source: str, symbol: str) -> Decimal:
    if raw is None or isinstance(raw, bool):
        raise QuoteProviderError(f"{source} returned no price for {symbol}")
    try:
        price = Decimal(str(raw))
    except (InvalidOperation, ValueError) as exc:
        raise QuoteProviderError(f"{source} returned a malformed price for {symbol}: {raw!r}") from exc
    if not price.is_finite() or price <= 0:
        raise QuoteProviderError(f"{source} returned a non-positive price for {symbol}: {raw!r}")
    return price


async def get_json(
    client: Any,
    url: str,
    params: dict[str, Any],
    *,
    timeout: float,
    source: str,
) -> dict[str, Any]:
    """GET ``url`` and return its JSON object, normalizing every failure."""

    try:
        response = await client.get(url, params=params, timeout=timeout)
    except httpx.HTTPError as exc:
        raise QuoteProviderError(f"Failed to reach {source}: {exc}") from exc
    if response.status_code >= 400:
        raise QuoteProviderError(f"{source} error {response.status_code}")
    try:
        payload = response.json()
    except ValueError as exc:
        raise QuoteProviderError(f"{source} returned invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise QuoteProviderError(f"{source} response is not a JSON object")
    return payload


__all__ = ["QuoteProvider", "QuoteProviderError", "parse_positive_price", "get_json"]
