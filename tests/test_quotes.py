from __future__ import annotations

from decimal import Decimal

import pytest

from investlog.config import AppSettings
from investlog.providers import AlphaVantageClient, FinnhubClient
from investlog.services.quotes import QuoteFetcher, build_providers
from tests.stubs import RecordingSleep, StubClient, StubProvider


@pytest.mark.asyncio
async def test_falls_through_to_next_provider_and_stops_at_first_price():
    a = StubProvider("a", fail=True)
    b = StubProvider("b", {"AAPL": 42})
    c = StubProvider("c", {"AAPL": 99})
    fetcher = QuoteFetcher([a, b, c])
    assert await fetcher.fetch("AAPL") == Decimal("42")
    assert a.calls == ["AAPL"]
    assert c.calls == []


@pytest.mark.asyncio
async def test_all_providers_failing_returns_none_after_linear_backoff():
    sleep = RecordingSleep()
    a = StubProvider("a", fail=True)
    b = StubProvider("b", fail=True)
    fetcher = QuoteFetcher([a, b], retries=2, base_delay=2.0, sleep=sleep)
    assert await fetcher.fetch("AAPL") is None
    assert sleep.calls == [2.0, 4.0]
    assert len(a.calls) == 3
    assert len(b.calls) == 3


@pytest.mark.asyncio
async def test_per_call_retries_override_default():
    sleep = RecordingSleep()
    fetcher = QuoteFetcher([StubProvider("a", fail=True)], retries=5, sleep=sleep)
    assert await fetcher.fetch("AAPL", retries=0) is None
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_non_positive_price_is_skipped():
    class ZeroProvider(StubProvider):
        async def fetch_price(self, symbol):
            self.calls.append(symbol)
            return Decimal("0")

    fetcher = QuoteFetcher([ZeroProvider("zero"), StubProvider("b", {"MSFT": "410.5"})])
    assert await fetcher.fetch("msft") == Decimal("410.5")


@pytest.mark.asyncio
async def test_empty_symbol_rejected():
    with pytest.raises(ValueError):
        await QuoteFetcher([]).fetch("  ")


@pytest.mark.asyncio
async def test_no_providers_yields_none():
    assert await QuoteFetcher([]).fetch("AAPL") is None


def test_build_providers_keeps_configured_order_and_skips_missing_keys():
    settings = AppSettings(
        _env_file=None,
        finnhub_api_key=None,
        alphavantage_api_key="av",
        quote_providers=["finnhub", "alpha_vantage", "bogus"],
    )
    providers = build_providers(settings, client=StubClient({}))
    assert [p.name for p in providers] == ["alpha_vantage"]
    assert isinstance(providers[0], AlphaVantageClient)

    settings = AppSettings(
        _env_file=None,
        finnhub_api_key="fh",
        alphavantage_api_key="av",
        quote_providers=["alpha_vantage", "finnhub"],
    )
    providers = build_providers(settings, client=StubClient({}))
    assert [type(p) for p in providers] == [AlphaVantageClient, FinnhubClient]
