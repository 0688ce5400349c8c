from __future__ import annotations

import datetime as dt
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.exc import OperationalError

from investlog.services.price_cache import InMemoryPriceCacheStore, PriceCache
from investlog.services.prices import PriceService, normalize_symbols
from investlog.services.quotes import QuoteFetcher
from tests.stubs import FakeClock, RecordingSleep, StubProvider

NOW = dt.datetime(2025, 12, 10, 9, 0, tzinfo=ZoneInfo("Asia/Shanghai"))


def make_service(provider: StubProvider, *, store=None, retries: int = 0):
    sleep = RecordingSleep()
    cache = PriceCache(store or InMemoryPriceCacheStore(), timezone="Asia/Shanghai", clock=FakeClock(NOW))
    fetcher = QuoteFetcher([provider], retries=retries, sleep=sleep)
    service = PriceService(fetcher, cache, interactive_retries=retries, request_delay=0.5, sleep=sleep)
    return service, cache, sleep


def test_normalize_symbols_dedupes_in_order():
    assert normalize_symbols([" aapl", "MSFT", "AAPL", ""]) == ["AAPL", "MSFT"]
    with pytest.raises(ValueError):
        normalize_symbols(["", "  "])


@pytest.mark.asyncio
async def test_fresh_cache_hit_skips_providers():
    provider = StubProvider("stub", {"AAPL": "150"})
    service, cache, _ = make_service(provider)
    await cache.set("AAPL", Decimal("149"))

    quote = await service.get_price("aapl")
    assert quote.cached is True
    assert quote.price == Decimal("149")
    assert provider.calls == []


@pytest.mark.asyncio
async def test_force_bypasses_cache_and_updates_it():
    provider = StubProvider("stub", {"AAPL": "150"})
    service, cache, _ = make_service(provider)
    await cache.set("AAPL", Decimal("149"))

    quote = await service.get_price("AAPL", force=True)
    assert quote.cached is False
    assert quote.price == Decimal("150")
    assert quote.last_update == NOW
    assert await cache.current_price("AAPL") == Decimal("150")


@pytest.mark.asyncio
async def test_not_found_leaves_cache_untouched():
    provider = StubProvider("stub", fail=True)
    service, cache, sleep = make_service(provider, retries=2)
    await cache.set("AAPL", Decimal("149"))

    assert await service.get_price("AAPL", force=True) is None
    assert await cache.current_price("AAPL") == Decimal("149")
    assert sleep.calls == [2.0, 4.0]


@pytest.mark.asyncio
async def test_bulk_refresh_reports_each_symbol_and_paces_requests():
    provider = StubProvider("stub", {"AAPL": "150", "MSFT": "410"})
    service, cache, sleep = make_service(provider)

    results = await service.refresh(["AAPL", "TSLA", "msft"])
    assert list(results) == ["AAPL", "TSLA", "MSFT"]
    assert results["AAPL"].ok and results["AAPL"].price == Decimal("150")
    assert not results["TSLA"].ok
    assert results["TSLA"].error == "price not found"
    assert results["MSFT"].last_update == NOW
    assert sleep.calls == [0.5, 0.5]
    assert await cache.current_price("TSLA") is None


@pytest.mark.asyncio
async def test_bulk_refresh_without_force_reuses_fresh_entries():
    provider = StubProvider("stub", {"AAPL": "150", "MSFT": "410"})
    service, cache, _ = make_service(provider)
    await cache.set("AAPL", Decimal("149"))

    results = await service.refresh(["AAPL", "MSFT"], force=False, request_delay=0)
    assert results["AAPL"].price == Decimal("149")
    assert provider.calls == ["MSFT"]


@pytest.mark.asyncio
async def test_storage_failure_is_a_per_symbol_error():
    class FlakyStore(InMemoryPriceCacheStore):
        async def set_many(self, entries):
            entries = list(entries)
            if any(entry.symbol == "AAPL" for entry in entries):
                raise OperationalError("INSERT", {}, Exception("database is locked"))
            await super().set_many(entries)

    provider = StubProvider("stub", {"AAPL": "150", "MSFT": "410"})
    service, _, _ = make_service(provider, store=FlakyStore())
    results = await service.refresh(["AAPL", "MSFT"])
    assert results["AAPL"].error.startswith("storage error")
    assert results["MSFT"].ok


@pytest.mark.asyncio
async def test_empty_refresh_rejected():
    service, _, _ = make_service(StubProvider("stub"))
    with pytest.raises(ValueError):
        await service.refresh([])
