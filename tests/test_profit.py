from __future__ import annotations

import datetime as dt
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from investlog.schemas import TransactionCreateRequest
from investlog.services.positions import PositionAggregator
from investlog.services.price_cache import InMemoryPriceCacheStore, PriceCache
from investlog.services.profit import (
    DailyProfitCalculator,
    DailyProfitResult,
    ProfitStore,
    profit_rate,
    round_currency,
)
from investlog.services.snapshots import SnapshotStore
from investlog.services.transactions import TransactionStore
from tests.stubs import FakeClock

DEC3 = dt.date(2025, 12, 3)
DEC4 = dt.date(2025, 12, 4)
DEC5 = dt.date(2025, 12, 5)


def build(database, *, policy: str = "cost_basis", cache: PriceCache | None = None):
    snapshots = SnapshotStore(database)
    profits = ProfitStore(database)
    cache = cache or PriceCache(
        InMemoryPriceCacheStore(),
        timezone="Asia/Shanghai",
        clock=FakeClock(dt.datetime(2025, 12, 10, 9, 0, tzinfo=ZoneInfo("Asia/Shanghai"))),
    )
    calculator = DailyProfitCalculator(
        PositionAggregator(database), snapshots, cache, profits, missing_price_policy=policy
    )
    return calculator, snapshots, profits, cache


async def buy(database, symbol: str, day: dt.date, price: str, shares: str) -> None:
    await TransactionStore(database).create(
        TransactionCreateRequest(symbol=symbol, date=day, price=Decimal(price), shares=Decimal(shares))
    )


def test_rounding_and_rate_helpers():
    assert round_currency(Decimal("6.665")) == Decimal("6.67")
    assert round_currency(Decimal("-0.005")) == Decimal("-0.01")
    assert profit_rate(Decimal("100"), Decimal("0")) == Decimal("0")
    assert round_currency(profit_rate(Decimal("100"), Decimal("1500"))) == Decimal("6.67")


@pytest.mark.asyncio
async def test_no_positions_yields_zero_record(database):
    async with database:
        calculator, _, _, _ = build(database)
        result = await calculator.calculate(DEC3)
        assert result == DailyProfitResult.zero(DEC3)
        assert result.total_value == Decimal("0")


@pytest.mark.asyncio
async def test_first_purchase_day_without_snapshot_has_zero_profit(database):
    async with database:
        calculator, _, _, _ = build(database)
        await buy(database, "AAPL", DEC3, "150", "10")
        result = await calculator.save(DEC3)
        assert result.total_value == Decimal("1500.00")
        assert result.profit == Decimal("0.00")
        assert result.profit_rate == Decimal("0.00")
        assert result.fallback_symbols == ("AAPL",)
        assert result.is_market_closed is True
        assert result.incomplete is False


@pytest.mark.asyncio
async def test_next_day_snapshot_produces_profit_against_prior_record(database):
    async with database:
        calculator, snapshots, profits, _ = build(database)
        await buy(database, "AAPL", DEC3, "150", "10")
        await calculator.save(DEC3)
        await snapshots.set("AAPL", DEC4, Decimal("160"))

        result = await calculator.save(DEC4)
        assert result.total_value == Decimal("1600.00")
        assert result.profit == Decimal("100.00")
        assert result.profit_rate == Decimal("6.67")
        assert result.is_market_closed is False

        stored = await profits.get(DEC4)
        assert stored == result


@pytest.mark.asyncio
async def test_new_investment_is_not_counted_as_profit(database):
    async with database:
        calculator, snapshots, _, _ = build(database)
        await buy(database, "AAPL", DEC3, "150", "10")
        await calculator.save(DEC3)
        await buy(database, "AAPL", DEC4, "160", "5")
        await snapshots.set("AAPL", DEC4, Decimal("160"))

        result = await calculator.save(DEC4)
        # 15 shares at 160 = 2400; previous 1500; new money 800
        assert result.total_value == Decimal("2400.00")
        assert result.profit == Decimal("100.00")


@pytest.mark.asyncio
async def test_profit_chain_sums_to_value_change(database):
    async with database:
        calculator, snapshots, _, _ = build(database)
        await buy(database, "AAPL", DEC3, "150", "10")
        await snapshots.set("AAPL", DEC3, Decimal("150"))
        await snapshots.set("AAPL", DEC4, Decimal("140"))
        await snapshots.set("AAPL", DEC5, Decimal("155"))
        results = [await calculator.save(day) for day in (DEC3, DEC4, DEC5)]
        assert [r.profit for r in results] == [Decimal("0.00"), Decimal("-100.00"), Decimal("150.00")]
        assert sum(r.profit for r in results) == results[-1].total_value - Decimal("1500")


@pytest.mark.asyncio
async def test_recalculating_a_day_is_idempotent(database):
    async with database:
        calculator, snapshots, profits, _ = build(database)
        await buy(database, "AAPL", DEC3, "150", "10")
        await snapshots.set("AAPL", DEC4, Decimal("160"))
        await calculator.save(DEC3)
        first = await calculator.save(DEC4)
        second = await calculator.save(DEC4)
        assert first == second
        assert len(await profits.get_range(DEC3, DEC4)) == 2


@pytest.mark.asyncio
async def test_missing_snapshot_uses_cached_price(database):
    async with database:
        calculator, _, _, cache = build(database)
        await buy(database, "AAPL", DEC3, "150", "10")
        await cache.set("AAPL", Decimal("155"))
        result = await calculator.calculate(DEC3)
        assert result.total_value == Decimal("1550.00")
        assert result.fallback_symbols == ()


@pytest.mark.asyncio
async def test_flag_policy_marks_cost_valued_days_incomplete(database):
    async with database:
        calculator, _, _, _ = build(database, policy="flag")
        await buy(database, "AAPL", DEC3, "150", "10")
        result = await calculator.calculate(DEC3)
        assert result.incomplete is True
        assert result.total_value == Decimal("1500.00")


@pytest.mark.asyncio
async def test_weekend_marked_closed_even_with_prices(database):
    async with database:
        calculator, snapshots, _, _ = build(database)
        saturday = dt.date(2025, 12, 6)
        await buy(database, "AAPL", DEC3, "150", "10")
        await snapshots.set("AAPL", saturday, Decimal("150"))
        assert (await calculator.calculate(saturday)).is_market_closed is True


@pytest.mark.asyncio
async def test_profit_store_queries(database):
    async with database:
        store = ProfitStore(database)
        for offset, value in enumerate(["100", "110", "120"]):
            day = DEC3 + dt.timedelta(days=offset)
            await store.save(DailyProfitResult(day, Decimal("10"), Decimal("1"), Decimal(value)))
        assert (await store.latest_before(DEC5)).date == DEC4
        assert await store.latest_before(DEC3) is None
        assert await store.delete(DEC3) is True
        assert await store.delete_from(DEC5) == 1
        assert [r.date for r in await store.get_range(DEC3, DEC5)] == [DEC4]
        assert await store.delete_all() == 1
