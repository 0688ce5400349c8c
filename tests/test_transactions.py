from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from investlog.schemas import TransactionCreateRequest, TransactionUpdateRequest
from investlog.services.positions import PositionAggregator
from investlog.services.transactions import TransactionStore


def buy(symbol: str, day: str, price: str, shares: str | None = None, **extra) -> TransactionCreateRequest:
    return TransactionCreateRequest(
        symbol=symbol, date=dt.date.fromisoformat(day), price=Decimal(price),
        shares=Decimal(shares) if shares is not None else None, **extra
    )


def test_request_normalizes_symbol_and_defaults_name():
    payload = buy(" aapl ", "2025-12-03", "150", "10")
    assert payload.symbol == "AAPL"
    assert payload.display_name == "AAPL"


def test_shares_derived_from_total():
    payload = TransactionCreateRequest(symbol="AAPL", date=dt.date(2025, 12, 3), price=Decimal("150"), total="1500")
    assert payload.shares == Decimal("10")


@pytest.mark.parametrize(
    "fields",
    [
        {"price": "0", "shares": "1"},
        {"price": "-1", "shares": "1"},
        {"price": "10", "shares": "0"},
        {"price": "10"},
        {"price": "10", "shares": "1", "symbol": "   "},
    ],
)
def test_invalid_requests_rejected(fields):
    data = {"symbol": "AAPL", "date": "2025-12-03", **fields}
    with pytest.raises(ValidationError):
        TransactionCreateRequest(**data)


@pytest.mark.asyncio
async def test_create_list_update_delete(database):
    async with database:
        store = TransactionStore(database)
        first = await store.create(buy("AAPL", "2025-12-01", "150", "10", name="Apple"))
        await store.create(buy("AAPL", "2025-12-03", "160", "5"))
        await store.create(buy("MSFT", "2025-12-02", "400", "1"))

        assert await store.count() == 3
        listed = await store.list_all()
        assert [tx.date for tx in listed] == [dt.date(2025, 12, 3), dt.date(2025, 12, 2), dt.date(2025, 12, 1)]
        assert first.name == "Apple"
        assert first.total == Decimal("1500")
        assert len(await store.list_by_symbol("aapl")) == 2

        updated = await store.update(
            first.id,
            TransactionUpdateRequest(symbol="AAPL", date="2025-12-01", price="155", shares="10", name="Apple Inc."),
        )
        assert updated.price == Decimal("155")
        fetched = await store.get(first.id)
        assert fetched.name == "Apple Inc."
        assert await store.update(9999, TransactionUpdateRequest(symbol="X", date="2025-12-01", price="1", shares="1")) is None

        assert await store.delete(first.id) is True
        assert await store.delete(first.id) is False
        assert await store.delete_all() == 2
        assert await store.count() == 0


@pytest.mark.asyncio
async def test_create_batch_rejects_empty_and_inserts_all_rows(database):
    async with database:
        store = TransactionStore(database)
        with pytest.raises(ValueError):
            await store.create_batch([])
        count = await store.create_batch([buy("AAPL", "2025-12-01", "150", "10"), buy("TSLA", "2025-12-01", "250", "2")])
        assert count == 2
        assert await store.count() == 2


@pytest.mark.asyncio
async def test_create_batch_rolls_back_when_one_row_fails(database):
    # Bypasses validation so the second row violates the NOT NULL shares column
    broken = TransactionCreateRequest.model_construct(
        symbol="TSLA", name=None, date=dt.date(2025, 12, 1), price=Decimal("250"), shares=None, total=None
    )
    async with database:
        store = TransactionStore(database)
        with pytest.raises(IntegrityError):
            await store.create_batch([buy("AAPL", "2025-12-01", "150", "10"), broken])
        assert await store.count() == 0
        assert await store.summary() == []


@pytest.mark.asyncio
async def test_summary_groups_by_symbol_largest_cost_first(database):
    async with database:
        store = TransactionStore(database)
        await store.create_batch(
            [
                buy("AAPL", "2025-12-01", "100", "10"),
                buy("AAPL", "2025-12-02", "130", "10"),
                buy("MSFT", "2025-12-02", "400", "10"),
            ]
        )
        summary = await store.summary()
        assert [p.symbol for p in summary] == ["MSFT", "AAPL"]
        aapl = summary[1]
        assert aapl.total_shares == Decimal("20")
        assert aapl.total_cost == Decimal("2300")
        assert aapl.avg_price == Decimal("115")
        assert aapl.transaction_count == 2


@pytest.mark.asyncio
async def test_positions_as_of_date_and_investment_totals(database):
    async with database:
        await TransactionStore(database).create_batch(
            [
                buy("AAPL", "2025-12-01", "100", "10"),
                buy("AAPL", "2025-12-03", "120", "5"),
                buy("MSFT", "2025-12-03", "400", "1"),
            ]
        )
        positions = PositionAggregator(database)

        early = await positions.summarize(as_of=dt.date(2025, 12, 2))
        assert [(p.symbol, p.total_shares) for p in early] == [("AAPL", Decimal("10"))]
        assert await positions.symbols(as_of=dt.date(2025, 12, 3)) == ["AAPL", "MSFT"]
        assert await positions.new_investment(dt.date(2025, 12, 3)) == Decimal("1000")
        assert await positions.new_investment(dt.date(2025, 12, 2)) == Decimal("0")
        assert await positions.cost_up_to(dt.date(2025, 12, 2)) == Decimal("1000")
        assert await positions.cost_up_to(dt.date(2025, 11, 30)) == Decimal("0")
