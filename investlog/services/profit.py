"""Daily profit calculation and the daily profit record store.

Each day's profit is the change in portfolio market value net of the capital
added that day::

    profit = total_value - previous_total_value - new_investment

The previous value comes from the latest stored record before the day, so
records form a forward chain: recomputing a range must walk dates in
ascending order, and a day never depends on later records.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, getcontext
from typing import Literal

from sqlalchemy import delete, select

from investlog.db import Database, upsert
from investlog.db.base import utcnow
from investlog.models import DailyProfit

from .positions import PositionAggregator
from .price_cache import PriceCache
from .snapshots import SnapshotStore

getcontext().prec = 28

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

MissingPricePolicy = Literal["cost_basis", "flag"]


def round_currency(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def profit_rate(profit: Decimal, base_value: Decimal) -> Decimal:
    """Percentage return on ``base_value``; zero when there is no positive base."""

    if base_value <= 0:
        return ZERO
    return profit / base_value * HUNDRED


@dataclass(frozen=True)
class DailyProfitResult:
    date: dt.date
    profit: Decimal
    profit_rate: Decimal
    total_value: Decimal
    is_market_closed: bool = False
    incomplete: bool = False
    fallback_symbols: tuple[str, ...] = field(default=(), compare=False)

    @classmethod
    def zero(cls, day: dt.date) -> "DailyProfitResult":
        return cls(date=day, profit=ZERO, profit_rate=ZERO, total_value=ZERO, is_market_closed=day.weekday() >= 5)


class ProfitStore:
    """Persisted daily profit records keyed by date."""

    def __init__(self, database: Database) -> None:
        self._db = database

    @staticmethod
    def _to_result(row: DailyProfit) -> DailyProfitResult:
        return DailyProfitResult(
            date=row.date,
            profit=row.profit,
            profit_rate=row.profit_rate,
            total_value=row.total_value,
            is_market_closed=row.is_market_closed,
            incomplete=row.incomplete,
        )

    async def save(self, result: DailyProfitResult) -> None:
        record = {
            "date": result.date,
            "profit": result.profit,
            "profit_rate": result.profit_rate,
            "total_value": result.total_value,
            "is_market_closed": result.is_market_closed,
            "incomplete": result.incomplete,
            "updated_at": utcnow(),
        }
        async with self._db.session() as session:
            async with session.begin():
                await session.execute(
                    upsert(
                        session,
                        DailyProfit,
                        record,
                        index_elements=["date"],
                        update_fields=[k for k in record if k != "date"],
                    )
                )

    async def get(self, day: dt.date) -> DailyProfitResult | None:
        async with self._db.session() as session:
            row = await session.get(DailyProfit, day)
        return self._to_result(row) if row is not None else None

    async def get_range(self, start: dt.date, end: dt.date) -> list[DailyProfitResult]:
        if end < start:
            raise ValueError("Range end must not precede its start")
        async with self._db.session() as session:
            result = await session.execute(
                select(DailyProfit)
                .where(DailyProfit.date >= start, DailyProfit.date <= end)
                .order_by(DailyProfit.date)
            )
            return [self._to_result(row) for row in result.scalars().all()]

    async def latest_before(self, day: dt.date) -> DailyProfitResult | None:
        async with self._db.session() as session:
            result = await session.execute(
                select(DailyProfit).where(DailyProfit.date < day).order_by(DailyProfit.date.desc()).limit(1)
            )
            row = result.scalars().first()
        return self._to_result(row) if row is not None else None

    async def delete(self, day: dt.date) -> bool:
        async with self._db.session() as session:
            async with session.begin():
                result = await session.execute(delete(DailyProfit).where(DailyProfit.date == day))
        return (result.rowcount or 0) > 0

    async def delete_from(self, day: dt.date | None = None) -> int:
        """Delete records dated on or after ``day``, or every record when ``day`` is None."""

        stmt = delete(DailyProfit)
        if day is not None:
            stmt = stmt.where(DailyProfit.date >= day)
        async with self._db.session() as session:
            async with session.begin():
                result = await session.execute(stmt)
        return result.rowcount or 0

    async def delete_all(self) -> int:
        return await self.delete_from(None)


class DailyProfitCalculator:
    """Compute one day's profit from positions, prices and the prior record.

    Valuation price per position: that day's snapshot, else the cache's last
    known price, else the position's average cost. The last tier contributes
    no unrealized gain; with ``missing_price_policy="flag"`` such days are
    marked incomplete instead of passing silently.
    """

    def __init__(
        self,
        positions: PositionAggregator,
        snapshots: SnapshotStore,
        cache: PriceCache,
        profits: ProfitStore,
        *,
        missing_price_policy: MissingPricePolicy = "cost_basis",
    ) -> None:
        self._positions = positions
        self._snapshots = snapshots
        self._cache = cache
        self._profits = profits
        self.missing_price_policy = missing_price_policy

    async def _previous_total_value(self, day: dt.date) -> Decimal:
        previous = await self._profits.latest_before(day)
        if previous is not None:
            return previous.total_value
        # Before tracking began the portfolio is assumed to be worth its cost
        return await self._positions.cost_up_to(day - dt.timedelta(days=1))

    async def calculate(self, day: dt.date) -> DailyProfitResult:
        positions = [p for p in await self._positions.summarize(as_of=day) if p.total_shares > 0]
        if not positions:
            return DailyProfitResult.zero(day)

        day_prices = await self._snapshots.get_by_date(day)
        total_value = ZERO
        fallback_symbols: list[str] = []
        for position in positions:
            price = day_prices.get(position.symbol)
            if price is None:
                price = await self._cache.current_price(position.symbol)
            if price is None:
                price = position.avg_price
                fallback_symbols.append(position.symbol)
            total_value += position.total_shares * price

        new_investment = await self._positions.new_investment(day)
        previous_value = await self._previous_total_value(day)
        profit = total_value - previous_value - new_investment
        rate = profit_rate(profit, previous_value)

        incomplete = self.missing_price_policy == "flag" and bool(fallback_symbols)
        if incomplete:
            logger.warning(
                "Profit for %s valued %s at cost: no snapshot or cached price",
                day.isoformat(),
                ", ".join(fallback_symbols),
            )
        elif fallback_symbols:
            logger.debug("Valued %s at average cost on %s", ", ".join(fallback_symbols), day.isoformat())

        return DailyProfitResult(
            date=day,
            profit=round_currency(profit),
            profit_rate=round_currency(rate),
            total_value=round_currency(total_value),
            is_market_closed=day.weekday() >= 5 or not day_prices,
            incomplete=incomplete,
            fallback_symbols=tuple(fallback_symbols),
        )

    async def save(self, day: dt.date) -> DailyProfitResult:
        """Calculate ``day`` and persist the result as its daily record."""

        result = await self.calculate(day)
        await self._profits.save(result)
        logger.info(
            "Profit for %s: %s (%s%%), total value %s",
            day.isoformat(),
            result.profit,
            result.profit_rate,
            result.total_value,
        )
        return result


__all__ = [
    "DailyProfitCalculator",
    "DailyProfitResult",
    "ProfitStore",
    "profit_rate",
    "round_currency",
]
