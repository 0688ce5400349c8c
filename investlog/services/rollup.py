"""Monthly and yearly profit rollups computed on demand from daily records."""

from __future__ import annotations

import calendar
import datetime as dt
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from .profit import ZERO, DailyProfitResult, ProfitStore, profit_rate, round_currency

_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True)
class PeriodProfit:
    period: str
    profit: Decimal
    profit_rate: Decimal
    total_value: Decimal
    start_value: Decimal = ZERO
    days: int = 0


@dataclass(frozen=True)
class MarketValuePoint:
    date: dt.date
    total_value: Decimal


def parse_year_month(value: str) -> tuple[int, int]:
    match = _YEAR_MONTH.match(value.strip())
    if not match:
        raise ValueError(f"Expected YYYY-MM, got {value!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range in {value!r}")
    return year, month


def month_bounds(year: int, month: int) -> tuple[dt.date, dt.date]:
    return dt.date(year, month, 1), dt.date(year, month, calendar.monthrange(year, month)[1])


def summarize_period(
    period: str,
    records: Sequence[DailyProfitResult],
    previous: DailyProfitResult | None,
) -> PeriodProfit:
    """Aggregate date-ordered daily records of one period.

    Profit is summed; total value is the last record's. The start value is
    the latest record before the period, or ``total_value - profit`` when the
    period opens the history.
    """

    if not records:
        return PeriodProfit(period=period, profit=ZERO, profit_rate=ZERO, total_value=ZERO)
    profit = sum((record.profit for record in records), ZERO)
    total_value = records[-1].total_value
    start_value = previous.total_value if previous is not None else total_value - profit
    return PeriodProfit(
        period=period,
        profit=round_currency(profit),
        profit_rate=round_currency(profit_rate(profit, start_value)),
        total_value=round_currency(total_value),
        start_value=round_currency(start_value),
        days=len(records),
    )


class PeriodRollup:
    def __init__(self, profits: ProfitStore) -> None:
        self._profits = profits

    async def _summarize(self, period: str, start: dt.date, end: dt.date) -> PeriodProfit:
        records = await self._profits.get_range(start, end)
        if not records:
            return summarize_period(period, records, None)
        previous = await self._profits.latest_before(records[0].date)
        return summarize_period(period, records, previous)

    async def monthly(self, year_month: str) -> PeriodProfit:
        year, month = parse_year_month(year_month)
        start, end = month_bounds(year, month)
        return await self._summarize(f"{year:04d}-{month:02d}", start, end)

    async def yearly(self, year: int | str) -> PeriodProfit:
        year = int(year)
        return await self._summarize(f"{year:04d}", dt.date(year, 1, 1), dt.date(year, 12, 31))

    async def daily_for_month(self, year_month: str) -> list[DailyProfitResult]:
        start, end = month_bounds(*parse_year_month(year_month))
        return await self._profits.get_range(start, end)

    async def months_of_year(self, year: int | str) -> list[PeriodProfit]:
        """Per-month rollups of ``year``, omitting months without records."""

        year = int(year)
        records = await self._profits.get_range(dt.date(year, 1, 1), dt.date(year, 12, 31))
        if not records:
            return []
        by_month: dict[int, list[DailyProfitResult]] = {}
        for record in records:
            by_month.setdefault(record.date.month, []).append(record)
        previous = await self._profits.latest_before(records[0].date)
        months: list[PeriodProfit] = []
        for month in sorted(by_month):
            month_records = by_month[month]
            months.append(summarize_period(f"{year:04d}-{month:02d}", month_records, previous))
            previous = month_records[-1]
        return months

    async def market_value_history(self, start: dt.date, end: dt.date) -> list[MarketValuePoint]:
        return [
            MarketValuePoint(date=record.date, total_value=record.total_value)
            for record in await self._profits.get_range(start, end)
        ]


__all__ = [
    "MarketValuePoint",
    "PeriodProfit",
    "PeriodRollup",
    "month_bounds",
    "parse_year_month",
    "summarize_period",
]
