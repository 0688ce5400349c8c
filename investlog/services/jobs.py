"""Daily refresh job and full profit recalculation."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Iterator

from .positions import PositionAggregator
from .prices import PriceService, RefreshResult
from .profit import DailyProfitCalculator, DailyProfitResult, ProfitStore
from .snapshots import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfitDateRange:
    """Inclusive, ascending run of calendar dates."""

    start: dt.date
    end: dt.date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("Range end must not precede its start")

    def __iter__(self) -> Iterator[dt.date]:
        day = self.start
        while day <= self.end:
            yield day
            day += dt.timedelta(days=1)

    def __len__(self) -> int:
        return (self.end - self.start).days + 1

    def __contains__(self, day: object) -> bool:
        return isinstance(day, dt.date) and self.start <= day <= self.end

    def resume(self, from_date: dt.date) -> "ProfitDateRange":
        """Return the tail of the range starting at ``from_date``."""

        if from_date not in self:
            raise ValueError(f"{from_date.isoformat()} is outside {self.start.isoformat()}..{self.end.isoformat()}")
        return ProfitDateRange(from_date, self.end)


@dataclass
class DailyJobReport:
    day: dt.date
    results: dict[str, RefreshResult] = field(default_factory=dict)
    snapshots_written: int = 0
    profit: DailyProfitResult | None = None

    @property
    def succeeded(self) -> list[str]:
        return [symbol for symbol, result in self.results.items() if result.ok]

    @property
    def failed(self) -> list[str]:
        return [symbol for symbol, result in self.results.items() if not result.ok]


async def run_daily_refresh(
    positions: PositionAggregator,
    prices: PriceService,
    snapshots: SnapshotStore,
    calculator: DailyProfitCalculator,
    *,
    day: dt.date,
    retries: int | None = None,
    request_delay: float | None = None,
) -> DailyJobReport:
    """Refresh every held symbol, snapshot the day's prices and record its profit.

    Symbols that fail keep no snapshot for ``day``; the profit calculation then
    falls back to their last cached price.
    """

    report = DailyJobReport(day=day)
    symbols = await positions.symbols(as_of=day)
    if not symbols:
        logger.info("No positions held on %s; daily refresh skipped", day.isoformat())
        return report

    logger.info("Daily refresh for %s: %d symbol(s)", day.isoformat(), len(symbols))
    report.results = await prices.refresh(symbols, force=True, retries=retries, request_delay=request_delay)
    fetched = {symbol: result.price for symbol, result in report.results.items() if result.price is not None}
    if fetched:
        report.snapshots_written = await snapshots.set_batch(day, fetched)
    if report.failed:
        logger.warning("Daily refresh could not price: %s", ", ".join(report.failed))

    report.profit = await calculator.save(day)
    logger.info(
        "Daily job for %s done: %d priced, %d failed, %d snapshot(s)",
        day.isoformat(),
        len(report.succeeded),
        len(report.failed),
        report.snapshots_written,
    )
    return report


async def recalculate_all(
    calculator: DailyProfitCalculator,
    profits: ProfitStore,
    dates: ProfitDateRange,
    *,
    resume_from: dt.date | None = None,
) -> int:
    """Rebuild daily records over ``dates`` in ascending order.

    Without ``resume_from`` every stored record is discarded first. With it,
    only records dated on or after ``resume_from`` are discarded and the
    earlier ones seed the chain.
    """

    if resume_from is None:
        removed = await profits.delete_all()
        todo = dates
    else:
        todo = dates.resume(resume_from)
        removed = await profits.delete_from(resume_from)
    logger.info("Recalculating %d day(s) from %s; %d record(s) cleared", len(todo), todo.start.isoformat(), removed)

    count = 0
    for day in todo:
        await calculator.save(day)
        count += 1
    return count


__all__ = ["DailyJobReport", "ProfitDateRange", "recalculate_all", "run_daily_refresh"]
