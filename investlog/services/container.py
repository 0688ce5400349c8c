"""Wiring of the engine's components around one database handle."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Sequence

import httpx
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from investlog.config import AppSettings, get_settings
from investlog.core.telemetry import setup_telemetry
from investlog.db import Database
from investlog.providers import ExchangeRateClient, QuoteProvider

from .fx import ExchangeRateService
from .jobs import DailyJobReport, ProfitDateRange, recalculate_all, run_daily_refresh
from .positions import PositionAggregator
from .price_cache import PriceCache, SqlPriceCacheStore
from .prices import PriceService
from .profit import DailyProfitCalculator, ProfitStore
from .quotes import QuoteFetcher, build_providers
from .rollup import PeriodRollup
from .snapshots import SnapshotStore
from .transactions import TransactionStore
from .valuation import PortfolioValuator

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: AppSettings
    database: Database
    transactions: TransactionStore
    positions: PositionAggregator
    snapshots: SnapshotStore
    cache: PriceCache
    fetcher: QuoteFetcher
    prices: PriceService
    profits: ProfitStore
    calculator: DailyProfitCalculator
    rollup: PeriodRollup
    exchange_rates: ExchangeRateService
    valuation: PortfolioValuator
    _closers: list[Callable[[], Awaitable[Any]]] = field(default_factory=list, repr=False)

    async def daily_refresh(self, day: dt.date | None = None) -> DailyJobReport:
        return await run_daily_refresh(
            self.positions,
            self.prices,
            self.snapshots,
            self.calculator,
            day=day or self.cache.today(),
            retries=self.settings.quote_retries_batch,
            request_delay=self.settings.refresh_request_delay_seconds,
        )

    async def recalculate(
        self,
        start: dt.date | None = None,
        end: dt.date | None = None,
        *,
        resume_from: dt.date | None = None,
    ) -> int:
        dates = ProfitDateRange(start or self.settings.profit_history_start, end or self.cache.today())
        return await recalculate_all(self.calculator, self.profits, dates, resume_from=resume_from)

    async def health(self) -> dict[str, Any]:
        transaction_count: int | None = None
        try:
            async with self.database.session() as session:
                await session.execute(text("SELECT 1"))
            transaction_count = await self.transactions.count()
            database_ok = True
        except SQLAlchemyError:
            logger.exception("Database health check failed")
            database_ok = False
        return {
            "status": "ok" if database_ok else "degraded",
            "database": database_ok,
            "transactions": transaction_count,
            "providers": self.fetcher.provider_names,
            "timestamp": self.cache.now().isoformat(),
        }

    async def aclose(self) -> None:
        for closer in reversed(self._closers):
            await closer()
        self._closers.clear()


@asynccontextmanager
async def open_services(
    settings: AppSettings | None = None,
    *,
    database: Database | None = None,
    providers: Sequence[QuoteProvider] | None = None,
    exchange_client: ExchangeRateClient | None = None,
    clock: Callable[[], dt.datetime] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> AsyncIterator[Services]:
    """Connect the database, build every component and release them on exit."""

    settings = settings or get_settings()
    database = database or Database(settings.database_url, echo=settings.database_echo)
    await database.connect()
    closers: list[Callable[[], Awaitable[Any]]] = [database.dispose]

    setup_telemetry(settings, engine=database.engine)

    http_client: httpx.AsyncClient | None = None
    if providers is None or exchange_client is None:
        http_client = httpx.AsyncClient()
        closers.append(http_client.aclose)
    if providers is None:
        providers = build_providers(settings, client=http_client)
    if exchange_client is None:
        exchange_client = ExchangeRateClient(
            settings.exchange_rate_url, timeout=settings.quote_timeout_seconds, client=http_client
        )

    fetcher = QuoteFetcher(
        providers,
        retries=settings.quote_retries_interactive,
        base_delay=settings.quote_retry_base_delay_seconds,
        sleep=sleep,
    )
    closers.append(fetcher.aclose)
    closers.append(exchange_client.aclose)

    snapshots = SnapshotStore(database)
    cache = PriceCache(
        SqlPriceCacheStore(database),
        timezone=settings.timezone,
        cutover=settings.price_cutover,
        clock=clock,
        snapshots=snapshots,
    )
    positions = PositionAggregator(database)
    profits = ProfitStore(database)
    services = Services(
        settings=settings,
        database=database,
        transactions=TransactionStore(database),
        positions=positions,
        snapshots=snapshots,
        cache=cache,
        fetcher=fetcher,
        prices=PriceService(
            fetcher,
            cache,
            interactive_retries=settings.quote_retries_interactive,
            request_delay=settings.interactive_request_delay_seconds,
            sleep=sleep,
        ),
        profits=profits,
        calculator=DailyProfitCalculator(
            positions, snapshots, cache, profits, missing_price_policy=settings.missing_price_policy
        ),
        rollup=PeriodRollup(profits),
        exchange_rates=ExchangeRateService(exchange_client, cache),
        valuation=PortfolioValuator(positions, cache),
        _closers=closers,
    )
    try:
        yield services
    finally:
        await services.aclose()


__all__ = ["Services", "open_services"]
