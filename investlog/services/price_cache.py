"""Price cache with a once-per-business-day cutover rule.

A cached price stays valid from one morning's cutover (08:00 local by
default) until the next one, so an instrument is normally fetched upstream
about once a day even across process restarts. Entries are persisted through
an injected store and timestamps come from an injected clock.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterable, Mapping, Protocol
from zoneinfo import ZoneInfo

from sqlalchemy import select

from investlog.db import Database, upsert
from investlog.models import PriceCacheEntry

from .snapshots import SnapshotStore

logger = logging.getLogger(__name__)

DEFAULT_CUTOVER = dt.time(8, 0)


@dataclass(frozen=True)
class CacheEntry:
    symbol: str
    price: Decimal
    updated_at: dt.datetime


def should_refresh(updated_at: dt.datetime, now: dt.datetime, cutover: dt.time = DEFAULT_CUTOVER) -> bool:
    """Return True when a price cached at ``updated_at`` is outdated at ``now``.

    A naive ``updated_at`` is read in ``now``'s timezone. An entry stamped
    exactly at a cutover instant counts as fresh.
    """

    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=now.tzinfo)
    elif now.tzinfo is not None:
        updated_at = updated_at.astimezone(now.tzinfo)

    today_cutover = dt.datetime.combine(now.date(), cutover, tzinfo=now.tzinfo)
    if updated_at < today_cutover and now >= today_cutover:
        return True

    yesterday_cutover = dt.datetime.combine(now.date() - dt.timedelta(days=1), cutover, tzinfo=now.tzinfo)
    if now < today_cutover and updated_at < yesterday_cutover:
        return True

    return False


class PriceCacheStore(Protocol):
    async def get(self, symbol: str) -> CacheEntry | None:
        ...

    async def set_many(self, entries: Iterable[CacheEntry]) -> None:
        ...

    async def all(self) -> list[CacheEntry]:
        ...


class InMemoryPriceCacheStore:
    """Simple cache store for tests and examples."""

    def __init__(self, entries: Iterable[CacheEntry] = ()) -> None:
        self._entries: dict[str, CacheEntry] = {entry.symbol: entry for entry in entries}

    async def get(self, symbol: str) -> CacheEntry | None:
        return self._entries.get(symbol)

    async def set_many(self, entries: Iterable[CacheEntry]) -> None:
        for entry in entries:
            self._entries[entry.symbol] = entry

    async def all(self) -> list[CacheEntry]:
        return sorted(self._entries.values(), key=lambda entry: entry.symbol)


class SqlPriceCacheStore:
    """Cache entries persisted in the ``price_cache`` table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    @staticmethod
    def _to_entry(row: PriceCacheEntry) -> CacheEntry:
        updated_at = row.updated_at
        # SQLite hands back naive values; they were written in UTC
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=dt.timezone.utc)
        return CacheEntry(symbol=row.symbol, price=row.price, updated_at=updated_at)

    async def get(self, symbol: str) -> CacheEntry | None:
        async with self._db.session() as session:
            row = await session.get(PriceCacheEntry, symbol)
        return self._to_entry(row) if row is not None else None

    async def set_many(self, entries: Iterable[CacheEntry]) -> None:
        rows = [
            {
                "symbol": entry.symbol,
                "price": entry.price,
                "updated_at": entry.updated_at.astimezone(dt.timezone.utc),
            }
            for entry in entries
        ]
        if not rows:
            return
        async with self._db.session() as session:
            async with session.begin():
                await session.execute(
                    upsert(
                        session,
                        PriceCacheEntry,
                        rows,
                        index_elements=["symbol"],
                        update_fields=["price", "updated_at"],
                    )
                )

    async def all(self) -> list[CacheEntry]:
        async with self._db.session() as session:
            result = await session.execute(select(PriceCacheEntry).order_by(PriceCacheEntry.symbol))
            return [self._to_entry(row) for row in result.scalars().all()]


class PriceCache:
    """Symbol to last-known price, with staleness decided by the cutover rule."""

    def __init__(
        self,
        store: PriceCacheStore,
        *,
        timezone: str = "UTC",
        cutover: dt.time = DEFAULT_CUTOVER,
        clock: Callable[[], dt.datetime] | None = None,
        snapshots: SnapshotStore | None = None,
    ) -> None:
        self._store = store
        self._tz = ZoneInfo(timezone)
        self.cutover = cutover
        self._clock = clock or (lambda: dt.datetime.now(self._tz))
        self._snapshots = snapshots

    def now(self) -> dt.datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=self._tz)
        return now

    def today(self) -> dt.date:
        return self.now().astimezone(self._tz).date()

    def is_stale(self, updated_at: dt.datetime) -> bool:
        return should_refresh(updated_at, self.now().astimezone(self._tz), self.cutover)

    async def get(self, symbol: str) -> CacheEntry | None:
        """Return the cached entry, rebuilding it from the latest snapshot on a miss."""

        symbol = symbol.strip().upper()
        entry = await self._store.get(symbol)
        if entry is not None or self._snapshots is None:
            return entry
        latest = await self._snapshots.latest(symbol)
        if latest is None:
            return None
        logger.debug("Cache miss for %s rebuilt from snapshot of %s", symbol, latest.date)
        return CacheEntry(symbol=symbol, price=latest.price, updated_at=latest.updated_at)

    async def get_fresh(self, symbol: str) -> CacheEntry | None:
        entry = await self.get(symbol)
        if entry is None or self.is_stale(entry.updated_at):
            return None
        return entry

    async def current_price(self, symbol: str) -> Decimal | None:
        """Last known price regardless of staleness."""

        entry = await self.get(symbol)
        return entry.price if entry is not None else None

    async def set(self, symbol: str, price: Decimal) -> CacheEntry:
        entries = await self.set_many({symbol: price})
        return entries[0]

    async def set_many(self, prices: Mapping[str, Decimal]) -> list[CacheEntry]:
        now = self.now()
        folded = {symbol.strip().upper(): Decimal(str(price)) for symbol, price in prices.items()}
        entries = [CacheEntry(symbol=symbol, price=price, updated_at=now) for symbol, price in folded.items()]
        await self._store.set_many(entries)
        return entries

    async def all(self) -> list[CacheEntry]:
        return await self._store.all()


__all__ = [
    "CacheEntry",
    "DEFAULT_CUTOVER",
    "InMemoryPriceCacheStore",
    "PriceCache",
    "PriceCacheStore",
    "SqlPriceCacheStore",
    "should_refresh",
]
