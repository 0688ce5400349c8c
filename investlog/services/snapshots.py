"""Price snapshot store: one authoritative price per symbol per day."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping

from sqlalchemy import delete, select

from investlog.db import Database, upsert
from investlog.models import PriceSnapshot
from investlog.db.base import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotRow:
    symbol: str
    date: dt.date
    price: Decimal
    updated_at: dt.datetime


def _as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


class SnapshotStore:
    """Upsert-only log of (symbol, date, price).

    Writing an existing key overwrites its price; reads never substitute a
    neighbouring day.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def set(self, symbol: str, day: dt.date, price: Decimal) -> None:
        await self.set_batch(day, {symbol: price})

    async def set_batch(self, day: dt.date, prices: Mapping[str, Decimal]) -> int:
        """Write all prices for ``day`` in a single transaction."""

        now = utcnow()
        # Keys differing only in case collapse to one row; the last one wins
        folded: dict[str, Decimal] = {}
        for symbol, price in prices.items():
            if price is not None:
                folded[symbol.strip().upper()] = Decimal(str(price))
        rows = [
            {"symbol": symbol, "date": day, "price": price, "updated_at": now}
            for symbol, price in folded.items()
        ]
        if not rows:
            return 0
        async with self._db.session() as session:
            async with session.begin():
                stmt = upsert(
                    session,
                    PriceSnapshot,
                    rows,
                    index_elements=["symbol", "date"],
                    update_fields=["price", "updated_at"],
                )
                await session.execute(stmt)
        logger.info("Saved %d price snapshot(s) for %s", len(rows), day.isoformat())
        return len(rows)

    async def get(self, symbol: str, day: dt.date) -> Decimal | None:
        async with self._db.session() as session:
            result = await session.execute(
                select(PriceSnapshot.price).where(
                    PriceSnapshot.symbol == symbol.strip().upper(),
                    PriceSnapshot.date == day,
                )
            )
            return result.scalar_one_or_none()

    async def get_by_date(self, day: dt.date) -> dict[str, Decimal]:
        async with self._db.session() as session:
            result = await session.execute(
                select(PriceSnapshot.symbol, PriceSnapshot.price).where(PriceSnapshot.date == day)
            )
            return {symbol: price for symbol, price in result.all()}

    async def get_range(self, symbol: str, start: dt.date, end: dt.date) -> list[tuple[dt.date, Decimal]]:
        if end < start:
            raise ValueError("Range end must not precede its start")
        async with self._db.session() as session:
            result = await session.execute(
                select(PriceSnapshot.date, PriceSnapshot.price)
                .where(
                    PriceSnapshot.symbol == symbol.strip().upper(),
                    PriceSnapshot.date >= start,
                    PriceSnapshot.date <= end,
                )
                .order_by(PriceSnapshot.date)
            )
            return [(day, price) for day, price in result.all()]

    async def has_snapshot(self, day: dt.date) -> bool:
        async with self._db.session() as session:
            result = await session.execute(
                select(PriceSnapshot.id).where(PriceSnapshot.date == day).limit(1)
            )
            return result.first() is not None

    async def latest(self, symbol: str) -> SnapshotRow | None:
        async with self._db.session() as session:
            result = await session.execute(
                select(PriceSnapshot)
                .where(PriceSnapshot.symbol == symbol.strip().upper())
                .order_by(PriceSnapshot.date.desc())
                .limit(1)
            )
            row = result.scalars().first()
        if row is None:
            return None
        return SnapshotRow(
            symbol=row.symbol,
            date=row.date,
            price=row.price,
            updated_at=_as_utc(row.updated_at),
        )

    async def delete_all(self) -> int:
        async with self._db.session() as session:
            async with session.begin():
                result = await session.execute(delete(PriceSnapshot))
        return result.rowcount or 0


__all__ = ["SnapshotRow", "SnapshotStore"]
