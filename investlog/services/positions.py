"""Position aggregation over the transaction table."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import Numeric, func, select, type_coerce

from investlog.db import Database
from investlog.models import Instrument, Transaction

_COST = type_coerce(func.sum(Transaction.price * Transaction.shares), Numeric(24, 6))
_SHARES = type_coerce(func.sum(Transaction.shares), Numeric(24, 6))


def _decimal(value: object) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class PositionSummary:
    symbol: str
    name: str
    total_shares: Decimal
    total_cost: Decimal
    avg_price: Decimal
    transaction_count: int


class PositionAggregator:
    """Roll transactions up by symbol.

    Every query reads the transaction table directly; transactions can be
    edited or imported retroactively, so nothing here is cached.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def summarize(self, as_of: dt.date | None = None) -> list[PositionSummary]:
        """Positions grouped by symbol, largest cost first.

        ``as_of`` limits the roll-up to transactions dated on or before it.
        """

        stmt = (
            select(
                Transaction.symbol,
                Instrument.name,
                _SHARES.label("total_shares"),
                _COST.label("total_cost"),
                func.count(Transaction.id).label("transaction_count"),
            )
            .join(Instrument, Instrument.symbol == Transaction.symbol)
            .group_by(Transaction.symbol, Instrument.name)
        )
        if as_of is not None:
            stmt = stmt.where(Transaction.date <= as_of)
        async with self._db.session() as session:
            rows = (await session.execute(stmt)).all()

        positions: list[PositionSummary] = []
        for symbol, name, shares, cost, count in rows:
            total_shares = _decimal(shares)
            total_cost = _decimal(cost)
            avg_price = total_cost / total_shares if total_shares > 0 else Decimal("0")
            positions.append(
                PositionSummary(
                    symbol=symbol,
                    name=name,
                    total_shares=total_shares,
                    total_cost=total_cost,
                    avg_price=avg_price,
                    transaction_count=count,
                )
            )
        positions.sort(key=lambda p: (-p.total_cost, p.symbol))
        return positions

    async def symbols(self, as_of: dt.date | None = None) -> list[str]:
        return [position.symbol for position in await self.summarize(as_of) if position.total_shares > 0]

    async def new_investment(self, day: dt.date) -> Decimal:
        """Capital added by transactions dated exactly ``day``."""

        async with self._db.session() as session:
            value = (await session.execute(select(_COST).where(Transaction.date == day))).scalar()
        return _decimal(value)

    async def cost_up_to(self, day: dt.date) -> Decimal:
        """Total cost of transactions dated on or before ``day``."""

        async with self._db.session() as session:
            value = (await session.execute(select(_COST).where(Transaction.date <= day))).scalar()
        return _decimal(value)


__all__ = ["PositionAggregator", "PositionSummary"]
