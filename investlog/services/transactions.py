"""Transaction store: CRUD over buy transactions and their instruments."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from investlog.db import Database
from investlog.models import Instrument, Transaction
from investlog.schemas import TransactionCreateRequest, TransactionUpdateRequest

from .positions import PositionAggregator, PositionSummary

logger = logging.getLogger(__name__)


async def _ensure_instrument(session: AsyncSession, payload: TransactionCreateRequest) -> Instrument:
    instrument = await session.get(Instrument, payload.symbol)
    if instrument is None:
        instrument = Instrument(symbol=payload.symbol, name=payload.display_name)
        session.add(instrument)
        await session.flush()
    elif payload.name and instrument.name != payload.name:
        instrument.name = payload.name
    return instrument


def _build(payload: TransactionCreateRequest, instrument: Instrument) -> Transaction:
    return Transaction(
        symbol=instrument.symbol,
        instrument=instrument,
        date=payload.date,
        price=payload.price,
        shares=payload.shares,
    )


class TransactionStore:
    def __init__(self, database: Database) -> None:
        self._db = database

    async def list_all(self) -> list[Transaction]:
        async with self._db.session() as session:
            result = await session.execute(
                select(Transaction).order_by(Transaction.date.desc(), Transaction.id.desc())
            )
            return list(result.scalars().all())

    async def get(self, transaction_id: int) -> Transaction | None:
        async with self._db.session() as session:
            return await session.get(Transaction, transaction_id)

    async def list_by_symbol(self, symbol: str) -> list[Transaction]:
        async with self._db.session() as session:
            result = await session.execute(
                select(Transaction)
                .where(Transaction.symbol == symbol.strip().upper())
                .order_by(Transaction.date.desc(), Transaction.id.desc())
            )
            return list(result.scalars().all())

    async def count(self) -> int:
        async with self._db.session() as session:
            return (await session.execute(select(func.count(Transaction.id)))).scalar_one()

    async def create(self, payload: TransactionCreateRequest) -> Transaction:
        async with self._db.session() as session:
            async with session.begin():
                instrument = await _ensure_instrument(session, payload)
                tx = _build(payload, instrument)
                session.add(tx)
        logger.info("Recorded %s %s x %s on %s", tx.symbol, tx.shares, tx.price, tx.date)
        return tx

    async def create_batch(self, payloads: Iterable[TransactionCreateRequest]) -> int:
        """Insert every payload in one transaction; nothing is written if any fails."""

        payloads = list(payloads)
        if not payloads:
            raise ValueError("Transaction batch must not be empty")
        async with self._db.session() as session:
            async with session.begin():
                for payload in payloads:
                    instrument = await _ensure_instrument(session, payload)
                    session.add(_build(payload, instrument))
        logger.info("Recorded %d transaction(s) in batch", len(payloads))
        return len(payloads)

    async def update(self, transaction_id: int, payload: TransactionUpdateRequest) -> Transaction | None:
        async with self._db.session() as session:
            async with session.begin():
                tx = await session.get(Transaction, transaction_id)
                if tx is None:
                    return None
                instrument = await _ensure_instrument(session, payload)
                tx.instrument = instrument
                tx.symbol = instrument.symbol
                tx.date = payload.date
                tx.price = payload.price
                tx.shares = payload.shares
        return tx

    async def delete(self, transaction_id: int) -> bool:
        async with self._db.session() as session:
            async with session.begin():
                result = await session.execute(delete(Transaction).where(Transaction.id == transaction_id))
        return (result.rowcount or 0) > 0

    async def delete_all(self) -> int:
        async with self._db.session() as session:
            async with session.begin():
                result = await session.execute(delete(Transaction))
        count = result.rowcount or 0
        logger.info("Deleted %d transaction(s)", count)
        return count

    async def summary(self) -> list[PositionSummary]:
        return await PositionAggregator(self._db).summarize()


__all__ = ["TransactionStore"]
