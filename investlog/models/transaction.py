"""Instrument and transaction models."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from investlog.db.base import Base, utcnow


class Instrument(Base):
    __tablename__ = "instrument"

    symbol: Mapped[str] = mapped_column(String(20), primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    transactions: Mapped[list["Transaction"]] = relationship(back_populates="instrument")


class Transaction(Base):
    __tablename__ = "transaction"
    __table_args__ = (
        Index("ix_transaction_symbol_date", "symbol", "date"),
        Index("ix_transaction_date", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(ForeignKey("instrument.symbol"))
    date: Mapped[dt.date] = mapped_column(Date)
    price: Mapped[Decimal] = mapped_column(Numeric(18, 6))
    shares: Mapped[Decimal] = mapped_column(Numeric(18, 6))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    instrument: Mapped[Instrument] = relationship(back_populates="transactions", lazy="joined")

    @property
    def total(self) -> Decimal:
        return Decimal(self.price) * Decimal(self.shares)

    @property
    def name(self) -> str:
        return self.instrument.name if self.instrument else self.symbol


__all__ = ["Instrument", "Transaction"]
