"""Price snapshot, price cache and daily profit models."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from investlog.db.base import Base, utcnow


class PriceSnapshot(Base):
    __tablename__ = "price_snapshot"
    __table_args__ = (
        UniqueConstraint("symbol", "date", name="uq_price_snapshot_symbol_date"),
        Index("ix_price_snapshot_date", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(String(20))
    date: Mapped[dt.date] = mapped_column(Date)
    price: Mapped[Decimal] = mapped_column(Numeric(18, 6))
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class PriceCacheEntry(Base):
    __tablename__ = "price_cache"

    symbol: Mapped[str] = mapped_column(String(20), primary_key=True)
    price: Mapped[Decimal] = mapped_column(Numeric(18, 6))
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True))


class DailyProfit(Base):
    __tablename__ = "daily_profit"

    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    profit: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    profit_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    total_value: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    is_market_closed: Mapped[bool] = mapped_column(Boolean, default=False)
    incomplete: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


__all__ = ["PriceSnapshot", "PriceCacheEntry", "DailyProfit"]
