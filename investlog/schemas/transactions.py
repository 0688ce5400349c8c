"""Pydantic schemas for transaction input."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator


class TransactionCreateRequest(BaseModel):
    """Buy transaction payload.

    Either ``shares`` or ``total`` must be given; when only the total amount
    is known the share count is derived as ``total / price``.
    """

    symbol: str = Field(..., min_length=1, max_length=20, examples=["AAPL"])
    name: str | None = Field(default=None, max_length=128, description="Display name, defaults to the symbol")
    date: dt.date
    price: Decimal = Field(..., gt=0)
    shares: Decimal | None = Field(default=None, gt=0)
    total: Decimal | None = Field(default=None, gt=0)

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not normalized:
            raise ValueError("Symbol must not be empty")
        return normalized

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def _derive_shares(self) -> "TransactionCreateRequest":
        if self.shares is None:
            if self.total is None:
                raise ValueError("Either shares or total must be provided")
            self.shares = self.total / self.price
        return self

    @property
    def display_name(self) -> str:
        return self.name or self.symbol


class TransactionUpdateRequest(TransactionCreateRequest):
    pass


__all__ = ["TransactionCreateRequest", "TransactionUpdateRequest"]
