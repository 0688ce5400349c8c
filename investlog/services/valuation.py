"""Position view valued at the last known prices."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Mapping, Sequence

from .positions import PositionAggregator, PositionSummary
from .price_cache import PriceCache
from .profit import ZERO, profit_rate, round_currency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionValuation:
    symbol: str
    name: str
    total_shares: Decimal
    total_cost: Decimal
    avg_price: Decimal
    current_price: Decimal | None = None
    market_value: Decimal | None = None
    unrealized_profit: Decimal | None = None
    profit_rate: Decimal | None = None
    price_updated_at: dt.datetime | None = None

    @property
    def priced(self) -> bool:
        return self.current_price is not None


@dataclass(frozen=True)
class PortfolioValuation:
    positions: list[PositionValuation]
    total_cost: Decimal
    total_market_value: Decimal
    total_profit: Decimal
    total_profit_rate: Decimal

    @property
    def unpriced(self) -> list[str]:
        return [position.symbol for position in self.positions if not position.priced]


def value_position(
    position: PositionSummary,
    price: Decimal | None,
    updated_at: dt.datetime | None = None,
) -> PositionValuation:
    """Value one position; without a positive price the derived fields stay ``None``."""

    base = PositionValuation(
        symbol=position.symbol,
        name=position.name,
        total_shares=position.total_shares,
        total_cost=round_currency(position.total_cost),
        avg_price=position.avg_price,
    )
    if price is None or price <= 0:
        return base
    market_value = position.total_shares * price
    unrealized = market_value - position.total_cost
    return replace(
        base,
        current_price=price,
        market_value=round_currency(market_value),
        unrealized_profit=round_currency(unrealized),
        profit_rate=round_currency(profit_rate(unrealized, position.total_cost)),
        price_updated_at=updated_at,
    )


def summarize_valuations(
    positions: Sequence[PositionSummary],
    prices: Mapping[str, Decimal | None],
) -> PortfolioValuation:
    """Value every position and total them.

    Total cost covers every position while market value and profit only sum
    the priced ones, so the total rate is profit over the whole cost.
    """

    valued = [value_position(position, prices.get(position.symbol)) for position in positions]
    return _totals(valued, positions)


def _totals(valued: list[PositionValuation], positions: Sequence[PositionSummary]) -> PortfolioValuation:
    total_cost = sum((position.total_cost for position in positions), ZERO)
    market_value = sum((v.market_value for v in valued if v.market_value is not None), ZERO)
    profit = sum((v.unrealized_profit for v in valued if v.unrealized_profit is not None), ZERO)
    return PortfolioValuation(
        positions=valued,
        total_cost=round_currency(total_cost),
        total_market_value=round_currency(market_value),
        total_profit=round_currency(profit),
        total_profit_rate=round_currency(profit_rate(profit, total_cost)),
    )


class PortfolioValuator:
    """Value the open positions at the cache's last known prices, stale or not."""

    def __init__(self, positions: PositionAggregator, cache: PriceCache) -> None:
        self._positions = positions
        self._cache = cache

    async def valuate(self, as_of: dt.date | None = None) -> PortfolioValuation:
        positions = [p for p in await self._positions.summarize(as_of) if p.total_shares > 0]
        valued: list[PositionValuation] = []
        for position in positions:
            entry = await self._cache.get(position.symbol)
            if entry is None:
                valued.append(value_position(position, None))
            else:
                valued.append(value_position(position, entry.price, entry.updated_at))
        result = _totals(valued, positions)
        if result.unpriced:
            logger.debug("No price for %s; shown at cost only", ", ".join(result.unpriced))
        return result


__all__ = [
    "PortfolioValuation",
    "PortfolioValuator",
    "PositionValuation",
    "summarize_valuations",
    "value_position",
]
