"""Print open positions valued at the last known prices."""

from __future__ import annotations

import argparse
import asyncio
import datetime as dt

from investlog.config import get_settings
from investlog.core.logging import setup_logging
from investlog.services.container import open_services


def _fmt(value) -> str:
    return "--" if value is None else str(value)


async def _run(as_of: dt.date | None) -> None:
    async with open_services(get_settings()) as services:
        valuation = await services.valuation.valuate(as_of)
        if not valuation.positions:
            print("No positions held")
            return
        for p in valuation.positions:
            print(
                f"{p.symbol:<8} {p.total_shares:>14} cost {p.total_cost:>12} price {_fmt(p.current_price):>10} "
                f"value {_fmt(p.market_value):>12} profit {_fmt(p.unrealized_profit):>10} ({_fmt(p.profit_rate)}%)"
            )
        print(
            f"Total cost {valuation.total_cost}, market value {valuation.total_market_value}, "
            f"profit {valuation.total_profit} ({valuation.total_profit_rate}%)"
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Show valued positions")
    parser.add_argument("--date", type=dt.date.fromisoformat, default=None, help="Only transactions up to YYYY-MM-DD")
    args = parser.parse_args()
    setup_logging()
    asyncio.run(_run(args.date))


if __name__ == "__main__":
    main()
