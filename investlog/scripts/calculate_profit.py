"""Calculate and store the daily profit record for one date."""

from __future__ import annotations

import argparse
import asyncio
import datetime as dt

from investlog.config import get_settings
from investlog.core.logging import setup_logging
from investlog.services.container import open_services


async def _run(day: dt.date | None, dry_run: bool) -> None:
    async with open_services(get_settings()) as services:
        day = day or services.cache.today()
        calculator = services.calculator
        result = await (calculator.calculate(day) if dry_run else calculator.save(day))
        flags = []
        if result.is_market_closed:
            flags.append("market closed")
        if result.incomplete:
            flags.append("incomplete")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        print(
            f"{day.isoformat()}: profit {result.profit} ({result.profit_rate}%), "
            f"total value {result.total_value}{suffix}"
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Calculate daily profit")
    parser.add_argument("--date", type=dt.date.fromisoformat, default=None, help="YYYY-MM-DD; defaults to today")
    parser.add_argument("--dry-run", action="store_true", help="Print without storing the record")
    args = parser.parse_args()
    setup_logging()
    asyncio.run(_run(args.date, args.dry_run))


if __name__ == "__main__":
    main()
