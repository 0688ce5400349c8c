"""Refresh cached prices for the given symbols or for every held symbol."""

from __future__ import annotations

import argparse
import asyncio

from investlog.config import get_settings
from investlog.core.logging import setup_logging
from investlog.services.container import open_services


async def _run(symbols: list[str], force: bool, daily: bool) -> int:
    async with open_services(get_settings()) as services:
        if daily:
            report = await services.daily_refresh()
            print(
                f"Daily refresh for {report.day.isoformat()}: {len(report.succeeded)} priced, "
                f"{len(report.failed)} failed, {report.snapshots_written} snapshots"
            )
            return 1 if report.failed else 0
        symbols = symbols or await services.positions.symbols()
        if not symbols:
            print("No positions held; nothing to refresh")
            return 0
        results = await services.prices.refresh(symbols, force=force)
        for symbol, result in results.items():
            if result.ok:
                print(f"{symbol}: {result.price} (updated {result.last_update.isoformat()})")
            else:
                print(f"{symbol}: FAILED ({result.error})")
        return 0 if all(result.ok for result in results.values()) else 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Refresh instrument prices")
    parser.add_argument("symbols", nargs="*", help="Symbols to refresh; defaults to every held symbol")
    parser.add_argument("--force", action="store_true", help="Fetch even when the cached price is fresh")
    parser.add_argument(
        "--daily",
        action="store_true",
        help="Run the full daily job: forced refresh, snapshot and today's profit",
    )
    args = parser.parse_args()
    setup_logging()
    raise SystemExit(asyncio.run(_run(args.symbols, args.force, args.daily)))


if __name__ == "__main__":
    main()
