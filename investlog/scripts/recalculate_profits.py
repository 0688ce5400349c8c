"""Rebuild daily profit records over a date range."""

from __future__ import annotations

import argparse
import asyncio
import datetime as dt

from investlog.config import get_settings
from investlog.core.logging import setup_logging
from investlog.services.container import open_services


async def _run(start: dt.date | None, end: dt.date | None, resume_from: dt.date | None) -> None:
    async with open_services(get_settings()) as services:
        count = await services.recalculate(start, end, resume_from=resume_from)
        print(f"Recalculated {count} daily profit records")


def main() -> None:
    parser = argparse.ArgumentParser(description="Recalculate daily profit history")
    parser.add_argument("--start", type=dt.date.fromisoformat, default=None)
    parser.add_argument("--end", type=dt.date.fromisoformat, default=None)
    parser.add_argument(
        "--resume-from",
        type=dt.date.fromisoformat,
        default=None,
        help="Keep records before this date and rebuild from it onwards",
    )
    args = parser.parse_args()
    setup_logging()
    asyncio.run(_run(args.start, args.end, args.resume_from))


if __name__ == "__main__":
    main()
