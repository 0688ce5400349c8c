"""Run the daily refresh on its cron schedule until interrupted."""

from __future__ import annotations

import argparse
import asyncio
import logging

from investlog.config import get_settings
from investlog.core.logging import setup_logging
from investlog.scheduler import build_scheduler
from investlog.services.container import open_services

logger = logging.getLogger(__name__)


async def _run(run_now: bool) -> None:
    settings = get_settings()
    logger.info("Starting scheduler with settings: %s", settings.dict_for_logging())
    async with open_services(settings) as services:
        if run_now:
            await services.daily_refresh()
        scheduler = build_scheduler(services, settings)
        scheduler.start()
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.shutdown(wait=False)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the daily price refresh scheduler")
    parser.add_argument("--run-now", action="store_true", help="Run the daily job once before waiting")
    args = parser.parse_args()
    setup_logging()
    try:
        asyncio.run(_run(args.run_now))
    except KeyboardInterrupt:
        print("Scheduler stopped")


if __name__ == "__main__":
    main()
