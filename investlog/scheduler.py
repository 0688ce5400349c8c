"""Cron scheduling of the daily refresh job."""

from __future__ import annotations

import logging
import time

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from investlog.config import AppSettings
from investlog.services.container import Services

logger = logging.getLogger(__name__)

DAILY_REFRESH_JOB_ID = "daily_price_refresh"


def build_scheduler(services: Services, settings: AppSettings | None = None) -> AsyncIOScheduler:
    """Create a scheduler running the daily refresh at the configured local time.

    The job never overlaps itself and missed runs collapse into one.
    """

    settings = settings or services.settings
    scheduler = AsyncIOScheduler(
        timezone=settings.timezone,
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 60 * 30,
        },
    )

    async def _daily_refresh() -> None:
        started = time.monotonic()
        try:
            report = await services.daily_refresh()
        except Exception:  # noqa: BLE001 - keep the scheduler alive for the next run
            logger.exception("Daily refresh job failed")
            return
        logger.info(
            "Daily refresh job finished in %d ms (%d priced, %d failed)",
            int((time.monotonic() - started) * 1000),
            len(report.succeeded),
            len(report.failed),
        )

    scheduler.add_job(
        _daily_refresh,
        CronTrigger(hour=settings.refresh_cron_hour, minute=settings.refresh_cron_minute, timezone=settings.timezone),
        id=DAILY_REFRESH_JOB_ID,
        name="Daily price refresh and profit",
        replace_existing=True,
    )
    return scheduler


__all__ = ["DAILY_REFRESH_JOB_ID", "build_scheduler"]
