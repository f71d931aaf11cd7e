"""
APScheduler job definition for the SkiPick refresh run.

Runs scrape → write status file → refresh weather cache on SCRAPE_CRON_SCHEDULE.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from backend.cache import get_store
from pipeline.catalog import load_catalog
from pipeline.config import LOG_LEVEL, SCRAPE_CRON_SCHEDULE, SCRAPED_STATUS_PATH
from pipeline.fetcher import WeatherCache, fetch_all_weather
from pipeline.scrapers import scrape_all, write_scraped_status

logger = logging.getLogger(__name__)


async def run_refresh() -> None:
    logger.info("Refresh started at %s", datetime.now(timezone.utc).isoformat())

    scraped = await scrape_all()
    errors = [rid for rid, s in scraped.resorts.items() if s.error]
    if errors:
        logger.warning("Scraper errors for %s", ", ".join(errors))
    write_scraped_status(SCRAPED_STATUS_PATH, scraped)

    catalog = load_catalog()
    cache = WeatherCache(get_store())
    forecasts, failed_ids = await fetch_all_weather(cache, catalog, force_refresh=True)
    logger.info(
        "Refreshed weather for %d resorts, %d failures", len(forecasts), len(failed_ids)
    )

    logger.info("Refresh completed at %s", datetime.now(timezone.utc).isoformat())


def cron_trigger(expression: str = SCRAPE_CRON_SCHEDULE) -> CronTrigger:
    # Parse cron expression: "0 5 * * *" → minute=0, hour=5
    cron_parts = expression.split()
    if len(cron_parts) != 5:
        raise ValueError(f"Expected a 5-field cron expression, got {expression!r}")
    return CronTrigger(
        minute=cron_parts[0],
        hour=cron_parts[1],
        day=cron_parts[2],
        month=cron_parts[3],
        day_of_week=cron_parts[4],
        timezone="UTC",
    )


def start_scheduler() -> None:
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    scheduler = AsyncIOScheduler(event_loop=loop)
    scheduler.add_job(run_refresh, cron_trigger(), id="daily_refresh", replace_existing=True)
    scheduler.start()
    logger.info("Scheduler started. Next run: %s", scheduler.get_job("daily_refresh").next_run_time)

    try:
        loop.run_forever()
    except (KeyboardInterrupt, SystemExit):
        scheduler.shutdown()


if __name__ == "__main__":
    logging.basicConfig(level=LOG_LEVEL)
    start_scheduler()
