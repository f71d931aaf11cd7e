from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException

from backend.services import Services, get_services
from pipeline.config import ADMIN_KEY, SCRAPED_STATUS_PATH, STORE_BACKEND
from pipeline.fetcher import fetch_all_weather
from pipeline.scrapers import scrape_all, write_scraped_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _require_key(x_admin_key: str = Header(...)):
    if x_admin_key != ADMIN_KEY:
        raise HTTPException(status_code=403, detail="Forbidden")


async def run_scrape(path: str = SCRAPED_STATUS_PATH) -> None:
    scraped = await scrape_all()
    write_scraped_status(path, scraped)


@router.post("/migrate", dependencies=[Depends(_require_key)])
async def run_migrate():
    if STORE_BACKEND != "sql":
        return {"status": "ok", "message": f"Nothing to migrate for the {STORE_BACKEND} store"}
    from backend.db import init_db
    await init_db()
    return {"status": "ok", "message": "Tables created successfully"}


@router.post("/refresh-weather", dependencies=[Depends(_require_key)])
async def refresh_weather(services: Services = Depends(get_services)):
    """Bypass the cache and refetch every resort's forecast."""
    forecasts, failed_ids = await fetch_all_weather(
        services.weather, services.catalog, force_refresh=True
    )
    logger.info("Forced weather refresh: %d ok, %d failed", len(forecasts), len(failed_ids))
    return {"status": "ok", "refreshed": sorted(forecasts), "failed": failed_ids}


@router.post("/scrape", dependencies=[Depends(_require_key)])
async def trigger_scrape(background_tasks: BackgroundTasks, services: Services = Depends(get_services)):
    if services.scraped_source.startswith(("http://", "https://")):
        raise HTTPException(status_code=409, detail="Scraped status is read from a remote URL")
    background_tasks.add_task(run_scrape, services.scraped_source)
    return {"status": "ok", "message": "Scrape started in background"}
