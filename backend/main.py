import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.routers import admin, forecast, recommendations, resorts
from backend.schemas.responses import HealthResponse
from backend.services import Services, get_services
from pipeline.config import LOG_LEVEL, SCRAPE_CRON_SCHEDULE, STORE_BACKEND

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if STORE_BACKEND == "sql":
        from backend.db import init_db
        await init_db()

    # Start daily scrape + weather refresh
    try:
        from pipeline.scheduler import cron_trigger, run_refresh
        scheduler = AsyncIOScheduler()
        scheduler.add_job(run_refresh, cron_trigger(), id="daily_refresh", replace_existing=True)
        scheduler.start()
        logger.info("Refresh scheduler started. Schedule: %s", SCRAPE_CRON_SCHEDULE)
    except Exception as exc:
        logger.warning("Could not start refresh scheduler: %s", exc)
        scheduler = None

    yield

    if scheduler:
        scheduler.shutdown()


app = FastAPI(
    title="SkiPick API",
    description="Daily ski resort picker: fused resort status, forecasts and ranked recommendations",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

API_PREFIX = "/api/v1"
app.include_router(resorts.router, prefix=API_PREFIX)
app.include_router(recommendations.router, prefix=API_PREFIX)
app.include_router(forecast.router, prefix=API_PREFIX)
app.include_router(admin.router, prefix=API_PREFIX)


@app.get(f"{API_PREFIX}/health", response_model=HealthResponse, tags=["system"])
async def health(services: Services = Depends(get_services)):
    return HealthResponse(
        status="ok",
        resorts_count=len(services.catalog),
        scoring_mode=services.scoring_mode.value,
    )
