from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.schemas.responses import DayForecastOut
from backend.services import Services, get_services
from pipeline.config import REFERENCE_LATITUDE, REFERENCE_LONGITUDE
from pipeline.fetcher import WeatherFetchError

router = APIRouter(prefix="/forecast", tags=["forecast"])


@router.get("/periods", response_model=list[DayForecastOut])
async def get_period_forecast(
    force_refresh: bool = Query(False),
    services: Services = Depends(get_services),
):
    """Morning / afternoon / night forecast for the reference location."""
    try:
        days = await services.weather.get_periods(
            REFERENCE_LATITUDE, REFERENCE_LONGITUDE, force_refresh=force_refresh
        )
    except WeatherFetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return [DayForecastOut.model_validate(d) for d in days]
