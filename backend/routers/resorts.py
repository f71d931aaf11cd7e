from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from backend.schemas.responses import (
    ConfigOverrideIn,
    ConfigOverrideOut,
    ManualStatusIn,
    ResortConfigOut,
    ResortDetail,
    ResortSummary,
    ScrapedStatusOut,
    StatusOut,
    VisitOut,
    WeatherOut,
)
from backend.services import Services, get_services
from pipeline.assembler import assemble_resorts
from pipeline.fetcher import describe_weather_code
from pipeline.fusion import fuse_status
from pipeline.models import ResortConfig, WeatherForecast
from pipeline.overlay import merge_config
from pipeline.status_source import load_scraped_status

router = APIRouter(prefix="/resorts", tags=["resorts"])


def weather_out(forecast: Optional[WeatherForecast]) -> Optional[WeatherOut]:
    if forecast is None:
        return None
    return WeatherOut(
        **forecast.to_dict(),
        weather_description=describe_weather_code(forecast.weather_code),
    )


def _require_resort(services: Services, resort_id: str) -> ResortConfig:
    config = services.find(resort_id)
    if config is None:
        raise HTTPException(status_code=404, detail="Resort not found")
    return config


@router.get("", response_model=list[ResortSummary])
async def list_resorts(
    day_index: int = Query(0, ge=0, le=6),
    services: Services = Depends(get_services),
):
    assembled = await assemble_resorts(
        services.catalog,
        services.repository,
        services.weather,
        services.scraped_source,
        day_index=day_index,
    )
    overrides = await services.repository.get_override_map(c.id for c in services.catalog)
    return [
        ResortSummary(
            config=ResortConfigOut.model_validate(state.config),
            status=StatusOut.model_validate(state.status),
            weather=weather_out(state.weather),
            has_override=overrides.get(state.config.id) is not None,
        )
        for state in assembled.states
    ]


@router.get("/{resort_id}", response_model=ResortDetail)
async def get_resort(resort_id: str, services: Services = Depends(get_services)):
    config = _require_resort(services, resort_id)
    assembled = await assemble_resorts(
        services.catalog,
        services.repository,
        services.weather,
        services.scraped_source,
        resort_ids={resort_id},
    )
    state = assembled.states[0]
    override = await services.repository.get_override(resort_id)
    manual = await services.repository.get_manual(resort_id)
    scraped = assembled.scraped.resorts.get(resort_id)

    return ResortDetail(
        config=ResortConfigOut.model_validate(state.config),
        baseline=ResortConfigOut.model_validate(config),
        override=ConfigOverrideOut.model_validate(override) if override else None,
        status=StatusOut.model_validate(state.status),
        manual=StatusOut.model_validate(manual),
        scraped=ScrapedStatusOut.model_validate(scraped) if scraped else None,
        forecast=[weather_out(f) for f in assembled.forecasts.get(resort_id, [])],
    )


@router.put("/{resort_id}/manual", response_model=StatusOut)
async def update_manual_status(
    resort_id: str,
    body: ManualStatusIn,
    services: Services = Depends(get_services),
):
    """Save a manual edit and return the resulting fused status."""
    _require_resort(services, resort_id)
    manual = await services.repository.update_manual(resort_id, **body.model_dump(exclude_unset=True))
    scraped = await load_scraped_status(services.scraped_source)
    return StatusOut.model_validate(fuse_status(scraped.resorts.get(resort_id), manual))


@router.delete("/{resort_id}/manual", status_code=204)
async def clear_manual_status(resort_id: str, services: Services = Depends(get_services)):
    _require_resort(services, resort_id)
    await services.repository.clear_manual(resort_id)
    return Response(status_code=204)


@router.put("/{resort_id}/config", response_model=ResortConfigOut)
async def update_config_override(
    resort_id: str,
    body: ConfigOverrideIn,
    services: Services = Depends(get_services),
):
    """Replace the resort's override and return the effective config."""
    config = _require_resort(services, resort_id)
    override = body.to_override()
    await services.repository.set_override(resort_id, override)
    return ResortConfigOut.model_validate(merge_config(config, override))


@router.delete("/{resort_id}/config", status_code=204)
async def clear_config_override(resort_id: str, services: Services = Depends(get_services)):
    _require_resort(services, resort_id)
    await services.repository.clear_override(resort_id)
    return Response(status_code=204)


@router.post("/{resort_id}/visits", response_model=VisitOut)
async def record_visit(resort_id: str, services: Services = Depends(get_services)):
    _require_resort(services, resort_id)
    visits = await services.repository.record_visit(resort_id)
    return VisitOut(resort_id=resort_id, visits=visits)
