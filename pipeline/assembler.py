"""
Assemble the per-resort state consumed by scoring.

The scraped status document and every resort's forecast are loaded
concurrently.  A resort whose forecast fails carries ``weather=None``.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from pipeline.fetcher import WeatherCache, fetch_all_weather
from pipeline.fusion import build_resort_state
from pipeline.models import ResortConfig, ResortState, ScrapedStatusFile, WeatherForecast
from pipeline.repository import ResortRepository
from pipeline.status_source import load_scraped_status

logger = logging.getLogger(__name__)


@dataclass
class AssembledResorts:
    states: list[ResortState]
    forecasts: dict[str, list[WeatherForecast]] = field(default_factory=dict)
    weather_failures: list[str] = field(default_factory=list)
    scraped: ScrapedStatusFile = field(default_factory=ScrapedStatusFile)


async def assemble_resorts(
    catalog: Sequence[ResortConfig],
    repository: ResortRepository,
    weather_cache: WeatherCache,
    scraped_source: str,
    force_refresh: bool = False,
    day_index: int = 0,
    resort_ids: Optional[set[str]] = None,
) -> AssembledResorts:
    resorts = [c for c in catalog if resort_ids is None or c.id in resort_ids]
    ids = [c.id for c in resorts]

    scraped, (forecasts, failed_ids) = await asyncio.gather(
        load_scraped_status(scraped_source),
        fetch_all_weather(weather_cache, resorts, force_refresh=force_refresh),
    )
    manual = await repository.get_manual_map(ids)
    overrides = await repository.get_override_map(ids)

    if failed_ids:
        logger.warning("Weather unavailable for %d/%d resorts", len(failed_ids), len(resorts))

    states = [
        build_resort_state(
            config,
            overrides.get(config.id),
            scraped.resorts.get(config.id),
            manual.get(config.id),
            forecasts.get(config.id),
            day_index=day_index,
        )
        for config in resorts
    ]
    return AssembledResorts(
        states=states,
        forecasts=forecasts,
        weather_failures=failed_ids,
        scraped=scraped,
    )


async def load_resort_states(
    catalog: Sequence[ResortConfig],
    repository: ResortRepository,
    weather_cache: WeatherCache,
    scraped_source: str,
    force_refresh: bool = False,
    day_index: int = 0,
) -> list[ResortState]:
    assembled = await assemble_resorts(
        catalog, repository, weather_cache, scraped_source,
        force_refresh=force_refresh, day_index=day_index,
    )
    return assembled.states
