"""
Status fusion: reconcile scraped and manual operational status.

A manual value wins only when it was explicitly entered (status other than
UNKNOWN, numeric not None).  Otherwise the scraped value is used, and when
neither source has a value the field stays UNKNOWN / None.
"""
from __future__ import annotations

from typing import Optional, Sequence

from pipeline.models import (
    ConfigOverride,
    FusedStatus,
    ManualStatus,
    ResortConfig,
    ResortState,
    ResortStatus,
    ScrapedStatus,
    WeatherForecast,
)
from pipeline.overlay import merge_config


def default_manual_status() -> ManualStatus:
    return ManualStatus()


def _pick(manual_value: Optional[int], scraped_value: Optional[int]) -> Optional[int]:
    if manual_value is not None:
        return manual_value
    return scraped_value


def fuse_status(scraped: Optional[ScrapedStatus], manual: ManualStatus) -> FusedStatus:
    if manual.status != ResortStatus.UNKNOWN:
        status = manual.status
    elif scraped is not None:
        status = scraped.status
    else:
        status = ResortStatus.UNKNOWN

    if manual.updated_at:
        updated_at = manual.updated_at
    elif scraped is not None:
        updated_at = scraped.scraped_at or ""
    else:
        updated_at = ""

    return FusedStatus(
        status=status,
        base_depth_cm=_pick(manual.base_depth_cm, scraped.base_depth_cm if scraped else None),
        lifts_open=_pick(manual.lifts_open, scraped.lifts_open if scraped else None),
        slopes_open=_pick(manual.slopes_open, scraped.slopes_open if scraped else None),
        notes=manual.notes,
        updated_at=updated_at,
    )


def select_forecast(
    forecasts: Optional[Sequence[WeatherForecast]],
    day_index: int = 0,
) -> Optional[WeatherForecast]:
    """Forecast for ``day_index`` days ahead, or the nearest one available."""
    if not forecasts:
        return None
    return forecasts[min(max(day_index, 0), len(forecasts) - 1)]


def build_resort_state(
    config: ResortConfig,
    override: Optional[ConfigOverride],
    scraped: Optional[ScrapedStatus],
    manual: Optional[ManualStatus],
    forecasts: Optional[Sequence[WeatherForecast]],
    day_index: int = 0,
) -> ResortState:
    return ResortState(
        config=merge_config(config, override),
        weather=select_forecast(forecasts, day_index),
        status=fuse_status(scraped, manual if manual is not None else default_manual_status()),
    )
