"""
Async HTTP fetcher for Open-Meteo weather API, behind a TTL cache.

Each resort's daily forecast is cached in the key-value store under its own
key for WEATHER_CACHE_TTL_SECONDS.  A finer-grained AM / PM / night forecast
is kept for a single reference location.  All resorts are fetched
concurrently and one resort's failure never affects the others.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Sequence

import httpx

from backend.cache import KeyValueStore, get_json, set_json
from pipeline.config import (
    FORECAST_DAYS,
    HOURLY_FORECAST_DAYS,
    HTTP_BACKOFF_FACTOR,
    HTTP_RETRIES,
    HTTP_TIMEOUT,
    OPEN_METEO_FORECAST_URL,
    WEATHER_CACHE_TTL_SECONDS,
    WEATHER_TIMEZONE,
)
from pipeline.models import DayForecast, PeriodForecast, ResortConfig, WeatherForecast

logger = logging.getLogger(__name__)

# Open-Meteo variable names
DAILY_VARS = [
    "snowfall_sum",
    "temperature_2m_max",
    "temperature_2m_min",
    "precipitation_probability_max",
    "weather_code",
    "wind_speed_10m_max",
]
HOURLY_VARS = ["temperature_2m", "snowfall", "weather_code"]

HOURLY_CACHE_KEY = "hourly-forecast-cache"

PERIODS = ("morning", "afternoon", "night")

WEATHER_DESCRIPTIONS = {
    0: "Clear",
    1: "Mostly Clear",
    2: "Partly Cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Rime Fog",
    51: "Light Drizzle",
    53: "Drizzle",
    55: "Heavy Drizzle",
    56: "Freezing Drizzle",
    57: "Heavy Freezing Drizzle",
    61: "Light Rain",
    63: "Rain",
    65: "Heavy Rain",
    66: "Freezing Rain",
    67: "Heavy Freezing Rain",
    71: "Light Snow",
    73: "Snow",
    75: "Heavy Snow",
    77: "Snow Grains",
    80: "Light Showers",
    81: "Showers",
    82: "Heavy Showers",
    85: "Light Snow Showers",
    86: "Heavy Snow Showers",
    95: "Thunderstorm",
    96: "Thunderstorm with Hail",
    99: "Severe Thunderstorm",
}


class WeatherFetchError(RuntimeError):
    """Forecast could not be fetched or parsed for one location."""


def describe_weather_code(code: int) -> str:
    """Human-readable description of a WMO weather code."""
    return WEATHER_DESCRIPTIONS.get(code, "Unknown")


def weather_cache_key(resort_id: str) -> str:
    return f"weather-cache-{resort_id}"


def _value(series: Sequence[Any], i: int) -> float:
    """Column value at ``i``; missing or null values default to 0."""
    try:
        v = series[i]
    except IndexError:
        return 0.0
    return float(v) if v is not None else 0.0


def parse_daily_response(data: dict[str, Any], fetched_at: str) -> list[WeatherForecast]:
    """Turn Open-Meteo's columnar ``daily`` block into one record per day."""
    daily = data.get("daily")
    if not isinstance(daily, dict) or not isinstance(daily.get("time"), list):
        raise WeatherFetchError("Response has no daily forecast block")

    snowfall = daily.get("snowfall_sum") or []
    tmax = daily.get("temperature_2m_max") or []
    tmin = daily.get("temperature_2m_min") or []
    precip = daily.get("precipitation_probability_max") or []
    wcode = daily.get("weather_code") or []
    wind = daily.get("wind_speed_10m_max") or []

    return [
        WeatherForecast(
            date=date_str,
            snowfall_24h_cm=_value(snowfall, i),
            temperature_max_c=_value(tmax, i),
            temperature_min_c=_value(tmin, i),
            precipitation_probability=_value(precip, i),
            weather_code=int(_value(wcode, i)),
            wind_speed_kmh=_value(wind, i),
            fetched_at=fetched_at,
        )
        for i, date_str in enumerate(daily["time"])
    ]


def period_for_hour(hour: int) -> str:
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    return "night"


def _most_frequent(codes: list[int]) -> int:
    """Most common code; ties go to the code seen first."""
    counts = Counter(codes)
    best = max(counts.values())
    return next(c for c in codes if counts[c] == best)


def group_hourly_periods(data: dict[str, Any], fetched_at: str) -> list[DayForecast]:
    """
    Group hourly samples into morning / afternoon / night per calendar day.

    Night runs 18:00-05:59 and wraps: hours 00-05 belong to the night of the
    previous day.  Early hours of the first date are dropped so the result
    starts with that date.  Temperature is averaged, snowfall summed, and
    the weather code is the most frequent one in the period.
    """
    hourly = data.get("hourly")
    if not isinstance(hourly, dict) or not isinstance(hourly.get("time"), list):
        raise WeatherFetchError("Response has no hourly forecast block")

    temps = hourly.get("temperature_2m") or []
    snowfall = hourly.get("snowfall") or []
    wcode = hourly.get("weather_code") or []

    moments = []
    for stamp in hourly["time"]:
        try:
            moments.append(datetime.fromisoformat(stamp))
        except (TypeError, ValueError) as exc:
            raise WeatherFetchError(f"Bad hourly timestamp {stamp!r}") from exc
    first_day = min((m.date() for m in moments), default=None)

    # day -> period -> samples, both in first-seen order
    buckets: dict[str, dict[str, list[tuple[float, float, int]]]] = {}
    for i, moment in enumerate(moments):
        period = period_for_hour(moment.hour)
        day = moment.date()
        if period == "night" and moment.hour < 6:
            day = day - timedelta(days=1)
            # Early hours of the first day have no preceding night in the window
            if day < first_day:
                continue
        sample = (_value(temps, i), _value(snowfall, i), int(_value(wcode, i)))
        buckets.setdefault(day.isoformat(), {}).setdefault(period, []).append(sample)

    days = []
    for day, periods in buckets.items():
        summaries = []
        for name in PERIODS:
            samples = periods.get(name)
            if not samples:
                continue
            summaries.append(
                PeriodForecast(
                    period=name,
                    temperature_c=round(sum(s[0] for s in samples) / len(samples), 1),
                    snowfall_cm=round(sum(s[1] for s in samples), 1),
                    weather_code=_most_frequent([s[2] for s in samples]),
                )
            )
        days.append(DayForecast(date=day, periods=tuple(summaries), fetched_at=fetched_at))
    return sorted(days, key=lambda d: d.date)


class WeatherCache:
    """
    Time-bounded cache around the Open-Meteo forecast call.

    ``clock`` returns epoch seconds and is injectable so TTL expiry can be
    tested without sleeping.
    """

    def __init__(
        self,
        store: KeyValueStore,
        client: Optional[httpx.AsyncClient] = None,
        ttl_seconds: float = WEATHER_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        retries: int = HTTP_RETRIES,
        backoff_factor: float = HTTP_BACKOFF_FACTOR,
        forecast_days: int = FORECAST_DAYS,
        hourly_forecast_days: int = HOURLY_FORECAST_DAYS,
        timezone_name: str = WEATHER_TIMEZONE,
        url: str = OPEN_METEO_FORECAST_URL,
    ) -> None:
        self.store = store
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.retries = max(1, retries)
        self.backoff_factor = backoff_factor
        self.forecast_days = forecast_days
        self.hourly_forecast_days = hourly_forecast_days
        self.timezone_name = timezone_name
        self.url = url

    async def get(
        self,
        resort_id: str,
        latitude: float,
        longitude: float,
        force_refresh: bool = False,
    ) -> list[WeatherForecast]:
        """Daily forecasts for a resort, today first."""
        key = weather_cache_key(resort_id)
        if force_refresh:
            await self.store.delete(key)
        else:
            cached = await self._read(key)
            if cached is not None:
                try:
                    return [WeatherForecast.from_dict(d) for d in cached]
                except (KeyError, TypeError, ValueError):
                    logger.warning("Discarding malformed weather cache for %s", resort_id)
                    await self.store.delete(key)

        params = {
            "latitude": latitude,
            "longitude": longitude,
            "daily": ",".join(DAILY_VARS),
            "timezone": self.timezone_name,
            "forecast_days": self.forecast_days,
        }
        data = await self._fetch(params)
        forecasts = parse_daily_response(data, _now_iso())
        await self._write(key, [f.to_dict() for f in forecasts])
        logger.debug("Fetched %d forecast days for %s", len(forecasts), resort_id)
        return forecasts

    async def get_periods(
        self,
        latitude: float,
        longitude: float,
        force_refresh: bool = False,
    ) -> list[DayForecast]:
        """AM / PM / night forecast for the reference location."""
        if force_refresh:
            await self.store.delete(HOURLY_CACHE_KEY)
        else:
            cached = await self._read(HOURLY_CACHE_KEY)
            if cached is not None:
                try:
                    return [DayForecast.from_dict(d) for d in cached]
                except (KeyError, TypeError, ValueError):
                    logger.warning("Discarding malformed hourly forecast cache")
                    await self.store.delete(HOURLY_CACHE_KEY)

        params = {
            "latitude": latitude,
            "longitude": longitude,
            "hourly": ",".join(HOURLY_VARS),
            "timezone": self.timezone_name,
            "forecast_days": self.hourly_forecast_days,
        }
        data = await self._fetch(params)
        days = group_hourly_periods(data, _now_iso())
        await self._write(HOURLY_CACHE_KEY, [d.to_dict() for d in days])
        return days

    async def invalidate(self, resort_id: str) -> None:
        await self.store.delete(weather_cache_key(resort_id))

    async def _read(self, key: str) -> Optional[list[Any]]:
        """Cached payload if present and younger than the TTL."""
        entry = await get_json(self.store, key)
        if entry is None:
            return None
        if (
            not isinstance(entry, dict)
            or not isinstance(entry.get("data"), list)
            or not isinstance(entry.get("fetched_at"), (int, float))
        ):
            logger.warning("Discarding corrupt cache entry %s", key)
            await self.store.delete(key)
            return None
        if self.clock() - entry["fetched_at"] >= self.ttl_seconds:
            await self.store.delete(key)
            return None
        return entry["data"]

    async def _write(self, key: str, payload: list[dict[str, Any]]) -> None:
        await set_json(self.store, key, {"data": payload, "fetched_at": self.clock()})

    async def _fetch(self, params: dict[str, Any]) -> dict[str, Any]:
        if self.client is not None:
            return await self._fetch_with_retry(self.client, params)
        async with httpx.AsyncClient() as client:
            return await self._fetch_with_retry(client, params)

    async def _fetch_with_retry(
        self,
        client: httpx.AsyncClient,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """Fetch URL with exponential backoff retry."""
        last_exc: Exception | None = None
        for attempt in range(self.retries):
            try:
                response = await client.get(self.url, params=params, timeout=HTTP_TIMEOUT)
                response.raise_for_status()
                data = response.json()
                if not isinstance(data, dict):
                    raise WeatherFetchError("Unexpected forecast response shape")
                return data
            except (httpx.HTTPError, ValueError) as exc:
                last_exc = exc
                if attempt + 1 == self.retries:
                    break
                wait = self.backoff_factor * (2 ** attempt)
                logger.warning(
                    "Fetch attempt %d/%d failed: %s, retrying in %.1fs",
                    attempt + 1, self.retries, exc, wait,
                )
                await asyncio.sleep(wait)
        raise WeatherFetchError(f"All {self.retries} fetch attempts failed") from last_exc


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def fetch_all_weather(
    cache: WeatherCache,
    resorts: Sequence[ResortConfig],
    force_refresh: bool = False,
) -> tuple[dict[str, list[WeatherForecast]], list[str]]:
    """
    Fetch forecasts for every resort concurrently.

    Returns (forecasts_by_resort, failed_resort_ids).
    """
    tasks = [
        cache.get(r.id, r.latitude, r.longitude, force_refresh=force_refresh)
        for r in resorts
    ]
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)

    results: dict[str, list[WeatherForecast]] = {}
    failed_ids: list[str] = []
    for resort, outcome in zip(resorts, outcomes):
        if isinstance(outcome, Exception):
            logger.error("Failed to fetch weather for %s: %s", resort.name, outcome)
            failed_ids.append(resort.id)
        else:
            results[resort.id] = outcome
    return results, failed_ids
