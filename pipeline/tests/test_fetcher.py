"""
Unit tests for pipeline/fetcher.py

Run with:  pytest pipeline/tests/test_fetcher.py -v
"""
import asyncio
import json

import httpx
import pytest

from backend.cache import MemoryStore
from pipeline.fetcher import (
    HOURLY_CACHE_KEY,
    WeatherCache,
    WeatherFetchError,
    describe_weather_code,
    fetch_all_weather,
    group_hourly_periods,
    parse_daily_response,
    period_for_hour,
    weather_cache_key,
)

FETCHED_AT = "2026-01-15T06:00:00+00:00"

DAILY_PAYLOAD = {
    "daily": {
        "time": ["2026-01-15", "2026-01-16", "2026-01-17"],
        "snowfall_sum": [12.5, None, 31.0],
        "temperature_2m_max": [-1.0, 0.5, -3.2],
        "temperature_2m_min": [-7.0, -4.0, -9.9],
        "precipitation_probability_max": [80, 10, 95],
        "weather_code": [73, 3, 75],
        "wind_speed_10m_max": [14.0, 8.2, 30.1],
    }
}


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def _transport(payload=DAILY_PAYLOAD, status=200, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return httpx.Response(status, json=payload)
    return httpx.MockTransport(handler)


def _cache(store=None, calls=None, payload=DAILY_PAYLOAD, status=200, clock=None):
    client = httpx.AsyncClient(transport=_transport(payload, status, calls))
    return WeatherCache(
        store if store is not None else MemoryStore(),
        client=client,
        ttl_seconds=3600,
        clock=clock or FakeClock(),
        retries=1,
    )


# ── parse_daily_response ─────────────────────────────────────────────────────

class TestParseDailyResponse:
    def test_one_record_per_day_in_order(self):
        days = parse_daily_response(DAILY_PAYLOAD, FETCHED_AT)
        assert [d.date for d in days] == ["2026-01-15", "2026-01-16", "2026-01-17"]
        assert days[0].snowfall_24h_cm == 12.5
        assert days[0].weather_code == 73
        assert days[2].wind_speed_kmh == 30.1
        assert all(d.fetched_at == FETCHED_AT for d in days)

    def test_missing_values_default_to_zero(self):
        days = parse_daily_response(DAILY_PAYLOAD, FETCHED_AT)
        assert days[1].snowfall_24h_cm == 0.0

    def test_missing_column_defaults_to_zero(self):
        payload = {"daily": {"time": ["2026-01-15"], "snowfall_sum": [4.0]}}
        day = parse_daily_response(payload, FETCHED_AT)[0]
        assert day.temperature_max_c == 0.0
        assert day.weather_code == 0

    def test_missing_daily_block_raises(self):
        with pytest.raises(WeatherFetchError):
            parse_daily_response({"error": True, "reason": "bad"}, FETCHED_AT)


# ── group_hourly_periods ─────────────────────────────────────────────────────

def _hourly(rows):
    return {
        "hourly": {
            "time": [r[0] for r in rows],
            "temperature_2m": [r[1] for r in rows],
            "snowfall": [r[2] for r in rows],
            "weather_code": [r[3] for r in rows],
        }
    }


class TestGroupHourlyPeriods:
    def test_period_boundaries(self):
        assert period_for_hour(5) == "night"
        assert period_for_hour(6) == "morning"
        assert period_for_hour(11) == "morning"
        assert period_for_hour(12) == "afternoon"
        assert period_for_hour(17) == "afternoon"
        assert period_for_hour(18) == "night"
        assert period_for_hour(23) == "night"

    def test_aggregates_per_period(self):
        rows = [
            ("2026-01-15T06:00", -6.0, 0.5, 71),
            ("2026-01-15T07:00", -4.0, 1.0, 73),
            ("2026-01-15T08:00", -2.0, 0.0, 73),
            ("2026-01-15T12:00", 0.0, 0.0, 3),
        ]
        day = group_hourly_periods(_hourly(rows), FETCHED_AT)[0]
        morning, afternoon = day.periods
        assert morning.period == "morning"
        assert morning.temperature_c == pytest.approx(-4.0)
        assert morning.snowfall_cm == pytest.approx(1.5)
        assert morning.weather_code == 73
        assert afternoon.weather_code == 3

    def test_weather_code_tie_goes_to_first_seen(self):
        rows = [
            ("2026-01-15T12:00", 0.0, 0.0, 3),
            ("2026-01-15T13:00", 0.0, 0.0, 71),
            ("2026-01-15T14:00", 0.0, 0.0, 71),
            ("2026-01-15T15:00", 0.0, 0.0, 3),
        ]
        day = group_hourly_periods(_hourly(rows), FETCHED_AT)[0]
        assert day.periods[0].weather_code == 3

    def test_early_hours_belong_to_previous_night(self):
        rows = [
            ("2026-01-15T22:00", -5.0, 1.0, 73),
            ("2026-01-16T02:00", -7.0, 2.0, 75),
            ("2026-01-16T06:00", -8.0, 0.0, 3),
        ]
        days = group_hourly_periods(_hourly(rows), FETCHED_AT)
        assert [d.date for d in days] == ["2026-01-15", "2026-01-16"]
        night = days[0].periods[0]
        assert night.period == "night"
        assert night.snowfall_cm == pytest.approx(3.0)
        assert night.temperature_c == pytest.approx(-6.0)
        assert [p.period for p in days[1].periods] == ["morning"]

    def test_full_window_from_midnight_starts_with_first_date(self):
        rows = [
            (f"2026-01-{15 + h // 24}T{h % 24:02d}:00", -5.0, 0.5, 73)
            for h in range(48)
        ]
        days = group_hourly_periods(_hourly(rows), FETCHED_AT)
        assert [d.date for d in days] == ["2026-01-15", "2026-01-16"]
        assert [p.period for p in days[0].periods] == ["morning", "afternoon", "night"]
        # 18:00-23:00 on the 15th plus 00:00-05:00 on the 16th
        assert days[0].periods[2].snowfall_cm == pytest.approx(6.0)
        # the 16th's night only has 18:00-23:00 inside the window
        assert days[1].periods[2].snowfall_cm == pytest.approx(3.0)

    def test_periods_ordered_morning_afternoon_night(self):
        rows = [
            ("2026-01-15T19:00", -5.0, 0.0, 3),
            ("2026-01-15T13:00", -1.0, 0.0, 3),
            ("2026-01-15T09:00", -3.0, 0.0, 3),
        ]
        day = group_hourly_periods(_hourly(rows), FETCHED_AT)[0]
        assert [p.period for p in day.periods] == ["morning", "afternoon", "night"]

    def test_missing_hourly_block_raises(self):
        with pytest.raises(WeatherFetchError):
            group_hourly_periods({"daily": {}}, FETCHED_AT)


# ── WeatherCache ─────────────────────────────────────────────────────────────

class TestWeatherCache:
    def test_fetch_sends_provider_parameters(self):
        calls = []
        cache = _cache(calls=calls)
        asyncio.run(cache.get("madarao", 36.86, 138.29))
        params = calls[0].url.params
        assert params["latitude"] == "36.86"
        assert params["longitude"] == "138.29"
        assert params["forecast_days"] == "3"
        assert params["timezone"] == "Asia/Tokyo"
        assert "snowfall_sum" in params["daily"]

    def test_second_call_within_ttl_uses_cache(self):
        calls = []
        clock = FakeClock()
        cache = _cache(calls=calls, clock=clock)

        async def run():
            first = await cache.get("madarao", 36.86, 138.29)
            clock.now += 3600 - 0.001
            second = await cache.get("madarao", 36.86, 138.29)
            return first, second

        first, second = asyncio.run(run())
        assert first == second
        assert len(calls) == 1

    def test_refetch_after_ttl(self):
        calls = []
        clock = FakeClock()
        cache = _cache(calls=calls, clock=clock)

        async def run():
            await cache.get("madarao", 36.86, 138.29)
            clock.now += 3600 + 0.001
            await cache.get("madarao", 36.86, 138.29)

        asyncio.run(run())
        assert len(calls) == 2

    def test_force_refresh_bypasses_fresh_cache(self):
        calls = []
        cache = _cache(calls=calls)

        async def run():
            await cache.get("madarao", 36.86, 138.29)
            await cache.get("madarao", 36.86, 138.29, force_refresh=True)

        asyncio.run(run())
        assert len(calls) == 2

    def test_invalidate_forces_refetch(self):
        calls = []
        cache = _cache(calls=calls)

        async def run():
            await cache.get("madarao", 36.86, 138.29)
            await cache.invalidate("madarao")
            await cache.get("madarao", 36.86, 138.29)

        asyncio.run(run())
        assert len(calls) == 2

    def test_cache_is_keyed_by_resort(self):
        calls = []
        store = MemoryStore()
        cache = _cache(store=store, calls=calls)

        async def run():
            await cache.get("madarao", 36.86, 138.29)
            await cache.get("togari", 36.87, 138.39)

        asyncio.run(run())
        assert len(calls) == 2
        assert weather_cache_key("madarao") in store.data
        assert weather_cache_key("togari") in store.data

    def test_cached_entry_round_trips(self):
        store = MemoryStore()
        clock = FakeClock()
        fetched = asyncio.run(_cache(store=store, clock=clock).get("madarao", 36.86, 138.29))
        # A fresh cache over the same store must not touch the network
        offline = _cache(store=store, clock=clock, status=500)
        assert asyncio.run(offline.get("madarao", 36.86, 138.29)) == fetched

    @pytest.mark.parametrize(
        "raw",
        [
            "{not json",
            json.dumps([1, 2, 3]),
            json.dumps({"data": "nope", "fetched_at": 1_000_000.0}),
            json.dumps({"data": [{"date": "2026-01-15"}], "fetched_at": 1_000_000.0}),
        ],
    )
    def test_corrupt_entry_is_a_miss(self, raw):
        calls = []
        store = MemoryStore({weather_cache_key("madarao"): raw})
        forecasts = asyncio.run(_cache(store=store, calls=calls).get("madarao", 36.86, 138.29))
        assert len(calls) == 1
        assert len(forecasts) == 3
        assert json.loads(store.data[weather_cache_key("madarao")])["data"][0]["date"] == "2026-01-15"

    def test_http_error_raises_fetch_error(self):
        cache = _cache(status=503)
        with pytest.raises(WeatherFetchError):
            asyncio.run(cache.get("madarao", 36.86, 138.29))

    def test_failed_fetch_leaves_no_entry(self):
        store = MemoryStore()
        with pytest.raises(WeatherFetchError):
            asyncio.run(_cache(store=store, status=503).get("madarao", 36.86, 138.29))
        assert store.data == {}

    def test_retries_before_giving_up(self):
        calls = []
        client = httpx.AsyncClient(transport=_transport(status=500, calls=calls))
        cache = WeatherCache(
            MemoryStore(), client=client, clock=FakeClock(), retries=3, backoff_factor=0
        )
        with pytest.raises(WeatherFetchError):
            asyncio.run(cache.get("madarao", 36.86, 138.29))
        assert len(calls) == 3

    def test_period_forecast_cached_under_single_key(self):
        calls = []
        rows = [("2026-01-15T06:00", -6.0, 0.5, 71), ("2026-01-15T12:00", -2.0, 0.0, 3)]
        store = MemoryStore()
        cache = _cache(store=store, calls=calls, payload=_hourly(rows))

        async def run():
            first = await cache.get_periods(36.85, 138.36)
            second = await cache.get_periods(36.85, 138.36)
            return first, second

        first, second = asyncio.run(run())
        assert first == second
        assert len(calls) == 1
        assert calls[0].url.params["forecast_days"] == "7"
        assert "temperature_2m" in calls[0].url.params["hourly"]
        assert HOURLY_CACHE_KEY in store.data


# ── fetch_all_weather ────────────────────────────────────────────────────────

class TestFetchAllWeather:
    def test_one_failure_does_not_block_others(self, make_config):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params["latitude"] == "1.0":
                return httpx.Response(500, json={"error": True})
            return httpx.Response(200, json=DAILY_PAYLOAD)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        cache = WeatherCache(MemoryStore(), client=client, clock=FakeClock(), retries=1)
        resorts = [
            make_config(id="good", latitude=36.8),
            make_config(id="bad", latitude=1.0),
            make_config(id="also-good", latitude=36.9),
        ]
        forecasts, failed = asyncio.run(fetch_all_weather(cache, resorts))
        assert set(forecasts) == {"good", "also-good"}
        assert failed == ["bad"]


def test_describe_weather_code():
    assert describe_weather_code(75) == "Heavy Snow"
    assert describe_weather_code(42) == "Unknown"
