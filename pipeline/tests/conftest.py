"""Shared fixtures for pipeline tests."""
import pytest

from pipeline.models import (
    FusedStatus,
    Preferences,
    ResortConfig,
    ResortState,
    ResortStatus,
    Terrain,
    WeatherForecast,
)


@pytest.fixture
def make_config():
    def _make(**overrides):
        defaults = dict(
            id="madarao",
            name="Madarao Mountain Resort",
            latitude=36.8636,
            longitude=138.2958,
            drive_minutes=25,
            lifts_total=10,
            slopes_total=30,
            terrain=Terrain(beginner=9, intermediate=12, advanced=9),
            notes="",
        )
        defaults.update(overrides)
        return ResortConfig(**defaults)
    return _make


@pytest.fixture
def make_weather():
    def _make(**overrides):
        defaults = dict(
            date="2026-01-15",
            snowfall_24h_cm=0.0,
            temperature_min_c=-8.0,
            temperature_max_c=-2.0,
            precipitation_probability=20.0,
            weather_code=3,
            wind_speed_kmh=12.0,
            fetched_at="2026-01-15T06:00:00+00:00",
        )
        defaults.update(overrides)
        return WeatherForecast(**defaults)
    return _make


@pytest.fixture
def make_state(make_config):
    def _make(config=None, weather=None, status=ResortStatus.OPEN, **status_fields):
        return ResortState(
            config=config or make_config(),
            weather=weather,
            status=FusedStatus(status=status, **status_fields),
        )
    return _make


@pytest.fixture
def prefs():
    return Preferences()
