from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from pipeline.models import (
    ConfigOverride,
    Preferences,
    ResortStatus,
    SkillLevel,
    Terrain,
    TerrainPreference,
)


class TerrainSchema(BaseModel):
    beginner: int = Field(0, ge=0)
    intermediate: int = Field(0, ge=0)
    advanced: int = Field(0, ge=0)

    class Config:
        from_attributes = True


class ResortConfigOut(BaseModel):
    id: str
    name: str
    name_local: str
    latitude: float
    longitude: float
    drive_minutes: int
    base_elevation_m: Optional[int]
    summit_elevation_m: Optional[int]
    lifts_total: int
    slopes_total: int
    terrain: TerrainSchema
    notes: str
    website_url: str
    lift_status_url: Optional[str]

    class Config:
        from_attributes = True


class StatusOut(BaseModel):
    status: ResortStatus
    base_depth_cm: Optional[int]
    lifts_open: Optional[int]
    slopes_open: Optional[int]
    notes: str
    updated_at: str

    class Config:
        from_attributes = True


class ScrapedStatusOut(BaseModel):
    status: ResortStatus
    base_depth_cm: Optional[int]
    lifts_open: Optional[int]
    slopes_open: Optional[int]
    temperature_c: Optional[float]
    weather: Optional[str]
    scraped_at: str
    error: Optional[str]

    class Config:
        from_attributes = True


class WeatherOut(BaseModel):
    date: str  # "YYYY-MM-DD"
    snowfall_24h_cm: float
    temperature_min_c: float
    temperature_max_c: float
    precipitation_probability: float
    weather_code: int
    weather_description: str
    wind_speed_kmh: float
    fetched_at: str


class ConfigOverrideOut(BaseModel):
    terrain: Optional[TerrainSchema] = None
    drive_minutes: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class ResortSummary(BaseModel):
    config: ResortConfigOut
    status: StatusOut
    weather: Optional[WeatherOut]
    has_override: bool = False


class ResortDetail(BaseModel):
    config: ResortConfigOut
    baseline: ResortConfigOut
    override: Optional[ConfigOverrideOut]
    status: StatusOut
    manual: StatusOut
    scraped: Optional[ScrapedStatusOut]
    forecast: list[WeatherOut]


class ManualStatusIn(BaseModel):
    """Partial manual edit; only fields sent are changed. Send null to clear a number."""
    status: Optional[ResortStatus] = None
    base_depth_cm: Optional[int] = Field(None, ge=0)
    lifts_open: Optional[int] = Field(None, ge=0)
    slopes_open: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class ConfigOverrideIn(BaseModel):
    terrain: Optional[TerrainSchema] = None
    drive_minutes: Optional[int] = Field(None, gt=0)
    notes: Optional[str] = None

    def to_override(self) -> ConfigOverride:
        return ConfigOverride(
            terrain=Terrain(**self.terrain.model_dump()) if self.terrain is not None else None,
            drive_minutes=self.drive_minutes,
            notes=self.notes,
        )


class PreferencesIn(BaseModel):
    skill_level: SkillLevel = SkillLevel.INTERMEDIATE
    terrain_preferences: list[TerrainPreference] = [TerrainPreference.GROOMED]
    max_drive_minutes: int = Field(60, gt=0, le=600)
    family_friendly: bool = False

    def to_preferences(self) -> Preferences:
        return Preferences(
            skill_level=self.skill_level,
            terrain_preferences=list(self.terrain_preferences),
            max_drive_minutes=self.max_drive_minutes,
            family_friendly=self.family_friendly,
        )


class ScoreBreakdownOut(BaseModel):
    terrain: float
    conditions: float
    convenience: float
    features: float
    novelty: Optional[float]
    total: float

    class Config:
        from_attributes = True


class RecommendationOut(BaseModel):
    rank: int
    resort_id: str
    resort_name: str
    score: ScoreBreakdownOut
    explanations: list[str]
    highlights: list[str]
    warnings: list[str]


class RecommendationsResponse(BaseModel):
    mode: str
    generated_at: datetime
    weather_failures: list[str] = []
    results: list[RecommendationOut]


class PeriodOut(BaseModel):
    period: str
    temperature_c: float
    snowfall_cm: float
    weather_code: int

    class Config:
        from_attributes = True


class DayForecastOut(BaseModel):
    date: str
    periods: list[PeriodOut]
    fetched_at: str

    class Config:
        from_attributes = True


class VisitOut(BaseModel):
    resort_id: str
    visits: int


class HealthResponse(BaseModel):
    status: str
    resorts_count: int
    scoring_mode: str
