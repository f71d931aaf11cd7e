"""
Data types shared by the fusion, weather, scoring and ranking stages.

Every persisted type round-trips through ``to_dict`` / ``from_dict`` without
loss so it can be stored as JSON in the key-value store.  ``None`` on a
numeric status field means "not entered" and is never conflated with ``0``.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional


class ResortStatus(str, Enum):
    OPEN = "OPEN"
    PARTIAL = "PARTIAL"
    CLOSED = "CLOSED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "ResortStatus":
        """Lenient parse; anything unrecognised is UNKNOWN."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    MIXED = "mixed"  # mixed-ability group


class TerrainPreference(str, Enum):
    GROOMED = "groomed"
    POWDER = "powder"
    TREE_RUNS = "tree-runs"


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


# ── Resort configuration ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Terrain:
    beginner: int = 0
    intermediate: int = 0
    advanced: int = 0

    @property
    def total(self) -> int:
        return self.beginner + self.intermediate + self.advanced

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Terrain":
        return cls(
            beginner=int(data.get("beginner", 0)),
            intermediate=int(data.get("intermediate", 0)),
            advanced=int(data.get("advanced", 0)),
        )


@dataclass(frozen=True)
class ResortConfig:
    id: str
    name: str
    latitude: float
    longitude: float
    drive_minutes: int
    lifts_total: int
    slopes_total: int
    terrain: Terrain
    name_local: str = ""
    base_elevation_m: Optional[int] = None
    summit_elevation_m: Optional[int] = None
    notes: str = ""
    website_url: str = ""
    lift_status_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResortConfig":
        return cls(
            id=data["id"],
            name=data["name"],
            name_local=data.get("name_local") or "",
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            drive_minutes=int(data["drive_minutes"]),
            base_elevation_m=_optional_int(data.get("base_elevation_m")),
            summit_elevation_m=_optional_int(data.get("summit_elevation_m")),
            lifts_total=int(data["lifts_total"]),
            slopes_total=int(data["slopes_total"]),
            terrain=Terrain.from_dict(data.get("terrain") or {}),
            notes=data.get("notes") or "",
            website_url=data.get("website_url") or "",
            lift_status_url=data.get("lift_status_url") or None,
        )


# The overlay result has the same shape as the baseline.
EffectiveConfig = ResortConfig


@dataclass
class ConfigOverride:
    """User edit of the mutable facts of a resort. ``None`` fields keep the baseline."""
    terrain: Optional[Terrain] = None
    drive_minutes: Optional[int] = None
    notes: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "terrain": asdict(self.terrain) if self.terrain is not None else None,
            "drive_minutes": self.drive_minutes,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConfigOverride":
        terrain = data.get("terrain")
        return cls(
            terrain=Terrain.from_dict(terrain) if terrain is not None else None,
            drive_minutes=_optional_int(data.get("drive_minutes")),
            notes=data.get("notes"),
        )


# ── Operational status ───────────────────────────────────────────────────────

@dataclass
class ScrapedStatus:
    status: ResortStatus = ResortStatus.UNKNOWN
    base_depth_cm: Optional[int] = None
    lifts_open: Optional[int] = None
    slopes_open: Optional[int] = None
    temperature_c: Optional[float] = None
    weather: Optional[str] = None
    scraped_at: str = ""
    error: Optional[str] = None

    def to_wire(self) -> dict[str, Any]:
        """camelCase document shape written by the scraper."""
        data: dict[str, Any] = {
            "status": self.status.value,
            "baseDepthCm": self.base_depth_cm,
            "liftsOpen": self.lifts_open,
            "slopesOpen": self.slopes_open,
            "temperature": self.temperature_c,
            "weather": self.weather,
            "scrapedAt": self.scraped_at,
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "ScrapedStatus":
        return cls(
            status=ResortStatus.parse(data.get("status")),
            base_depth_cm=_optional_int(data.get("baseDepthCm")),
            lifts_open=_optional_int(data.get("liftsOpen")),
            slopes_open=_optional_int(data.get("slopesOpen")),
            temperature_c=_optional_float(data.get("temperature")),
            weather=_optional_str(data.get("weather")),
            scraped_at=_optional_str(data.get("scrapedAt")) or "",
            error=_optional_str(data.get("error")),
        )


@dataclass
class ManualStatus:
    status: ResortStatus = ResortStatus.UNKNOWN
    base_depth_cm: Optional[int] = None
    lifts_open: Optional[int] = None
    slopes_open: Optional[int] = None
    notes: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ManualStatus":
        return cls(
            status=ResortStatus.parse(data.get("status", ResortStatus.UNKNOWN)),
            base_depth_cm=_optional_int(data.get("base_depth_cm")),
            lifts_open=_optional_int(data.get("lifts_open")),
            slopes_open=_optional_int(data.get("slopes_open")),
            notes=_optional_str(data.get("notes")) or "",
            updated_at=_optional_str(data.get("updated_at")) or "",
        )

    @classmethod
    def from_fused(cls, fused: "FusedStatus") -> "ManualStatus":
        return cls(**asdict(fused))


@dataclass
class FusedStatus:
    status: ResortStatus = ResortStatus.UNKNOWN
    base_depth_cm: Optional[int] = None
    lifts_open: Optional[int] = None
    slopes_open: Optional[int] = None
    notes: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class ScrapedStatusFile:
    scraped_at: Optional[str] = None
    resorts: dict[str, ScrapedStatus] = field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return {
            "scrapedAt": self.scraped_at,
            "resorts": {rid: s.to_wire() for rid, s in self.resorts.items()},
        }


# ── Weather ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class WeatherForecast:
    date: str                       # "YYYY-MM-DD"
    snowfall_24h_cm: float
    temperature_min_c: float
    temperature_max_c: float
    precipitation_probability: float
    weather_code: int
    wind_speed_kmh: float
    fetched_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WeatherForecast":
        return cls(
            date=data["date"],
            snowfall_24h_cm=float(data["snowfall_24h_cm"]),
            temperature_min_c=float(data["temperature_min_c"]),
            temperature_max_c=float(data["temperature_max_c"]),
            precipitation_probability=float(data["precipitation_probability"]),
            weather_code=int(data["weather_code"]),
            wind_speed_kmh=float(data["wind_speed_kmh"]),
            fetched_at=data["fetched_at"],
        )


@dataclass(frozen=True)
class PeriodForecast:
    period: str                     # "morning" | "afternoon" | "night"
    temperature_c: float
    snowfall_cm: float
    weather_code: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PeriodForecast":
        return cls(
            period=data["period"],
            temperature_c=float(data["temperature_c"]),
            snowfall_cm=float(data["snowfall_cm"]),
            weather_code=int(data["weather_code"]),
        )


@dataclass(frozen=True)
class DayForecast:
    date: str
    periods: tuple[PeriodForecast, ...]
    fetched_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "periods": [asdict(p) for p in self.periods],
            "fetched_at": self.fetched_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DayForecast":
        return cls(
            date=data["date"],
            periods=tuple(PeriodForecast.from_dict(p) for p in data["periods"]),
            fetched_at=data["fetched_at"],
        )


# ── Scoring inputs and outputs ───────────────────────────────────────────────

@dataclass
class ResortState:
    config: ResortConfig
    weather: Optional[WeatherForecast]
    status: FusedStatus


@dataclass
class Preferences:
    skill_level: SkillLevel = SkillLevel.INTERMEDIATE
    terrain_preferences: list[TerrainPreference] = field(
        default_factory=lambda: [TerrainPreference.GROOMED]
    )
    max_drive_minutes: int = 60
    family_friendly: bool = False

    def __post_init__(self) -> None:
        self.skill_level = SkillLevel(self.skill_level)
        prefs: list[TerrainPreference] = []
        for p in self.terrain_preferences:
            tag = TerrainPreference(p)
            if tag not in prefs:
                prefs.append(tag)
        self.terrain_preferences = prefs
        if self.max_drive_minutes <= 0:
            raise ValueError("max_drive_minutes must be positive")


@dataclass
class ScoreBreakdown:
    terrain: float = 0.0
    conditions: float = 0.0
    convenience: float = 0.0
    features: float = 0.0
    novelty: Optional[float] = None  # only scored in extended mode
    total: float = 0.0


@dataclass
class RecommendationResult:
    resort_id: str
    score: ScoreBreakdown
    rank: int = 0
    explanations: list[str] = field(default_factory=list)
    highlights: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
