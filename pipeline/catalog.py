"""
Static resort catalog.

Loaded once at start-up from a CSV file; the resulting configs are frozen
and serve as the baseline that user overrides are layered onto.
"""
from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Union

from pipeline.config import RESORT_CATALOG_PATH
from pipeline.models import ResortConfig, Terrain

logger = logging.getLogger(__name__)


def _row_to_config(row: dict[str, str]) -> ResortConfig:
    return ResortConfig(
        id=row["id"],
        name=row["name"],
        name_local=row.get("name_local") or "",
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        drive_minutes=int(row["drive_minutes"]),
        base_elevation_m=int(row["base_elevation_m"]) if row.get("base_elevation_m") else None,
        summit_elevation_m=int(row["summit_elevation_m"]) if row.get("summit_elevation_m") else None,
        lifts_total=int(row["lifts_total"]),
        slopes_total=int(row["slopes_total"]),
        terrain=Terrain(
            beginner=int(row.get("terrain_beginner") or 0),
            intermediate=int(row.get("terrain_intermediate") or 0),
            advanced=int(row.get("terrain_advanced") or 0),
        ),
        notes=row.get("notes") or "",
        website_url=row.get("website_url") or "",
        lift_status_url=row.get("lift_status_url") or None,
    )


def load_catalog(path: Union[str, Path] = RESORT_CATALOG_PATH) -> list[ResortConfig]:
    """Read the catalog in file order. Duplicate ids are a configuration error."""
    configs: list[ResortConfig] = []
    seen: set[str] = set()
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            config = _row_to_config(row)
            if config.id in seen:
                raise ValueError(f"Duplicate resort id in catalog: {config.id}")
            seen.add(config.id)
            configs.append(config)
    logger.info("Loaded %d resorts from %s", len(configs), path)
    return configs
