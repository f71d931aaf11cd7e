from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from backend.cache import KeyValueStore, get_store
from pipeline.catalog import load_catalog
from pipeline.config import SCORING_MODE, SCRAPED_STATUS_PATH
from pipeline.fetcher import WeatherCache
from pipeline.models import ResortConfig
from pipeline.repository import ResortRepository
from pipeline.scorer import ScoringMode

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler needs, built once per process."""
    catalog: list[ResortConfig]
    store: KeyValueStore
    repository: ResortRepository
    weather: WeatherCache
    scraped_source: str
    scoring_mode: ScoringMode = ScoringMode.BASELINE

    def find(self, resort_id: str) -> Optional[ResortConfig]:
        return next((c for c in self.catalog if c.id == resort_id), None)


def build_services(
    store: Optional[KeyValueStore] = None,
    catalog: Optional[list[ResortConfig]] = None,
    weather: Optional[WeatherCache] = None,
    scraped_source: str = SCRAPED_STATUS_PATH,
    scoring_mode: str = SCORING_MODE,
) -> Services:
    store = store if store is not None else get_store()
    return Services(
        catalog=catalog if catalog is not None else load_catalog(),
        store=store,
        repository=ResortRepository(store),
        weather=weather if weather is not None else WeatherCache(store),
        scraped_source=scraped_source,
        scoring_mode=ScoringMode(scoring_mode),
    )


_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
        logger.info(
            "Services ready: %d resorts, %s scoring", len(_services.catalog), _services.scoring_mode.value
        )
    return _services
