"""
Loader for the scraped status document written by the scraper run.

Shape: ``{"scrapedAt": str | null, "resorts": {resort_id: ScrapedStatus}}``.
Any fetch or parse failure degrades to an empty document so every resort
falls back to manual-only fusion.
"""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from pipeline.config import HTTP_TIMEOUT
from pipeline.models import ScrapedStatus, ScrapedStatusFile

logger = logging.getLogger(__name__)


def parse_scraped_status(data: Any) -> ScrapedStatusFile:
    if not isinstance(data, dict) or not isinstance(data.get("resorts", {}), dict):
        raise ValueError("Scraped status document has an unexpected shape")

    resorts: dict[str, ScrapedStatus] = {}
    for resort_id, entry in (data.get("resorts") or {}).items():
        if not isinstance(entry, dict):
            logger.warning("Skipping malformed scraped entry for %s", resort_id)
            continue
        try:
            resorts[resort_id] = ScrapedStatus.from_wire(entry)
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping malformed scraped entry for %s: %s", resort_id, exc)
    scraped_at = data.get("scrapedAt")
    return ScrapedStatusFile(
        scraped_at=scraped_at if isinstance(scraped_at, str) else None,
        resorts=resorts,
    )


async def _read_source(source: str, client: Optional[httpx.AsyncClient]) -> Any:
    if source.startswith(("http://", "https://")):
        if client is not None:
            response = await client.get(source, timeout=HTTP_TIMEOUT)
        else:
            async with httpx.AsyncClient() as own_client:
                response = await own_client.get(source, timeout=HTTP_TIMEOUT)
        response.raise_for_status()
        return response.json()
    text = await asyncio.to_thread(Path(source).read_text, encoding="utf-8")
    return json.loads(text)


async def load_scraped_status(
    source: str,
    client: Optional[httpx.AsyncClient] = None,
) -> ScrapedStatusFile:
    try:
        data = await _read_source(source, client)
        return parse_scraped_status(data)
    except (OSError, ValueError, httpx.HTTPError) as exc:
        logger.warning("Scraped status unavailable from %s: %s", source, exc)
        return ScrapedStatusFile()
