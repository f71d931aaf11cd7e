"""
Per-site lift status scrapers.

Each site adapter is a pure function from page text to a ScrapedStatus, so
the fragile text heuristics can be tested against fixture text and never
leak into fusion or scoring.  ``scrape_all`` fetches every site, runs its
adapter, and isolates failures per resort.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

import httpx
from bs4 import BeautifulSoup

from pipeline.config import HTTP_TIMEOUT, SCRAPER_USER_AGENT
from pipeline.models import ResortStatus, ScrapedStatus, ScrapedStatusFile

logger = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _line_after(text: str, label: str) -> Optional[str]:
    """First non-empty line following the line that contains ``label``."""
    i = text.find(label)
    if i < 0:
        return None
    rest = text[i + len(label):].split("\n")[1:]
    for line in rest:
        if line.strip():
            return line.strip()
    return None


def _number_after(text: str, label: str) -> Optional[float]:
    line = _line_after(text, label)
    if line is None:
        return None
    m = _LEADING_NUMBER.match(line)
    return float(m.group(1)) if m else None


def _int_or_none(value: Optional[float]) -> Optional[int]:
    return int(value) if value is not None else None


# ── Madarao ──────────────────────────────────────────────────────────────────

MADARAO_LIFTS_TOTAL = 10


def parse_madarao(text: str) -> ScrapedStatus:
    """
    Madarao's status board, e.g.::

        積雪
        10 cm
        気温
        3 ℃
        天候
        曇り
        リフト5基、12コース
    """
    lifts = re.search(r"リフト\s*(\d+)\s*基", text)
    courses = re.search(r"基、\s*(\d+)", text)
    lifts_open = int(lifts.group(1)) if lifts else None

    status = ResortStatus.UNKNOWN
    if lifts_open is not None:
        if lifts_open == 0:
            status = ResortStatus.CLOSED
        elif lifts_open < MADARAO_LIFTS_TOTAL:
            status = ResortStatus.PARTIAL
        else:
            status = ResortStatus.OPEN

    return ScrapedStatus(
        status=status,
        base_depth_cm=_int_or_none(_number_after(text, "積雪")),
        lifts_open=lifts_open,
        slopes_open=int(courses.group(1)) if courses else None,
        temperature_c=_number_after(text, "気温"),
        weather=_line_after(text, "天候"),
        scraped_at=_now_iso(),
    )


# ── Lotte Arai ───────────────────────────────────────────────────────────────

def parse_lotte_arai(text: str, slope_text: Optional[str] = None) -> ScrapedStatus:
    """
    Lotte Arai's weather widget (``text``) plus its slope conditions page.

    Lift states are drawn as icons, so status comes from the legend words
    and counts are only reported when an explicit "N/M lift" appears.  Both
    are read from ``slope_text`` only; without it the single page is used.
    """
    slopes = text if slope_text is None else slope_text
    lift_count = re.search(r"(\d+)\s*/\s*(\d+)\s*lift", slopes, re.IGNORECASE)
    course_count = re.search(r"(\d+)\s*/\s*(\d+)\s*course", slopes, re.IGNORECASE)
    running = "Running" in slopes
    suspended = "Service suspended" in slopes or "×" in slopes

    if running and suspended:
        status = ResortStatus.PARTIAL
    elif running:
        status = ResortStatus.OPEN
    elif suspended:
        status = ResortStatus.CLOSED
    else:
        status = ResortStatus.UNKNOWN

    return ScrapedStatus(
        status=status,
        base_depth_cm=_int_or_none(_number_after(text, "Total Snowfall")),
        lifts_open=int(lift_count.group(1)) if lift_count else None,
        slopes_open=int(course_count.group(1)) if course_count else None,
        temperature_c=_number_after(text, "current weather"),
        weather=None,
        scraped_at=_now_iso(),
    )


# ── Runner ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SiteAdapter:
    resort_id: str
    urls: tuple[str, ...]
    # Called with the text of each url, in order
    produce: Callable[..., ScrapedStatus]


SITE_ADAPTERS: list[SiteAdapter] = [
    SiteAdapter("madarao", ("https://www.madarao.jp/ski",), parse_madarao),
    SiteAdapter(
        "lotte-arai",
        (
            "https://www.lottehotel.com/arai-resort/en",
            "https://www.lottehotel.com/arai-resort/en/snow-season",
        ),
        parse_lotte_arai,
    ),
]


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return soup.get_text("\n")


async def _scrape_site(client: httpx.AsyncClient, adapter: SiteAdapter) -> ScrapedStatus:
    logger.info("Scraping %s...", adapter.resort_id)
    try:
        pages = []
        for url in adapter.urls:
            response = await client.get(url, timeout=HTTP_TIMEOUT, follow_redirects=True)
            response.raise_for_status()
            pages.append(html_to_text(response.text))
        return adapter.produce(*pages)
    except Exception as exc:
        logger.error("Error scraping %s: %s", adapter.resort_id, exc)
        return ScrapedStatus(scraped_at=_now_iso(), error=str(exc) or type(exc).__name__)


async def scrape_all(
    client: Optional[httpx.AsyncClient] = None,
    adapters: Optional[list[SiteAdapter]] = None,
) -> ScrapedStatusFile:
    adapters = SITE_ADAPTERS if adapters is None else adapters
    if client is None:
        async with httpx.AsyncClient(headers={"User-Agent": SCRAPER_USER_AGENT}) as own_client:
            statuses = await asyncio.gather(*(_scrape_site(own_client, a) for a in adapters))
    else:
        statuses = await asyncio.gather(*(_scrape_site(client, a) for a in adapters))
    return ScrapedStatusFile(
        scraped_at=_now_iso(),
        resorts={a.resort_id: s for a, s in zip(adapters, statuses)},
    )


def write_scraped_status(path: Union[str, Path], scraped: ScrapedStatusFile) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(scraped.to_wire(), ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info("Written scraped status for %d resorts to %s", len(scraped.resorts), path)
