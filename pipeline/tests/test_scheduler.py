"""
Unit tests for pipeline/scheduler.py

Run with:  pytest pipeline/tests/test_scheduler.py -v
"""
import asyncio
import json

import pytest

import pipeline.scheduler as scheduler
from backend.cache import MemoryStore
from pipeline.models import ResortStatus, ScrapedStatus, ScrapedStatusFile


class TestCronTrigger:
    def test_fields_mapped(self):
        trigger = cron_fields(scheduler.cron_trigger("30 4 * * 1-5"))
        assert trigger["minute"] == "30"
        assert trigger["hour"] == "4"
        assert trigger["day_of_week"] == "1-5"

    @pytest.mark.parametrize("expression", ["", "0 5 * *", "0 5 * * * *"])
    def test_wrong_field_count_rejected(self, expression):
        with pytest.raises(ValueError):
            scheduler.cron_trigger(expression)


def cron_fields(trigger):
    return {f.name: str(f) for f in trigger.fields}


def test_run_refresh_writes_status_and_warms_weather(tmp_path, monkeypatch, make_config):
    status_path = tmp_path / "resort-status.json"
    catalog = [make_config(id="madarao"), make_config(id="togari")]
    refreshed = {}

    async def fake_scrape_all():
        return ScrapedStatusFile(
            scraped_at="2026-01-15T05:00:00+00:00",
            resorts={
                "madarao": ScrapedStatus(status=ResortStatus.OPEN, lifts_open=10),
                "lotte-arai": ScrapedStatus(error="timeout"),
            },
        )

    async def fake_fetch_all_weather(cache, resorts, force_refresh=False):
        refreshed["ids"] = [r.id for r in resorts]
        refreshed["force"] = force_refresh
        return {}, []

    monkeypatch.setattr(scheduler, "scrape_all", fake_scrape_all)
    monkeypatch.setattr(scheduler, "fetch_all_weather", fake_fetch_all_weather)
    monkeypatch.setattr(scheduler, "load_catalog", lambda: catalog)
    monkeypatch.setattr(scheduler, "get_store", MemoryStore)
    monkeypatch.setattr(scheduler, "SCRAPED_STATUS_PATH", str(status_path))

    asyncio.run(scheduler.run_refresh())

    doc = json.loads(status_path.read_text(encoding="utf-8"))
    assert doc["resorts"]["madarao"]["liftsOpen"] == 10
    assert doc["resorts"]["lotte-arai"]["error"] == "timeout"
    assert refreshed == {"ids": ["madarao", "togari"], "force": True}
