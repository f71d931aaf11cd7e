"""
Unit tests for backend/cache.py

Run with:  pytest backend/tests/test_store.py -v
"""
import asyncio

import pytest

import backend.cache as cache
from backend.cache import MemoryStore, get_json, set_json


def test_memory_store_basic_operations():
    store = MemoryStore()

    async def run():
        await store.set("a", "1")
        first = await store.get("a")
        await store.delete("a")
        await store.delete("never-set")
        return first, await store.get("a")

    assert asyncio.run(run()) == ("1", None)


def test_json_helpers_round_trip_unicode():
    store = MemoryStore()

    async def run():
        await set_json(store, "k", {"weather": "雪", "lifts": [1, 2]})
        return await get_json(store, "k")

    assert asyncio.run(run()) == {"weather": "雪", "lifts": [1, 2]}
    assert "雪" in store.data["k"]


def test_corrupt_entry_deleted_and_reported_missing():
    store = MemoryStore({"k": "{oops"})
    assert asyncio.run(get_json(store, "k")) is None
    assert "k" not in store.data


def test_get_store_selects_backend(monkeypatch):
    monkeypatch.setattr(cache, "_store", None)
    monkeypatch.setattr(cache, "STORE_BACKEND", "memory")
    store = cache.get_store()
    assert isinstance(store, MemoryStore)
    assert cache.get_store() is store


def test_get_store_rejects_unknown_backend(monkeypatch):
    monkeypatch.setattr(cache, "_store", None)
    monkeypatch.setattr(cache, "STORE_BACKEND", "floppy")
    with pytest.raises(ValueError):
        cache.get_store()
