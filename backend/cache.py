"""
Persisted key-value store.

String keys, JSON-serialised string values.  The store is injected into the
weather cache and the resort repository so both can run against Redis, a
SQL table, or an in-memory dict in tests.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional, Protocol

import redis.asyncio as aioredis
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pipeline.config import REDIS_URL, STORE_BACKEND

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryStore:
    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class RedisStore:
    def __init__(self, url: str = REDIS_URL) -> None:
        self._redis: aioredis.Redis = aioredis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        return await self._redis.get(key)

    async def set(self, key: str, value: str) -> None:
        await self._redis.set(key, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(key)

    async def close(self) -> None:
        await self._redis.aclose()


class SqlStore:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def get(self, key: str) -> Optional[str]:
        from backend.models.store import StoreEntry

        async with self._sessionmaker() as session:
            result = await session.execute(select(StoreEntry.value).where(StoreEntry.key == key))
            return result.scalar_one_or_none()

    async def set(self, key: str, value: str) -> None:
        from backend.models.store import StoreEntry

        async with self._sessionmaker() as session:
            await session.merge(StoreEntry(key=key, value=value))
            await session.commit()

    async def delete(self, key: str) -> None:
        from backend.models.store import StoreEntry

        async with self._sessionmaker() as session:
            await session.execute(delete(StoreEntry).where(StoreEntry.key == key))
            await session.commit()


async def get_json(store: KeyValueStore, key: str) -> Optional[Any]:
    """
    Read and decode a JSON value.

    An entry that fails to decode is deleted and reported as missing.
    """
    raw = await store.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Discarding corrupt store entry %s", key)
        await store.delete(key)
        return None


async def set_json(store: KeyValueStore, key: str, value: Any) -> None:
    await store.set(key, json.dumps(value, ensure_ascii=False))


_store: Optional[KeyValueStore] = None


def get_store() -> KeyValueStore:
    """Process-wide store selected by STORE_BACKEND."""
    global _store
    if _store is None:
        if STORE_BACKEND == "memory":
            _store = MemoryStore()
        elif STORE_BACKEND == "sql":
            from backend.db import AsyncSessionLocal
            _store = SqlStore(AsyncSessionLocal)
        elif STORE_BACKEND == "redis":
            _store = RedisStore(REDIS_URL)
        else:
            raise ValueError(f"Unknown STORE_BACKEND: {STORE_BACKEND!r}")
        logger.info("Using %s key-value store", STORE_BACKEND)
    return _store
