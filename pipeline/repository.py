"""
User-edited per-resort data kept in the key-value store.

Every key is scoped to one resort so edits to different resorts never touch
the same entry.
"""
from __future__ import annotations

import logging
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from backend.cache import KeyValueStore, get_json, set_json
from pipeline.models import ConfigOverride, ManualStatus, ResortStatus

logger = logging.getLogger(__name__)

_MANUAL_FIELDS = {f.name for f in fields(ManualStatus)} - {"updated_at"}


def manual_key(resort_id: str) -> str:
    return f"manual-status:{resort_id}"


def override_key(resort_id: str) -> str:
    return f"config-override:{resort_id}"


def visit_key(resort_id: str) -> str:
    return f"visit-count:{resort_id}"


class ResortRepository:
    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    # ── Manual status ────────────────────────────────────────────────────────

    async def get_manual(self, resort_id: str) -> ManualStatus:
        data = await get_json(self.store, manual_key(resort_id))
        if data is None:
            return ManualStatus()
        try:
            return ManualStatus.from_dict(data)
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed manual status for %s: %s", resort_id, exc)
            return ManualStatus()

    async def update_manual(self, resort_id: str, **changes: Any) -> ManualStatus:
        """Apply a partial edit on top of the stored record and stamp updated_at."""
        unknown = set(changes) - _MANUAL_FIELDS
        if unknown:
            raise ValueError(f"Unknown manual status fields: {sorted(unknown)}")

        data = (await self.get_manual(resort_id)).to_dict()
        data.update(changes)
        if isinstance(data["status"], ResortStatus):
            data["status"] = data["status"].value
        data["updated_at"] = datetime.now(timezone.utc).isoformat()
        manual = ManualStatus.from_dict(data)
        await set_json(self.store, manual_key(resort_id), manual.to_dict())
        logger.info("Manual status for %s set to %s", resort_id, manual.status.value)
        return manual

    async def clear_manual(self, resort_id: str) -> None:
        await self.store.delete(manual_key(resort_id))

    async def get_manual_map(self, resort_ids: Iterable[str]) -> dict[str, ManualStatus]:
        return {rid: await self.get_manual(rid) for rid in resort_ids}

    # ── Config overrides ─────────────────────────────────────────────────────

    async def get_override(self, resort_id: str) -> Optional[ConfigOverride]:
        data = await get_json(self.store, override_key(resort_id))
        if data is None:
            return None
        try:
            return ConfigOverride.from_dict(data)
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed config override for %s: %s", resort_id, exc)
            return None

    async def set_override(self, resort_id: str, override: ConfigOverride) -> None:
        await set_json(self.store, override_key(resort_id), override.to_dict())
        logger.info("Config override saved for %s", resort_id)

    async def clear_override(self, resort_id: str) -> None:
        await self.store.delete(override_key(resort_id))

    async def get_override_map(self, resort_ids: Iterable[str]) -> dict[str, Optional[ConfigOverride]]:
        return {rid: await self.get_override(rid) for rid in resort_ids}

    # ── Visit counter ────────────────────────────────────────────────────────

    async def get_visit_count(self, resort_id: str) -> int:
        data = await get_json(self.store, visit_key(resort_id))
        return data if isinstance(data, int) and data > 0 else 0

    async def record_visit(self, resort_id: str) -> int:
        count = await self.get_visit_count(resort_id) + 1
        await set_json(self.store, visit_key(resort_id), count)
        return count

    async def get_visit_counts(self, resort_ids: Iterable[str]) -> dict[str, int]:
        return {rid: await self.get_visit_count(rid) for rid in resort_ids}
