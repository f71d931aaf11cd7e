"""Overlay of user config overrides onto the static resort catalog."""
from __future__ import annotations

from dataclasses import replace
from typing import Optional

from pipeline.models import ConfigOverride, EffectiveConfig, ResortConfig


def merge_config(base: ResortConfig, override: Optional[ConfigOverride]) -> EffectiveConfig:
    """
    Return the effective config for a resort.

    Each overridable field independently takes the override's value when set,
    otherwise the baseline's.  ``base`` is frozen and is never modified.
    """
    if override is None:
        return base
    return replace(
        base,
        terrain=override.terrain if override.terrain is not None else base.terrain,
        drive_minutes=(
            override.drive_minutes if override.drive_minutes is not None else base.drive_minutes
        ),
        notes=override.notes if override.notes is not None else base.notes,
    )
