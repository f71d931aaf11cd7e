"""
Scoring engine for SkiPick.

All functions are pure (no side effects) so they are straightforward to unit-test.
The total is the sum of independently capped sub-scores:

    terrain      0–35   skill match + terrain preference match
    conditions   0–22   operating status + forecast snowfall
    convenience  0–18   drive time against the user's limit
    features     0–13   family / long runs / interconnected / size
    novelty      0–12   extended mode only, decays with visits

A drive over the user's limit additionally scales the total by
1 / (1 + overage_ratio).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from pipeline.models import (
    Preferences,
    RecommendationResult,
    ResortConfig,
    ResortState,
    ResortStatus,
    ScoreBreakdown,
    SkillLevel,
    Terrain,
    TerrainPreference,
)

# ── Caps and constants ───────────────────────────────────────────────────────

TERRAIN_MAX = 35.0
CONDITIONS_MAX = 22.0
CONVENIENCE_MAX = 18.0
FEATURES_MAX = 13.0
NOVELTY_MAX = 12.0

SKILL_MATCH_POINTS = 22.0
TERRAIN_PREFERENCE_BUDGET = 13.0
# Slope count at which the groomed preference earns its full share
GROOMED_REFERENCE_SLOPES = 84

STATUS_POINTS = {
    ResortStatus.OPEN: 9.0,
    ResortStatus.PARTIAL: 4.0,
    ResortStatus.UNKNOWN: 3.0,
    ResortStatus.CLOSED: 0.0,
}

# (min snowfall cm, points), checked top-down
SNOWFALL_TIERS = [(30.0, 13.0), (15.0, 9.0), (5.0, 4.0)]

LARGE_RESORT_SLOPES = 30
FAMILY_BEGINNER_SLOPES = 4

CLOSED_WARNING = "Resort is currently closed"


class ScoringMode(str, Enum):
    # Closed resorts score zero outright; no novelty.
    BASELINE = "baseline"
    # Novelty is scored; closed resorts only lose their conditions points.
    EXTENDED = "extended"


@dataclass
class SubScore:
    score: float = 0.0
    explanations: list[str] = field(default_factory=list)
    highlights: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ResortFeatures:
    has_freeride: bool
    has_tree_runs: bool
    has_long_runs: bool
    is_family_friendly: bool
    is_interconnected: bool


def parse_resort_features(notes: Optional[str]) -> ResortFeatures:
    """Keyword detection over the resort's free-text notes."""
    n = (notes or "").lower()
    return ResortFeatures(
        has_freeride="freeride" in n or "powder" in n,
        has_tree_runs="tree run" in n,
        has_long_runs="longest run" in n or "long run" in n,
        is_family_friendly="kids" in n or "family" in n,
        is_interconnected="interconnected" in n or "connected" in n,
    )


def _clamp(value: float, cap: float) -> float:
    return min(cap, max(0.0, value))


# ── Terrain ──────────────────────────────────────────────────────────────────

def score_skill_match(terrain: Terrain, skill: SkillLevel) -> SubScore:
    """
    Share of terrain matching the skill tier, scaled to SKILL_MATCH_POINTS.

    For a mixed group the reward is terrain balance instead:
    1 - (|beginner - intermediate| + |intermediate - advanced|) / (2 * total).
    """
    result = SubScore()
    total = terrain.total
    if total <= 0:
        return result

    if skill == SkillLevel.MIXED:
        spread = (
            abs(terrain.beginner - terrain.intermediate)
            + abs(terrain.intermediate - terrain.advanced)
        )
        balance = 1 - spread / (total * 2)
        result.score = balance * SKILL_MATCH_POINTS
        if balance >= 0.6:
            result.explanations.append("Well-balanced terrain for all skill levels")
        return result

    count = getattr(terrain, skill.value)
    ratio = count / total
    result.score = ratio * SKILL_MATCH_POINTS
    threshold = 0.3 if skill == SkillLevel.ADVANCED else 0.4
    if ratio >= threshold:
        result.explanations.append(f"{round(ratio * 100)}% {skill.value} terrain")
    elif skill == SkillLevel.BEGINNER and ratio >= 0.25:
        result.explanations.append(f"{count} beginner slopes available")
    return result


def score_terrain_preferences(
    preferences: Iterable[TerrainPreference],
    features: ResortFeatures,
    config: ResortConfig,
) -> SubScore:
    """
    Split TERRAIN_PREFERENCE_BUDGET evenly across the requested tags.

    Groomed scales with resort size; powder and tree runs take the full share
    on a keyword match and a reduced baseline share otherwise.
    """
    prefs = list(preferences)
    result = SubScore()
    share = TERRAIN_PREFERENCE_BUDGET / max(len(prefs), 1)

    for pref in prefs:
        if pref == TerrainPreference.GROOMED:
            result.score += (config.slopes_total / GROOMED_REFERENCE_SLOPES) * share
            if config.slopes_total >= 20:
                result.explanations.append(f"{config.slopes_total} slopes with groomed runs")
        elif pref == TerrainPreference.POWDER:
            if features.has_freeride:
                result.score += share
                result.explanations.append("Known for powder and freeride terrain")
            else:
                result.score += share * 0.3
        elif pref == TerrainPreference.TREE_RUNS:
            if features.has_tree_runs:
                result.score += share
                result.explanations.append("Excellent tree run terrain")
            else:
                result.score += share * 0.2
    return result


def score_terrain(config: ResortConfig, prefs: Preferences) -> SubScore:
    skill = score_skill_match(config.terrain, prefs.skill_level)
    features = parse_resort_features(config.notes)
    preference = score_terrain_preferences(prefs.terrain_preferences, features, config)
    return SubScore(
        score=_clamp(skill.score + preference.score, TERRAIN_MAX),
        explanations=skill.explanations + preference.explanations,
    )


# ── Conditions ───────────────────────────────────────────────────────────────

def score_conditions(state: ResortState) -> SubScore:
    result = SubScore()
    status = state.status.status

    result.score += STATUS_POINTS[status]
    if status == ResortStatus.OPEN:
        result.explanations.append("Resort fully open")
    elif status == ResortStatus.PARTIAL:
        result.warnings.append("Resort partially open")
    elif status == ResortStatus.CLOSED:
        result.warnings.append("Resort currently closed")

    snowfall = state.weather.snowfall_24h_cm if state.weather is not None else 0.0
    for threshold, points in SNOWFALL_TIERS:
        if snowfall >= threshold:
            result.score += points
            cm = round(snowfall)
            if threshold >= 30:
                result.explanations.append(f"{cm}cm fresh snow forecast")
            elif threshold >= 15:
                result.explanations.append(f"{cm}cm fresh snow expected")
            else:
                result.explanations.append(f"Light snow forecast ({cm}cm)")
            break

    lifts_open = state.status.lifts_open
    lifts_total = state.config.lifts_total
    if lifts_open is not None and lifts_total > 0 and lifts_open / lifts_total < 0.5:
        result.warnings.append(f"Only {lifts_open}/{lifts_total} lifts operating")

    result.score = _clamp(result.score, CONDITIONS_MAX)
    return result


# ── Convenience ──────────────────────────────────────────────────────────────

def overage_ratio(drive_minutes: int, max_drive_minutes: int) -> float:
    """Fraction by which the drive exceeds the limit; 0 when within it."""
    if drive_minutes <= max_drive_minutes:
        return 0.0
    return (drive_minutes - max_drive_minutes) / max_drive_minutes


def score_convenience(drive_minutes: int, max_drive_minutes: int) -> SubScore:
    result = SubScore()

    if drive_minutes > max_drive_minutes:
        penalty = min(CONVENIENCE_MAX, overage_ratio(drive_minutes, max_drive_minutes) * CONVENIENCE_MAX)
        result.score = max(0.0, CONVENIENCE_MAX - penalty)
        result.warnings.append(
            f"{drive_minutes} min drive exceeds your {max_drive_minutes} min preference"
        )
        return result

    floor = CONVENIENCE_MAX / 2
    efficiency = 1 - max(drive_minutes, 0) / max_drive_minutes
    result.score = _clamp(floor + efficiency * floor, CONVENIENCE_MAX)
    if drive_minutes <= 10:
        result.explanations.append(f"Only {drive_minutes} min drive")
    elif drive_minutes <= 30:
        result.explanations.append(f"Short {drive_minutes} min drive")
    return result


# ── Features ─────────────────────────────────────────────────────────────────

def score_features(config: ResortConfig, prefs: Preferences) -> SubScore:
    result = SubScore()
    features = parse_resort_features(config.notes)

    if prefs.family_friendly:
        if features.is_family_friendly:
            result.score += 8
            result.explanations.append("Family-friendly amenities")
            result.highlights.append("Great for families")
        elif config.terrain.beginner >= FAMILY_BEGINNER_SLOPES:
            result.score += 4
            result.explanations.append("Multiple beginner slopes for children")

    if features.has_long_runs:
        result.score += 2
        result.highlights.append("Long runs")
    if features.is_interconnected:
        result.score += 2
        result.highlights.append("Interconnected ski area")
    if config.slopes_total >= LARGE_RESORT_SLOPES:
        result.score += 1
        result.highlights.append(f"{config.slopes_total} slopes")

    result.score = _clamp(result.score, FEATURES_MAX)
    return result


# ── Novelty ──────────────────────────────────────────────────────────────────

def score_novelty(config: ResortConfig, visits: int) -> SubScore:
    """
    Full points for a resort never visited, decaying linearly to zero as
    visits / (slopes_total / 10) reaches 1.  Bigger resorts take more
    visits to feel explored.
    """
    result = SubScore()
    if visits <= 0:
        result.score = NOVELTY_MAX
        result.highlights.append("Never visited")
        return result

    slope_factor = config.slopes_total / 10
    exploration = visits / slope_factor if slope_factor > 0 else 1.0
    result.score = _clamp(NOVELTY_MAX * (1 - min(1.0, exploration)), NOVELTY_MAX)

    if result.score >= NOVELTY_MAX * 0.75:
        plural = "s" if visits > 1 else ""
        result.explanations.append(f"Only visited {visits} time{plural} - still lots to explore")
    elif result.score >= NOVELTY_MAX * 0.5:
        result.explanations.append(f"Visited {visits} times - some areas still unexplored")
    elif result.score < NOVELTY_MAX * 0.25 and visits >= 3:
        result.explanations.append(f"Familiar territory ({visits} visits)")
    return result


# ── Composite scorer ─────────────────────────────────────────────────────────

def compute_score(
    state: ResortState,
    prefs: Preferences,
    visit_counts: Optional[dict[str, int]] = None,
    mode: ScoringMode = ScoringMode.BASELINE,
) -> RecommendationResult:
    """
    Score one resort against the user's preferences.

    Returns an unranked RecommendationResult (rank 0); the ranker assigns ranks.
    """
    config = state.config
    extended = mode == ScoringMode.EXTENDED

    if not extended and state.status.status == ResortStatus.CLOSED:
        return RecommendationResult(
            resort_id=config.id,
            score=ScoreBreakdown(),
            warnings=[CLOSED_WARNING],
        )

    terrain = score_terrain(config, prefs)
    conditions = score_conditions(state)
    convenience = score_convenience(config.drive_minutes, prefs.max_drive_minutes)
    features = score_features(config, prefs)
    parts = [terrain, conditions, convenience, features]

    novelty: Optional[SubScore] = None
    if extended:
        novelty = score_novelty(config, (visit_counts or {}).get(config.id, 0))
        parts.append(novelty)

    total = sum(p.score for p in parts)

    # Over-budget drives are suppressed again on the aggregate
    overage = overage_ratio(config.drive_minutes, prefs.max_drive_minutes)
    if overage > 0:
        total = total * (1 / (1 + overage))

    return RecommendationResult(
        resort_id=config.id,
        score=ScoreBreakdown(
            terrain=terrain.score,
            conditions=conditions.score,
            convenience=convenience.score,
            features=features.score,
            novelty=novelty.score if novelty is not None else None,
            total=max(0.0, total),
        ),
        explanations=[e for p in parts for e in p.explanations],
        highlights=[h for p in (features, novelty) if p is not None for h in p.highlights],
        warnings=conditions.warnings + convenience.warnings,
    )
