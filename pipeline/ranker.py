"""Rank scored resorts."""
from __future__ import annotations

from typing import Iterable, Optional

from pipeline.models import Preferences, RecommendationResult, ResortState
from pipeline.scorer import ScoringMode, compute_score


def rank_results(results: Iterable[RecommendationResult]) -> list[RecommendationResult]:
    """
    Sort by total score descending and assign rank = 1 + position.

    The sort is stable, so equal totals keep their input order.
    """
    ranked = sorted(results, key=lambda r: r.score.total, reverse=True)
    for rank, result in enumerate(ranked, start=1):
        result.rank = rank
    return ranked


def recommend_resorts(
    states: Iterable[ResortState],
    prefs: Preferences,
    visit_counts: Optional[dict[str, int]] = None,
    mode: ScoringMode = ScoringMode.BASELINE,
) -> list[RecommendationResult]:
    return rank_results(compute_score(s, prefs, visit_counts, mode) for s in states)
