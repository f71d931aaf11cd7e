from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from backend.schemas.responses import (
    PreferencesIn,
    RecommendationOut,
    RecommendationsResponse,
    ScoreBreakdownOut,
)
from backend.services import Services, get_services
from pipeline.assembler import assemble_resorts
from pipeline.ranker import recommend_resorts
from pipeline.scorer import ScoringMode

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.post("", response_model=RecommendationsResponse)
async def get_recommendations(
    prefs: PreferencesIn,
    mode: Optional[ScoringMode] = Query(None),
    day_index: int = Query(0, ge=0, le=6),
    services: Services = Depends(get_services),
):
    mode = mode or services.scoring_mode
    assembled = await assemble_resorts(
        services.catalog,
        services.repository,
        services.weather,
        services.scraped_source,
        day_index=day_index,
    )
    visit_counts = None
    if mode == ScoringMode.EXTENDED:
        visit_counts = await services.repository.get_visit_counts(c.id for c in services.catalog)

    ranked = recommend_resorts(assembled.states, prefs.to_preferences(), visit_counts, mode)
    names = {c.id: c.name for c in services.catalog}

    return RecommendationsResponse(
        mode=mode.value,
        generated_at=datetime.now(timezone.utc),
        weather_failures=assembled.weather_failures,
        results=[
            RecommendationOut(
                rank=r.rank,
                resort_id=r.resort_id,
                resort_name=names.get(r.resort_id, r.resort_id),
                score=ScoreBreakdownOut.model_validate(r.score),
                explanations=r.explanations,
                highlights=r.highlights,
                warnings=r.warnings,
            )
            for r in ranked
        ],
    )
