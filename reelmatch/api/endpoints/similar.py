from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from reelmatch.core.config import settings
from reelmatch.core.errors import InvalidContentRequest
from reelmatch.models.content import CandidateItem, SimilarContentOptions
from reelmatch.services.recommendation.service import RecommendationService, get_recommendation_service

router = APIRouter(prefix="/similar", tags=["similar"])


@router.get("/{content_type}/{content_id}", response_model=list[CandidateItem])
async def get_similar(
    content_type: str,
    content_id: str,
    limit: int = Query(settings.DEFAULT_RESULT_LIMIT, ge=1),
    min_score: float = Query(settings.DEFAULT_MIN_SCORE, ge=0.0, le=1.0),
    force_refresh: bool = False,
    page: int = Query(1, ge=1),
    user_id: str | None = None,
    fast_start: bool = True,
    infinite_loading: bool = False,
    service: RecommendationService = Depends(get_recommendation_service),
):
    options = SimilarContentOptions(
        limit=limit,
        min_score=min_score,
        force_refresh=force_refresh,
        page=page,
        user_id=user_id,
        fast_start=fast_start,
        infinite_loading=infinite_loading,
    )
    try:
        return await service.get_similar_content(content_id, content_type, options)
    except InvalidContentRequest as e:
        logger.debug(f"Rejected similar-content request for {content_type}/{content_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
