from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from reelmatch.core.errors import InvalidContentRequest
from reelmatch.services.recommendation.service import RecommendationService, get_recommendation_service

router = APIRouter(prefix="/cache", tags=["cache"])


@router.delete("/")
async def clear_caches(service: RecommendationService = Depends(get_recommendation_service)):
    """
    Clear every cached result and reset in-flight request tracking.
    The next request for any item is computed from fresh upstream data.
    """
    await service.clear_all()
    logger.info("Cache cleared via API endpoint")
    return {"message": "All caches cleared successfully", "status": "success"}


@router.delete("/{content_type}/{content_id}")
async def clear_item_cache(
    content_type: str,
    content_id: str,
    service: RecommendationService = Depends(get_recommendation_service),
):
    try:
        removed = service.clear_content(content_type, content_id)
    except InvalidContentRequest as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"removed": removed, "status": "success"}
