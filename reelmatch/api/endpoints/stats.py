from fastapi import APIRouter, Depends

from reelmatch.services.recommendation.service import RecommendationService, get_recommendation_service

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/stats")
async def get_stats(service: RecommendationService = Depends(get_recommendation_service)) -> dict:
    """Cache, rate limiter and in-flight request counters."""
    return service.get_stats()
