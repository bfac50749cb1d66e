from fastapi import APIRouter

from .endpoints.caching import router as caching_router
from .endpoints.similar import router as similar_router
from .endpoints.stats import router as stats_router

api_router = APIRouter()


@api_router.get("/")
async def root():
    return {"message": "Reelmatch API is running"}


api_router.include_router(similar_router)
api_router.include_router(stats_router)
api_router.include_router(caching_router)
