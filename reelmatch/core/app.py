import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from reelmatch.api.main import api_router
from reelmatch.services.recommendation.service import get_recommendation_service

from .config import settings
from .version import __version__


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events (startup/shutdown).
    """
    configure_logging(settings.LOG_LEVEL)
    service = get_recommendation_service()
    service.start(settings.CACHE_CLEANUP_INTERVAL_SECONDS)
    if not settings.TMDB_API_KEY:
        logger.warning("TMDB_API_KEY is not set; similar-content requests will return empty lists")
    yield
    await service.shutdown()
    logger.info("Recommendation service shut down")


app = FastAPI(
    title="Reelmatch",
    description="Similar movie and series recommendations backed by TMDB",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.APP_ENV != "development" else "/docs",
    redoc_url=None if settings.APP_ENV != "development" else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
