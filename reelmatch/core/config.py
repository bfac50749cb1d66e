from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from reelmatch.core.version import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    TMDB_API_KEY: str | None = None
    TMDB_BASE_URL: str = "https://api.themoviedb.org/3"
    TMDB_LANGUAGE: str = "en-US"
    PORT: int = 8000
    APP_ENV: Literal["development", "production"] = "production"
    LOG_LEVEL: str = "INFO"

    # In-process LRU cache for ranked results
    CACHE_MAX_ENTRIES: int = 1000
    CACHE_MAX_MEMORY_BYTES: int = 50 * 1024 * 1024
    CACHE_TTL_SECONDS: float = 1800
    CACHE_CLEANUP_INTERVAL_SECONDS: float = 300

    # Shared upstream budget. TMDB tolerates roughly 40-50 requests per second.
    RATE_LIMIT_MAX_REQUESTS: int = 40
    RATE_LIMIT_WINDOW_SECONDS: float = 1.0
    RATE_LIMIT_RETRY_DELAY_SECONDS: float = 0.1

    HTTP_TIMEOUT_SECONDS: float = 10.0
    HTTP_MAX_RETRIES: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0
    RETRY_MAX_DELAY_SECONDS: float = 10.0
    RETRY_MULTIPLIER: float = 2.0

    FAST_PATH_TIMEOUT_SECONDS: float = 1.2
    ENRICHMENT_WORKERS: int = 3
    ENRICHMENT_DETAIL_LIMIT: int = 12
    CANDIDATE_POOL_LIMIT: int = 30

    DEFAULT_RESULT_LIMIT: int = 200
    DEFAULT_MIN_SCORE: float = 0.2
    MIN_RESULT_COUNT: int = 8


settings = Settings()

APP_VERSION = __version__
