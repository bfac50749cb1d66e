import asyncio
import functools
from typing import Any

import httpx
from loguru import logger

from reelmatch.core.base_client import RetryPolicy
from reelmatch.core.cache import LRUCache
from reelmatch.core.cancellation import CancellationToken
from reelmatch.core.coalescer import RequestCoalescer
from reelmatch.core.config import settings
from reelmatch.core.errors import InvalidContentRequest, RequestCancelled, UpstreamError
from reelmatch.core.rate_limiter import RateLimiter
from reelmatch.models.content import CandidateItem, MediaType, SimilarContentOptions
from reelmatch.models.cultural import CulturalContext
from reelmatch.services.cultural import CulturalContextProvider, InMemoryCulturalContextProvider
from reelmatch.services.recommendation.aggregator import CandidateAggregator
from reelmatch.services.recommendation.dedup import Deduplicator
from reelmatch.services.recommendation.diversity import DiversityPostProcessor
from reelmatch.services.recommendation.enrichment import DetailEnricher
from reelmatch.services.recommendation.metadata import CandidateMetadata
from reelmatch.services.similarity.scorer import SimilarityScorer
from reelmatch.services.tmdb.adapters import GenreDiscoverAdapter
from reelmatch.services.tmdb.client import TMDBClient
from reelmatch.services.tmdb.service import TMDBService

MEDIA_TYPES: tuple[MediaType, ...] = ("movie", "tv")
BACKFILL_FACTOR = 0.5


def select_results(
    scored: list[CandidateItem], min_score: float, limit: int, min_count: int = 8
) -> list[CandidateItem]:
    """
    Keep items scoring at least ``min_score``, best first, at most ``limit``.

    If that leaves fewer than ``min_count`` items the threshold is relaxed to
    ``min_score * 0.5`` and the list is topped up to ``min_count`` (never past
    ``limit``).
    """
    ranked = sorted(scored, key=lambda item: item.score, reverse=True)
    strict = [item for item in ranked if item.score >= min_score][:limit]
    target = min(min_count, limit)
    if len(strict) >= target:
        return strict
    # Scores are sorted, so the relaxed selection extends the strict one.
    return [item for item in ranked if item.score >= min_score * BACKFILL_FACTOR][:target]


def fallback_score(item: CandidateItem) -> float:
    return item.vote_average / 10 if item.vote_average else 0.1


class RecommendationService:
    """
    Entry point for "more like this" lists.

    Orchestrates candidate aggregation, detail enrichment, scoring, filtering and
    diversity re-ranking, and caches the ranked result per content, page and user.
    Upstream trouble never escapes: the worst case is an empty list. Only a
    malformed content id or type raises (``InvalidContentRequest``).
    """

    def __init__(
        self,
        tmdb: TMDBService,
        cache: LRUCache | None = None,
        aggregator: CandidateAggregator | None = None,
        enricher: DetailEnricher | None = None,
        scorer: SimilarityScorer | None = None,
        diversity: DiversityPostProcessor | None = None,
        cultural_provider: CulturalContextProvider | None = None,
        cache_ttl: float | None = None,
        candidate_pool_limit: int = 30,
        min_result_count: int = 8,
    ):
        self.tmdb = tmdb
        self.cache = cache or LRUCache()
        self.aggregator = aggregator or CandidateAggregator(tmdb, Deduplicator())
        self.enricher = enricher or DetailEnricher(tmdb)
        self.scorer = scorer or SimilarityScorer()
        self.diversity = diversity or DiversityPostProcessor()
        self.cultural_provider = cultural_provider
        self.cache_ttl = cache_ttl
        self.candidate_pool_limit = candidate_pool_limit
        self.min_result_count = min_result_count
        self._warming: dict[str, asyncio.Task] = {}

    @staticmethod
    def cache_key(media_type: MediaType, content_id: int, page: int, user_id: str | None) -> str:
        return f"similar:{media_type}:{content_id}:{page}:{user_id or 'global'}"

    @staticmethod
    def validate(content_id: Any, content_type: Any) -> tuple[int, MediaType]:
        if content_id is None or content_id == "":
            raise InvalidContentRequest("content_id is required")
        if content_type not in MEDIA_TYPES:
            raise InvalidContentRequest(f"content_type must be one of {', '.join(MEDIA_TYPES)}, got {content_type!r}")
        if isinstance(content_id, bool):
            raise InvalidContentRequest(f"Invalid content_id: {content_id!r}")
        try:
            tmdb_id = int(content_id)
        except (TypeError, ValueError):
            raise InvalidContentRequest(f"Invalid content_id: {content_id!r}") from None
        if tmdb_id <= 0:
            raise InvalidContentRequest(f"Invalid content_id: {content_id!r}")
        return tmdb_id, content_type

    async def get_similar_content(
        self,
        content_id: int | str,
        content_type: str,
        options: SimilarContentOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> list[CandidateItem]:
        """Ranked similar items for one movie or series."""
        tmdb_id, media_type = self.validate(content_id, content_type)
        options = options or SimilarContentOptions()
        cancel = cancel or CancellationToken()
        if cancel.cancelled:
            return []

        key = self.cache_key(media_type, tmdb_id, options.page, options.user_id)
        use_cache = not options.infinite_loading

        if use_cache and not options.force_refresh:
            cached = self.cache.get(
                key, revalidate=lambda: self._revalidate(tmdb_id, media_type, options)
            )
            if cached is not None:
                # The cached list was filtered with whatever min_score built it.
                return select_results(cached, options.min_score, options.limit, self.min_result_count)

        if not self.tmdb.client.api_key:
            logger.warning("TMDB API key is not configured; returning no similar content")
            return []

        if options.fast_start and options.page == 1 and not options.force_refresh and use_cache:
            quick = await self.aggregator.fast_pass(tmdb_id, media_type, options.limit, cancel)
            if not cancel.cancelled:
                self._warm_in_background(key, tmdb_id, media_type, options)
            return quick

        results = await self._full_pass(tmdb_id, media_type, options, cancel)
        if cancel.cancelled:
            return []
        if use_cache and results:
            self.cache.set(key, results, ttl=self.cache_ttl)
        return results

    async def _revalidate(self, tmdb_id: int, media_type: str, options: SimilarContentOptions) -> list | None:
        # None keeps the stale entry in place
        results = await self._full_pass(tmdb_id, media_type, options, CancellationToken())
        return results or None

    async def _full_pass(
        self, tmdb_id: int, media_type: MediaType, options: SimilarContentOptions, cancel: CancellationToken
    ) -> list[CandidateItem]:
        context = await self._resolve_context(options)
        reference = await self._load_reference(tmdb_id, media_type, cancel)
        if cancel.cancelled:
            return []

        adapters = self.aggregator.select_adapters(options.page, options.infinite_loading, context)
        if reference is None:
            # Genre discovery has nothing to work from without the reference record.
            adapters = [adapter for adapter in adapters if not isinstance(adapter, GenreDiscoverAdapter)]
        candidates = await self.aggregator.aggregate(
            tmdb_id, media_type, options.page, cancel, adapters=adapters, context=context, reference=reference
        )
        if cancel.cancelled or not candidates:
            return []

        pool = candidates if options.infinite_loading else candidates[: self.candidate_pool_limit]
        detailed = await self.enricher.enrich(pool, cancel)
        if cancel.cancelled:
            return []

        scored = [self._score(reference, item, context) for item in detailed]
        limit = len(scored) if options.infinite_loading else options.limit
        results = select_results(scored, options.min_score, limit, self.min_result_count)
        if context is not None:
            results = self.diversity.apply(results, context)

        logger.info(
            f"Ranked {len(results)} of {len(candidates)} candidates for {media_type}/{tmdb_id} (page {options.page})"
        )
        return results

    def _score(
        self, reference: CandidateItem | None, item: CandidateItem, context: CulturalContext | None
    ) -> CandidateItem:
        if reference is None:
            return item.with_score(fallback_score(item))
        return item.with_score(self.scorer.score(reference, item, context))

    async def _load_reference(
        self, tmdb_id: int, media_type: MediaType, cancel: CancellationToken
    ) -> CandidateItem | None:
        try:
            raw = await self.tmdb.get_details(media_type, tmdb_id, cancel=cancel)
            return CandidateMetadata.from_details(raw, media_type)
        except RequestCancelled:
            return None
        except (UpstreamError, httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Could not load details for {media_type}/{tmdb_id}, using rating fallback: {e}")
            return None

    async def _resolve_context(self, options: SimilarContentOptions) -> CulturalContext | None:
        if not options.use_cultural_context or not options.user_id or self.cultural_provider is None:
            return None
        try:
            return await self.cultural_provider.get_context(options.user_id)
        except Exception as e:
            logger.warning(f"Cultural context unavailable for user {options.user_id}: {e}")
            return None

    def _warm_in_background(
        self, key: str, tmdb_id: int, media_type: MediaType, options: SimilarContentOptions
    ) -> None:
        """Run the full pass detached from the caller's token and store its result."""
        if key in self._warming:
            return
        full_options = options.model_copy(update={"fast_start": False})
        task = asyncio.create_task(self._warm(key, tmdb_id, media_type, full_options))
        self._warming[key] = task
        task.add_done_callback(lambda _t, k=key: self._warming.pop(k, None))

    async def _warm(self, key: str, tmdb_id: int, media_type: MediaType, options: SimilarContentOptions) -> None:
        try:
            results = await self._full_pass(tmdb_id, media_type, options, CancellationToken())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Background warm-up failed for {key}: {e}")
            return
        if results:
            self.cache.set(key, results, ttl=self.cache_ttl)
            logger.debug(f"Warmed {key} with {len(results)} items")

    async def wait_for_background(self) -> None:
        """Wait until every pending warm-up has finished."""
        while self._warming:
            await asyncio.gather(*list(self._warming.values()), return_exceptions=True)

    def clear_cache(self, key: str | None = None) -> int:
        """Drop one cached result, or all of them when ``key`` is None. Returns how many were removed."""
        if key is None:
            removed = len(self.cache)
            self.cache.clear()
            return removed
        return int(self.cache.delete(key))

    def clear_content(self, content_type: str, content_id: int | str) -> int:
        """Drop every cached page and user variant for one item."""
        tmdb_id, media_type = self.validate(content_id, content_type)
        return self.cache.invalidate_prefix(f"similar:{media_type}:{tmdb_id}:")

    async def clear_all(self) -> None:
        """Reset the cache, in-flight request registry, rate window and warm-ups."""
        await self._cancel_warming()
        self.cache.clear()
        await self.tmdb.client.coalescer.clear()
        self.tmdb.client.rate_limiter.reset()
        logger.info("Cleared all recommendation caches")

    def get_stats(self) -> dict[str, Any]:
        client = self.tmdb.client
        return {
            "cache": self.cache.get_stats(),
            "rate_limiter": client.rate_limiter.get_stats(),
            "pending_requests": len(client.coalescer),
            "background_warmups": len(self._warming),
        }

    def start(self, cleanup_interval: float) -> None:
        self.cache.start_cleanup(cleanup_interval)

    async def shutdown(self) -> None:
        await self._cancel_warming()
        await self.cache.shutdown()
        await self.tmdb.close()

    async def _cancel_warming(self) -> None:
        tasks = list(self._warming.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._warming.clear()


@functools.lru_cache(maxsize=1)
def get_recommendation_service() -> RecommendationService:
    """Process-wide service built from settings on first use."""
    client = TMDBClient(
        api_key=settings.TMDB_API_KEY,
        language=settings.TMDB_LANGUAGE,
        base_url=settings.TMDB_BASE_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        retry_policy=RetryPolicy(
            max_retries=settings.HTTP_MAX_RETRIES,
            base_delay=settings.RETRY_BASE_DELAY_SECONDS,
            max_delay=settings.RETRY_MAX_DELAY_SECONDS,
            multiplier=settings.RETRY_MULTIPLIER,
        ),
        rate_limiter=RateLimiter(
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
            window=settings.RATE_LIMIT_WINDOW_SECONDS,
            retry_delay=settings.RATE_LIMIT_RETRY_DELAY_SECONDS,
        ),
        coalescer=RequestCoalescer(),
    )
    tmdb = TMDBService(client)
    return RecommendationService(
        tmdb,
        cache=LRUCache(
            max_entries=settings.CACHE_MAX_ENTRIES,
            max_memory=settings.CACHE_MAX_MEMORY_BYTES,
            default_ttl=settings.CACHE_TTL_SECONDS,
        ),
        aggregator=CandidateAggregator(tmdb, Deduplicator(), fast_timeout=settings.FAST_PATH_TIMEOUT_SECONDS),
        enricher=DetailEnricher(
            tmdb, workers=settings.ENRICHMENT_WORKERS, detail_limit=settings.ENRICHMENT_DETAIL_LIMIT
        ),
        cultural_provider=InMemoryCulturalContextProvider(),
        candidate_pool_limit=settings.CANDIDATE_POOL_LIMIT,
        min_result_count=settings.MIN_RESULT_COUNT,
    )
