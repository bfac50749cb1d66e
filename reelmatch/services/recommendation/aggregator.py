import asyncio

from loguru import logger

from reelmatch.core.cancellation import CancellationToken
from reelmatch.core.errors import RequestCancelled
from reelmatch.models.content import CandidateItem, MediaType
from reelmatch.models.cultural import CulturalContext
from reelmatch.services.recommendation.dedup import Deduplicator
from reelmatch.services.tmdb.adapters import (
    CORE_ADAPTERS,
    FEED_ADAPTERS,
    LanguageDiscoverAdapter,
    RecommendationsAdapter,
    SimilarAdapter,
    SourceAdapter,
)
from reelmatch.services.tmdb.service import TMDBService

FAST_PATH_MAX_ITEMS = 16


def quick_score(item: CandidateItem) -> float:
    """Rating and popularity only; used when there is no time for detail lookups."""
    rating = item.vote_average / 10 if item.vote_average else 0.2
    popularity = min(item.popularity / 100, 0.3) if item.popularity else 0.0
    return max(0.0, min(1.0, rating * 0.7 + popularity))


class CandidateAggregator:
    """Fans a request out to every selected source and merges what comes back."""

    def __init__(
        self,
        tmdb: TMDBService,
        deduplicator: Deduplicator | None = None,
        fast_timeout: float = 1.2,
    ):
        self.deduplicator = deduplicator or Deduplicator()
        self.fast_timeout = fast_timeout
        self._core = [adapter(tmdb) for adapter in CORE_ADAPTERS]
        self._feeds = [adapter(tmdb) for adapter in FEED_ADAPTERS]
        self._language = LanguageDiscoverAdapter(tmdb)
        self._fast = [RecommendationsAdapter(tmdb), SimilarAdapter(tmdb)]

    def select_adapters(
        self, page: int, infinite_loading: bool, context: CulturalContext | None
    ) -> list[SourceAdapter]:
        adapters = list(self._core)
        if context is not None:
            adapters.append(self._language)
        # Generic feeds only pad later pages of an endless list; they are not "similar".
        if infinite_loading and page > 1:
            adapters.extend(self._feeds)
        return adapters

    async def aggregate(
        self,
        reference_id: int,
        media_type: MediaType,
        page: int,
        cancel: CancellationToken,
        adapters: list[SourceAdapter] | None = None,
        context: CulturalContext | None = None,
        reference: CandidateItem | None = None,
    ) -> list[CandidateItem]:
        """Query all adapters concurrently and return the smart-deduplicated union."""
        if cancel.cancelled:
            return []
        adapters = adapters if adapters is not None else self.select_adapters(page, False, context)
        batches = await asyncio.gather(
            *(
                adapter.fetch(reference_id, media_type, page, cancel=cancel, context=context, reference=reference)
                for adapter in adapters
            )
        )
        if cancel.cancelled:
            return []

        for adapter, batch in zip(adapters, batches):
            logger.debug(f"{adapter.name} returned {len(batch)} candidates for {media_type}/{reference_id}")
        merged = [item for batch in batches for item in batch]
        return self.deduplicator.dedupe(merged, strategy="smart", keep_best_score=True)

    async def fast_pass(
        self, reference_id: int, media_type: MediaType, limit: int, cancel: CancellationToken
    ) -> list[CandidateItem]:
        """
        Shallow first page: recommendations and similar only, each cut off after
        ``fast_timeout`` seconds, scored from rating and popularity.
        """

        async def _time_boxed(adapter: SourceAdapter) -> list[CandidateItem]:
            try:
                return await cancel.guard(
                    adapter.fetch(reference_id, media_type, 1, cancel=cancel), timeout=self.fast_timeout
                )
            except TimeoutError:
                logger.debug(f"{adapter.name} exceeded the {self.fast_timeout}s fast path budget")
                return []
            except RequestCancelled:
                return []

        batches = await asyncio.gather(*(_time_boxed(adapter) for adapter in self._fast))
        if cancel.cancelled:
            return []
        merged = self.deduplicator.dedupe(
            [item for batch in batches for item in batch], strategy="id", keep_best_score=False
        )
        quick = [item.with_score(quick_score(item)) for item in merged[: min(FAST_PATH_MAX_ITEMS, limit)]]
        return sorted(quick, key=lambda item: item.score, reverse=True)
