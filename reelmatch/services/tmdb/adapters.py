"""
Candidate sources.

Each adapter wraps one TMDB listing and exposes the same ``fetch`` call. An
adapter never raises: not-found, rate-limited, cancelled and failed calls all
come back as an empty list so one bad source cannot sink the whole request.
"""

from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from reelmatch.core.cancellation import CancellationToken
from reelmatch.core.errors import NotFoundError, RateLimitedError, RequestCancelled, UpstreamError
from reelmatch.models.content import CandidateItem, MediaType
from reelmatch.models.cultural import CulturalContext
from reelmatch.services.recommendation.metadata import CandidateMetadata
from reelmatch.services.tmdb.service import TMDBService

GENRE_DISCOVER_GENRES = 3
GENRE_DISCOVER_MIN_VOTES = 100
GENRE_DISCOVER_DELAY = 0.1
LANGUAGE_DISCOVER_MIN_VOTES = 50
LANGUAGE_DISCOVER_MIN_RATING = 6.0


class SourceAdapter(ABC):
    name: str = "source"

    def __init__(self, tmdb: TMDBService):
        self.tmdb = tmdb

    async def fetch(
        self,
        reference_id: int,
        media_type: MediaType,
        page: int = 1,
        cancel: CancellationToken | None = None,
        context: CulturalContext | None = None,
        reference: CandidateItem | None = None,
    ) -> list[CandidateItem]:
        """
        Fetch shallow candidates for ``reference_id``. The reference itself is never included.

        ``reference`` is the already-loaded detail record of the reference item, for
        sources that need more than its id.
        """
        cancel = cancel or CancellationToken()
        if cancel.cancelled:
            return []
        try:
            results = await self._fetch(reference_id, media_type, page, cancel, context, reference)
        except RequestCancelled:
            return []
        except NotFoundError:
            logger.debug(f"{self.name}: nothing found for {media_type}/{reference_id}")
            return []
        except RateLimitedError:
            logger.warning(f"{self.name}: rate limited for {media_type}/{reference_id}, skipping source")
            return []
        except UpstreamError as e:
            logger.warning(f"{self.name}: failed for {media_type}/{reference_id}: {e}")
            return []
        except Exception as e:
            logger.warning(f"{self.name}: unexpected error for {media_type}/{reference_id}: {e}")
            return []

        items = []
        for raw in results:
            if not isinstance(raw, dict) or raw.get("id") is None or raw.get("id") == reference_id:
                continue
            try:
                items.append(CandidateMetadata.from_listing(raw, media_type, source=self.name))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"{self.name}: skipping malformed result {raw.get('id')}: {e}")
        return items

    @abstractmethod
    async def _fetch(
        self,
        reference_id: int,
        media_type: MediaType,
        page: int,
        cancel: CancellationToken,
        context: CulturalContext | None,
        reference: CandidateItem | None,
    ) -> list[dict[str, Any]]:
        """Return the raw ``results`` array of the source."""


def _results(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    return payload.get("results") or []


class RecommendationsAdapter(SourceAdapter):
    name = "recommendations"

    async def _fetch(self, reference_id, media_type, page, cancel, context, reference):
        return _results(await self.tmdb.get_recommendations(media_type, reference_id, page=page, cancel=cancel))


class SimilarAdapter(SourceAdapter):
    name = "similar"

    async def _fetch(self, reference_id, media_type, page, cancel, context, reference):
        return _results(await self.tmdb.get_similar(media_type, reference_id, page=page, cancel=cancel))


class GenreDiscoverAdapter(SourceAdapter):
    """Highly rated titles sharing the reference item's leading genres."""

    name = "genre_discover"

    async def _fetch(self, reference_id, media_type, page, cancel, context, reference):
        if reference is not None:
            genre_ids = [genre.id for genre in reference.genres][:GENRE_DISCOVER_GENRES]
        else:
            details = await self.tmdb.get_details(media_type, reference_id, cancel=cancel)
            genre_ids = [g["id"] for g in (details or {}).get("genres") or [] if "id" in g][:GENRE_DISCOVER_GENRES]
            if genre_ids:
                # Spread the two calls out a little so the burst stays under the upstream limit.
                await cancel.sleep(GENRE_DISCOVER_DELAY)
        if not genre_ids:
            return []

        payload = await self.tmdb.get_discover(
            media_type,
            with_genres=",".join(str(g) for g in genre_ids),
            sort_by="vote_average.desc",
            page=page,
            cancel=cancel,
            **{"vote_count.gte": GENRE_DISCOVER_MIN_VOTES},
        )
        return _results(payload)


class LanguageDiscoverAdapter(SourceAdapter):
    """Well-rated titles in the user's preferred original language."""

    name = "language_discover"

    async def _fetch(self, reference_id, media_type, page, cancel, context, reference):
        if context is None or not context.preferred_language:
            return []
        payload = await self.tmdb.get_discover(
            media_type,
            sort_by="vote_average.desc",
            page=page,
            cancel=cancel,
            with_original_language=context.preferred_language,
            **{
                "vote_count.gte": LANGUAGE_DISCOVER_MIN_VOTES,
                "vote_average.gte": LANGUAGE_DISCOVER_MIN_RATING,
            },
        )
        return _results(payload)


class TrendingAdapter(SourceAdapter):
    name = "trending"

    async def _fetch(self, reference_id, media_type, page, cancel, context, reference):
        return _results(await self.tmdb.get_trending(media_type, page=page, cancel=cancel))


class _ListAdapter(SourceAdapter):
    list_name: str = ""

    async def _fetch(self, reference_id, media_type, page, cancel, context, reference):
        return _results(await self.tmdb.get_list(media_type, self.list_name, page=page, cancel=cancel))


class PopularAdapter(_ListAdapter):
    name = list_name = "popular"


class TopRatedAdapter(_ListAdapter):
    name = list_name = "top_rated"


class UpcomingAdapter(_ListAdapter):
    name = list_name = "upcoming"


class NowPlayingAdapter(_ListAdapter):
    name = list_name = "now_playing"


CORE_ADAPTERS: tuple[type[SourceAdapter], ...] = (RecommendationsAdapter, SimilarAdapter, GenreDiscoverAdapter)
FEED_ADAPTERS: tuple[type[SourceAdapter], ...] = (
    TrendingAdapter,
    PopularAdapter,
    TopRatedAdapter,
    UpcomingAdapter,
    NowPlayingAdapter,
)
