"""Tests for the TMDB candidate source adapters."""

from __future__ import annotations

import pytest

from reelmatch.core.cancellation import CancellationToken
from reelmatch.models.content import CandidateItem, Genre
from reelmatch.models.cultural import CulturalContext
from reelmatch.services.tmdb.adapters import (
    GenreDiscoverAdapter,
    LanguageDiscoverAdapter,
    NowPlayingAdapter,
    RecommendationsAdapter,
    SimilarAdapter,
    UpcomingAdapter,
)
from tests.catalog import FakeCatalog, build_tmdb, details, listing_item


@pytest.mark.anyio("asyncio")
async def test_not_found_source_returns_empty_without_retry() -> None:
    """A 404 from the upstream is "no data", resolved after a single call."""

    catalog = FakeCatalog()
    catalog.add("/movie/1/recommendations", status=404)
    adapter = RecommendationsAdapter(build_tmdb(catalog))

    assert await adapter.fetch(1, "movie") == []
    assert catalog.calls("/movie/1/recommendations") == 1


@pytest.mark.anyio("asyncio")
async def test_failing_source_is_absorbed_after_retries() -> None:
    """Persistent 5xx responses exhaust the retries and come back empty."""

    catalog = FakeCatalog()
    catalog.add("/movie/1/similar", status=502)
    adapter = SimilarAdapter(build_tmdb(catalog, max_retries=3))

    assert await adapter.fetch(1, "movie") == []
    assert catalog.calls("/movie/1/similar") == 3


@pytest.mark.anyio("asyncio")
async def test_rate_limited_source_is_skipped() -> None:
    catalog = FakeCatalog()
    catalog.add("/movie/1/similar", status=429)
    adapter = SimilarAdapter(build_tmdb(catalog))

    assert await adapter.fetch(1, "movie") == []
    assert catalog.calls("/movie/1/similar") == 1


@pytest.mark.anyio("asyncio")
async def test_listing_is_converted_and_reference_excluded() -> None:
    """Shallow results carry resolved genre names and never include the reference item."""

    catalog = FakeCatalog()
    catalog.listing(
        "/movie/1/recommendations",
        [listing_item(1, "Reference"), listing_item(2, "Sequel", genre_ids=(28, 12)), {"title": "no id"}],
    )
    adapter = RecommendationsAdapter(build_tmdb(catalog))

    items = await adapter.fetch(1, "movie", page=1)

    assert [item.id for item in items] == [2]
    assert items[0].genre_names == ["Action", "Adventure"]
    assert items[0].source == "recommendations"
    assert items[0].year == 2010
    assert items[0].enriched is False


@pytest.mark.anyio("asyncio")
async def test_genre_discover_uses_first_three_reference_genres() -> None:
    catalog = FakeCatalog()
    catalog.add(
        "/movie/1",
        details(1, "Reference", genres=((28, "Action"), (12, "Adventure"), (878, "Science Fiction"), (53, "Thriller"))),
    )
    catalog.listing("/discover/movie", [listing_item(5, "Genre Pick", genre_ids=(28, 12, 878))])
    adapter = GenreDiscoverAdapter(build_tmdb(catalog))

    items = await adapter.fetch(1, "movie", page=2)

    assert [item.id for item in items] == [5]
    discover = next(r for r in catalog.requests if r.url.path == "/discover/movie")
    assert discover.url.params["with_genres"] == "28,12,878"
    assert discover.url.params["sort_by"] == "vote_average.desc"
    assert discover.url.params["vote_count.gte"] == "100"
    assert discover.url.params["page"] == "2"


@pytest.mark.anyio("asyncio")
async def test_genre_discover_without_genres_makes_no_discover_call() -> None:
    catalog = FakeCatalog()
    catalog.add("/movie/1", details(1, "Reference", genres=()))
    adapter = GenreDiscoverAdapter(build_tmdb(catalog))

    assert await adapter.fetch(1, "movie") == []
    assert catalog.calls("/discover/movie") == 0


@pytest.mark.anyio("asyncio")
async def test_series_lists_map_to_tv_equivalents() -> None:
    """Upcoming and now-playing have TV-specific endpoints."""

    catalog = FakeCatalog()
    catalog.add("/tv/on_the_air", {"results": [{"id": 7, "name": "New Show", "first_air_date": "2024-01-01"}]})
    catalog.add("/tv/airing_today", {"results": [{"id": 8, "name": "Tonight", "origin_country": ["GB"]}]})
    tmdb = build_tmdb(catalog)

    upcoming = await UpcomingAdapter(tmdb).fetch(99, "tv")
    airing = await NowPlayingAdapter(tmdb).fetch(99, "tv")

    assert upcoming[0].title == "New Show"
    assert upcoming[0].year == 2024
    assert airing[0].production_countries == ["GB"]
    assert airing[0].media_type == "tv"


@pytest.mark.anyio("asyncio")
async def test_cancelled_request_issues_no_calls() -> None:
    catalog = FakeCatalog()
    catalog.listing("/movie/1/recommendations", [listing_item(2, "Sequel")])
    token = CancellationToken()
    token.cancel()

    assert await RecommendationsAdapter(build_tmdb(catalog)).fetch(1, "movie", cancel=token) == []
    assert catalog.requests == []


@pytest.mark.anyio("asyncio")
async def test_language_discover_follows_cultural_context() -> None:
    catalog = FakeCatalog()
    catalog.listing("/discover/movie", [listing_item(11, "Parasite", language="ko")])
    adapter = LanguageDiscoverAdapter(build_tmdb(catalog))

    assert await adapter.fetch(1, "movie") == []
    assert catalog.requests == []

    items = await adapter.fetch(1, "movie", context=CulturalContext(preferred_language="ko", region="asia"))

    assert [item.original_language for item in items] == ["ko"]
    assert catalog.requests[0].url.params["with_original_language"] == "ko"


@pytest.mark.anyio("asyncio")
async def test_genre_discover_reuses_loaded_reference() -> None:
    """A reference record handed in by the caller saves the detail lookup."""

    catalog = FakeCatalog()
    catalog.listing("/discover/movie", [listing_item(5, "Genre Pick")])
    adapter = GenreDiscoverAdapter(build_tmdb(catalog))
    reference = CandidateItem(id=1, genres=[Genre(id=18, name="Drama"), Genre(id=80, name="Crime")])

    items = await adapter.fetch(1, "movie", reference=reference)

    assert [item.id for item in items] == [5]
    assert catalog.requested_paths() == ["/discover/movie"]
    assert catalog.requests[0].url.params["with_genres"] == "18,80"
