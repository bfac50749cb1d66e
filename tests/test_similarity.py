"""Tests for the multi-factor similarity scorer."""

from __future__ import annotations

import pytest

from reelmatch.models.content import CandidateItem, CastMember, Collection, CrewMember, Genre
from reelmatch.models.cultural import CulturalContext
from reelmatch.services.similarity.constants import DEFAULT_WEIGHTS
from reelmatch.services.similarity.scorer import (
    SimilarityScorer,
    crew_overlap,
    franchise_similarity,
    jaccard_similarity,
    language_similarity,
    region_similarity,
)

ACTION = Genre(id=28, name="Action")
ADVENTURE = Genre(id=12, name="Adventure")
COMEDY = Genre(id=35, name="Comedy")


def movie(item_id: int, **fields) -> CandidateItem:
    return CandidateItem(id=item_id, title=f"Movie {item_id}", **fields)


def rich_movie(item_id: int, **overrides) -> CandidateItem:
    fields = {
        "genres": [ACTION, ADVENTURE],
        "cast": [CastMember(id=i) for i in range(1, 6)],
        "crew": [CrewMember(id=100, job="Director"), CrewMember(id=200, job="Writer")],
        "collection": Collection(id=10, name="Star Wars Collection"),
        "original_language": "en",
        "production_countries": ["US"],
        "production_companies": [1, 2],
        "year": 2010,
        "vote_average": 7.5,
        "popularity": 80.0,
        "runtime": 120,
        "budget": 100_000_000,
        "adult": False,
    }
    fields.update(overrides)
    return movie(item_id, **fields)


def test_genre_overlap_ranks_matching_candidate_higher() -> None:
    """Identical genres beat disjoint genres when everything else is equal."""

    scorer = SimilarityScorer()
    reference = movie(1, genres=[ACTION, ADVENTURE], year=2000)
    same = movie(2, genres=[ACTION, ADVENTURE], year=2000)
    different = movie(3, genres=[COMEDY], year=2000)

    same_parts = scorer.breakdown(reference, same)
    different_parts = scorer.breakdown(reference, different)

    assert same_parts["genre"] == pytest.approx(DEFAULT_WEIGHTS.genre)
    assert different_parts["genre"] == 0.0
    assert scorer.score(reference, same) > scorer.score(reference, different)


def test_identical_items_are_clamped_to_one() -> None:
    """Even with every boost applied the score never leaves [0, 1]."""

    scorer = SimilarityScorer()
    reference = rich_movie(1)
    context = CulturalContext(preferred_language="en", region="north-america")

    score = scorer.score(reference, rich_movie(2), context)

    assert 0.0 <= score <= 1.0
    assert score == pytest.approx(1.0)


def test_missing_fields_contribute_nothing() -> None:
    """Factors with absent inputs are omitted rather than scored."""

    scorer = SimilarityScorer()

    assert scorer.breakdown(movie(1), movie(2)) == {}
    assert scorer.score(movie(1), movie(2)) == 0.0
    assert "runtime" not in scorer.breakdown(rich_movie(1), rich_movie(2, runtime=None))


@pytest.mark.parametrize(
    "candidate",
    [
        rich_movie(2, genres=[COMEDY], original_language="ja", production_countries=["JP"], year=1950),
        rich_movie(3, vote_average=0.5, popularity=900.0, runtime=10, budget=1),
        movie(4, genres=[ACTION]),
        movie(5, adult=True),
    ],
)
def test_scores_stay_within_bounds(candidate: CandidateItem) -> None:
    scorer = SimilarityScorer()
    contexts = [None, CulturalContext(preferred_language="ja", region="asia")]

    for context in contexts:
        assert 0.0 <= scorer.score(rich_movie(1), candidate, context) <= 1.0


def test_scoring_is_deterministic() -> None:
    scorer = SimilarityScorer()
    reference = rich_movie(1)
    candidate = rich_movie(2, year=2004, genres=[ACTION], cast=[CastMember(id=3)], production_countries=["CA"])
    context = CulturalContext(preferred_language="en", region="europe")

    scores = {scorer.score(reference, candidate, context) for _ in range(20)}

    assert len(scores) == 1


def test_asian_region_up_weights_language() -> None:
    """A Korean-language match matters more for a user in Asia who prefers Korean."""

    scorer = SimilarityScorer()
    reference = movie(1, original_language="ko")
    candidate = movie(2, original_language="ko")

    neutral = scorer.breakdown(reference, candidate)["language"]
    regional = scorer.breakdown(reference, candidate, CulturalContext(preferred_language="ko", region="asia"))[
        "language"
    ]

    assert neutral == pytest.approx(0.15)
    assert regional == pytest.approx(0.25 * 1.5 * 1.35)


def test_region_boost_for_users_home_region() -> None:
    scorer = SimilarityScorer()
    reference = movie(1, production_countries=["FR"])
    candidate = movie(2, production_countries=["FR"])

    neutral = scorer.breakdown(reference, candidate)["region"]
    home = scorer.breakdown(reference, candidate, CulturalContext(region="europe"))["region"]

    assert home > neutral


def test_score_is_directional() -> None:
    """Regional language affinity follows the reference item, so order matters."""

    scorer = SimilarityScorer()
    context = CulturalContext(preferred_language="en", region="latin-america")
    spanish = movie(1, original_language="es")
    portuguese = movie(2, original_language="pt")

    forward = scorer.score(spanish, portuguese, context)
    backward = scorer.score(portuguese, spanish, context)

    assert forward == pytest.approx(0.6 * 0.22 * 1.4)
    assert backward == pytest.approx(0.6 * 0.22 * 1.3)


def test_jaccard_similarity() -> None:
    assert jaccard_similarity({1, 2}, {1, 2}) == 1.0
    assert jaccard_similarity({1, 2}, {2, 3}) == pytest.approx(1 / 3)
    assert jaccard_similarity(set(), {1}) == 0.0


def test_crew_overlap_bonuses() -> None:
    reference = movie(1, crew=[CrewMember(id=1, job="Director"), CrewMember(id=2, job="Writer")])

    assert crew_overlap(reference, movie(2, crew=[CrewMember(id=1, job="Director")])) == pytest.approx(0.5)
    assert crew_overlap(reference, movie(3, crew=[CrewMember(id=2, job="Writer")])) == pytest.approx(0.3)
    assert crew_overlap(reference, reference) == pytest.approx(0.8)
    assert crew_overlap(reference, movie(4, crew=[CrewMember(id=1, job="Writer")])) == 0.0


def test_franchise_similarity_levels() -> None:
    alien = Collection(id=1, name="Alien Collection")

    assert franchise_similarity(alien, Collection(id=1, name="Anything")) == 1.0
    assert franchise_similarity(alien, Collection(id=2, name="The Alien Collection")) == 0.8
    assert franchise_similarity(
        Collection(id=3, name="Star Wars Collection"), Collection(id=4, name="Star Wars: Skywalker Saga")
    ) == pytest.approx(0.6)
    assert franchise_similarity(alien, Collection(id=5, name="Toy Story Collection")) == 0.0


def test_language_similarity_levels() -> None:
    assert language_similarity("en", "en") == 1.0
    assert language_similarity("en", "eng") == 0.8
    assert language_similarity("es", "pt") == 0.6
    assert language_similarity("en", "ja") == 0.0
    assert language_similarity("xx", "yy") == 0.0


def test_region_similarity_levels() -> None:
    assert region_similarity(["US", "GB"], ["US"]) == 1.0
    assert region_similarity(["US", "GB", "FR"], ["US", "JP"]) == pytest.approx(0.5)
    assert region_similarity(["US"], ["CA"]) == 0.7
    assert region_similarity(["US"], ["BR"]) == 0.5
    assert region_similarity(["US"], ["JP"]) == 0.0
    assert region_similarity([], ["US"]) == 0.0


def test_linear_decay_factors() -> None:
    scorer = SimilarityScorer()
    parts = scorer.breakdown(movie(1, year=2000, runtime=100), movie(2, year=2030, runtime=115))

    assert parts["year"] == 0.0
    assert parts["runtime"] == pytest.approx(0.5 * DEFAULT_WEIGHTS.runtime)
