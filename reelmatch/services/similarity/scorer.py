from collections.abc import Hashable, Iterable

from reelmatch.models.content import CandidateItem, Collection, CrewMember
from reelmatch.models.cultural import CulturalContext
from reelmatch.services.similarity.constants import (
    BUDGET_TOLERANCE,
    CREW_DIRECTOR_BONUS,
    CREW_WRITER_BONUS,
    CULTURAL_AFFINITY_CAP,
    CULTURAL_CONTENT_TYPES,
    CULTURAL_GENRE_AFFINITY,
    CULTURAL_TYPE_MATCH,
    DEFAULT_WEIGHTS,
    FRANCHISE_EXACT,
    FRANCHISE_KEYWORDS,
    FRANCHISE_NAME_CONTAINS,
    FRANCHISE_SHARED_KEYWORD,
    LANGUAGE_EXACT,
    LANGUAGE_FAMILIES,
    LANGUAGE_RELATED_FAMILY,
    LANGUAGE_SAME_GROUP,
    MACRO_REGIONS,
    POPULARITY_TOLERANCE,
    PREFERRED_LANGUAGE_BOOST,
    PREFERRED_REGION_BOOST,
    RATING_TOLERANCE,
    REGION_FAMILIES,
    REGION_RELATED_FAMILY,
    REGION_SAME_MACRO,
    REGIONAL_LANGUAGE_AFFINITY,
    RUNTIME_TOLERANCE,
    TOP_CAST_LIMIT,
    YEAR_TOLERANCE,
    ScoringWeights,
    language_group,
    region_for_country,
)


def jaccard_similarity(set_a: set[Hashable], set_b: set[Hashable]) -> float:
    """Calculate Jaccard similarity between two sets."""
    if not set_a or not set_b:
        return 0.0
    intersection = len(set_a & set_b)
    union = len(set_a | set_b)
    return intersection / union if union > 0 else 0.0


def linear_decay(a: float, b: float, tolerance: float) -> float:
    """1.0 for equal values, falling linearly to 0 at ``tolerance`` apart."""
    return max(0.0, 1.0 - abs(a - b) / tolerance)


def cast_overlap(reference: CandidateItem, candidate: CandidateItem) -> float:
    ids_a = {c.id for c in reference.cast[:TOP_CAST_LIMIT]}
    ids_b = {c.id for c in candidate.cast[:TOP_CAST_LIMIT]}
    return jaccard_similarity(ids_a, ids_b)


def _first_with_job(crew: Iterable[CrewMember], job: str) -> int | None:
    return next((member.id for member in crew if member.job == job), None)


def crew_overlap(reference: CandidateItem, candidate: CandidateItem) -> float:
    score = 0.0
    director = _first_with_job(reference.crew, "Director")
    if director is not None and director == _first_with_job(candidate.crew, "Director"):
        score += CREW_DIRECTOR_BONUS
    writer = _first_with_job(reference.crew, "Writer")
    if writer is not None and writer == _first_with_job(candidate.crew, "Writer"):
        score += CREW_WRITER_BONUS
    return min(1.0, score)


def franchise_similarity(a: Collection, b: Collection) -> float:
    if a.id == b.id:
        return FRANCHISE_EXACT
    name_a = (a.name or "").lower()
    name_b = (b.name or "").lower()
    if not name_a or not name_b:
        return 0.0
    if name_a == name_b:
        return FRANCHISE_EXACT
    if name_a in name_b or name_b in name_a:
        return FRANCHISE_NAME_CONTAINS
    if any(keyword in name_a and keyword in name_b for keyword in FRANCHISE_KEYWORDS):
        return FRANCHISE_SHARED_KEYWORD
    return 0.0


def language_similarity(lang_a: str, lang_b: str) -> float:
    if lang_a == lang_b:
        return LANGUAGE_EXACT
    group_a = language_group(lang_a)
    group_b = language_group(lang_b)
    if group_a is None or group_b is None:
        return 0.0
    if group_a == group_b:
        return LANGUAGE_SAME_GROUP
    for languages in LANGUAGE_FAMILIES.values():
        if group_a in languages and group_b in languages:
            return LANGUAGE_RELATED_FAMILY
    return 0.0


def region_similarity(countries_a: Iterable[str], countries_b: Iterable[str]) -> float:
    codes_a = set(countries_a)
    codes_b = set(countries_b)
    if not codes_a or not codes_b:
        return 0.0

    shared = codes_a & codes_b
    if shared:
        return min(1.0, len(shared) / min(len(codes_a), len(codes_b)))

    regions_a = {r for r in map(region_for_country, codes_a) if r}
    regions_b = {r for r in map(region_for_country, codes_b) if r}
    if regions_a & regions_b:
        return REGION_SAME_MACRO

    if regions_a and regions_b:
        for family in REGION_FAMILIES.values():
            if regions_a.issubset(family) and regions_b.issubset(family):
                return REGION_RELATED_FAMILY
    return 0.0


def is_from_region(item: CandidateItem, region: str) -> bool:
    countries = MACRO_REGIONS.get(region, ())
    return any(country in countries for country in item.production_countries)


def regional_language_boost(language: str | None, region: str | None) -> float:
    return REGIONAL_LANGUAGE_AFFINITY.get(region or "", {}).get(language or "", 0.0)


def cultural_affinity(reference: CandidateItem, candidate: CandidateItem, region: str | None) -> float:
    affinities = CULTURAL_GENRE_AFFINITY.get(region or "")
    if not affinities:
        return 0.0
    total = sum(affinities.get(name.lower(), 0.0) for name in reference.genre_names)
    total += sum(affinities.get(name.lower(), 0.0) for name in candidate.genre_names)
    return min(CULTURAL_AFFINITY_CAP, total / 2)


def cultural_content_type(item: CandidateItem) -> str | None:
    names = [name.lower() for name in item.genre_names]
    if not names:
        return None
    for content_type, keywords in CULTURAL_CONTENT_TYPES.items():
        if any(keyword in name for keyword in keywords for name in names):
            return content_type
    return None


class SimilarityScorer:
    """
    Weighted multi-factor similarity between a reference item and a candidate.

    Each factor is normalised to [0, 1] and multiplied by its weight; factors
    whose inputs are missing on either side are left out of the sum rather than
    scored as zero. The direction matters: language and region boosts look at the
    reference item first, so ``score(a, b)`` and ``score(b, a)`` may differ.
    Scoring is pure arithmetic over the inputs and therefore reproducible.
    """

    def __init__(self, weights: ScoringWeights = DEFAULT_WEIGHTS):
        self.weights = weights

    def score(
        self, reference: CandidateItem, candidate: CandidateItem, context: CulturalContext | None = None
    ) -> float:
        total = sum(self.breakdown(reference, candidate, context).values())
        return max(0.0, min(1.0, total))

    def breakdown(
        self, reference: CandidateItem, candidate: CandidateItem, context: CulturalContext | None = None
    ) -> dict[str, float]:
        """Weighted contribution of every factor that could be evaluated."""
        region = context.region if context else None
        weights = self.weights.for_region(region)
        parts: dict[str, float] = {}

        if reference.genres and candidate.genres:
            parts["genre"] = jaccard_similarity(reference.genre_ids, candidate.genre_ids) * weights.genre

        if reference.cast and candidate.cast:
            parts["cast"] = cast_overlap(reference, candidate) * weights.cast

        if reference.crew and candidate.crew:
            parts["crew"] = crew_overlap(reference, candidate) * weights.crew

        if reference.collection and candidate.collection:
            parts["franchise"] = franchise_similarity(reference.collection, candidate.collection) * weights.franchise

        if reference.original_language and candidate.original_language:
            weight = weights.language
            if context and context.preferred_language in (reference.original_language, candidate.original_language):
                weight *= PREFERRED_LANGUAGE_BOOST
            weight *= 1 + regional_language_boost(reference.original_language, region)
            parts["language"] = language_similarity(reference.original_language, candidate.original_language) * weight

        if reference.production_countries and candidate.production_countries:
            weight = weights.region
            if region and (is_from_region(reference, region) or is_from_region(candidate, region)):
                weight *= PREFERRED_REGION_BOOST
            weight *= 1 + cultural_affinity(reference, candidate, region)
            parts["region"] = (
                region_similarity(reference.production_countries, candidate.production_countries) * weight
            )

        if reference.year and candidate.year:
            parts["year"] = linear_decay(reference.year, candidate.year, YEAR_TOLERANCE) * weights.year

        if reference.vote_average and candidate.vote_average:
            parts["rating"] = (
                linear_decay(reference.vote_average, candidate.vote_average, RATING_TOLERANCE) * weights.rating
            )

        if reference.popularity and candidate.popularity:
            parts["popularity"] = (
                linear_decay(reference.popularity, candidate.popularity, POPULARITY_TOLERANCE) * weights.popularity
            )

        if reference.runtime and candidate.runtime:
            parts["runtime"] = linear_decay(reference.runtime, candidate.runtime, RUNTIME_TOLERANCE) * weights.runtime

        if reference.budget and candidate.budget:
            parts["budget"] = linear_decay(reference.budget, candidate.budget, BUDGET_TOLERANCE) * weights.budget

        if reference.production_companies and candidate.production_companies:
            parts["production_company"] = (
                jaccard_similarity(set(reference.production_companies), set(candidate.production_companies))
                * weights.production_company
            )

        if reference.adult is not None and candidate.adult is not None:
            parts["maturity"] = weights.maturity if reference.adult == candidate.adult else 0.0

        ref_type = cultural_content_type(reference)
        cand_type = cultural_content_type(candidate)
        if ref_type and cand_type:
            parts["cultural_type"] = (CULTURAL_TYPE_MATCH if ref_type == cand_type else 0.0) * weights.cultural_type

        return parts
