from reelmatch.models.content import CandidateItem
from reelmatch.models.cultural import CulturalContext
from reelmatch.services.similarity.constants import region_for_country

PREFERRED_LANGUAGE_BOOST = 1.10
NEW_LANGUAGE_BOOST = 1.05
PREFERRED_REGION_BOOST = 1.08
NEW_REGION_BOOST = 1.03
NEW_GENRE_BOOST = 0.03


class DiversityPostProcessor:
    """
    Single left-to-right pass rewarding the first item that introduces a
    language, region or genre not seen higher up the list.

    Boosts multiply the item's score (clamped to 1) and the list is re-sorted.
    Python's sort is stable, so equal boosted scores keep their pre-boost order.
    """

    def apply(self, items: list[CandidateItem], context: CulturalContext) -> list[CandidateItem]:
        seen_languages: set[str] = set()
        seen_regions: set[str] = set()
        seen_genres: set[int] = set()
        boosted = []

        for item in items:
            factor = 1.0

            language = item.original_language
            if language and language not in seen_languages:
                factor *= PREFERRED_LANGUAGE_BOOST if context.prefers_language(language) else NEW_LANGUAGE_BOOST
                seen_languages.add(language)

            region = region_for_country(item.production_countries[0]) if item.production_countries else None
            if region and region not in seen_regions:
                factor *= PREFERRED_REGION_BOOST if context.prefers_region(region) else NEW_REGION_BOOST
                seen_regions.add(region)

            new_genres = item.genre_ids - seen_genres
            if new_genres:
                factor *= 1 + NEW_GENRE_BOOST * len(new_genres)
                seen_genres |= new_genres

            boosted.append(item.with_score(item.score * factor))

        return sorted(boosted, key=lambda i: i.score, reverse=True)
