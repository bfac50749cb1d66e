from collections import Counter
from collections.abc import Iterable

from pydantic import BaseModel, Field

from reelmatch.models.content import CandidateItem
from reelmatch.services.similarity.constants import region_for_country


class CulturalContext(BaseModel):
    """
    Per-request cultural preferences supplied by the user-profile service.

    ``preferred_languages`` / ``preferred_regions`` hold everything the user has
    shown interest in; the single ``preferred_language`` / ``region`` values are
    the strongest of each and drive the scorer's weight table.
    """

    preferred_language: str = "en"
    region: str = "global"
    preferred_languages: set[str] = Field(default_factory=set)
    preferred_regions: set[str] = Field(default_factory=set)

    def prefers_language(self, language: str | None) -> bool:
        return bool(language) and (language == self.preferred_language or language in self.preferred_languages)

    def prefers_region(self, region: str | None) -> bool:
        return bool(region) and (region == self.region or region in self.preferred_regions)

    @classmethod
    def from_history(cls, rated_items: Iterable[tuple[CandidateItem, float]]) -> "CulturalContext":
        """
        Derive preferences from (item, rating) pairs.

        Languages and regions are tallied by rating; the highest tally wins.
        Ties go to whichever was seen first.
        """
        languages: Counter[str] = Counter()
        regions: Counter[str] = Counter()
        for item, rating in rated_items:
            if item.original_language:
                languages[item.original_language] += rating
            for country in item.production_countries:
                region = region_for_country(country)
                if region:
                    regions[region] += rating

        top_language = languages.most_common(1)
        top_region = regions.most_common(1)
        return cls(
            preferred_language=top_language[0][0] if top_language else "en",
            region=top_region[0][0] if top_region else "global",
            preferred_languages=set(languages),
            preferred_regions=set(regions),
        )
