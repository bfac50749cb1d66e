from types import MappingProxyType
from typing import Final

from pydantic import BaseModel

# Linear-decay tolerance windows: a difference of this size or more scores 0
YEAR_TOLERANCE: Final[float] = 15.0
RATING_TOLERANCE: Final[float] = 4.0
POPULARITY_TOLERANCE: Final[float] = 80.0
RUNTIME_TOLERANCE: Final[float] = 30.0  # minutes
BUDGET_TOLERANCE: Final[float] = 50_000_000.0

# Only the top-billed cast count towards overlap
TOP_CAST_LIMIT: Final[int] = 10

CREW_DIRECTOR_BONUS: Final[float] = 0.5
CREW_WRITER_BONUS: Final[float] = 0.3

FRANCHISE_EXACT: Final[float] = 1.0
FRANCHISE_NAME_CONTAINS: Final[float] = 0.8
FRANCHISE_SHARED_KEYWORD: Final[float] = 0.6

LANGUAGE_EXACT: Final[float] = 1.0
LANGUAGE_SAME_GROUP: Final[float] = 0.8
LANGUAGE_RELATED_FAMILY: Final[float] = 0.6
PREFERRED_LANGUAGE_BOOST: Final[float] = 1.5

REGION_SAME_MACRO: Final[float] = 0.7
REGION_RELATED_FAMILY: Final[float] = 0.5
PREFERRED_REGION_BOOST: Final[float] = 1.4
CULTURAL_AFFINITY_CAP: Final[float] = 0.5

CULTURAL_TYPE_MATCH: Final[float] = 0.3


class ScoringWeights(BaseModel):
    """Weight per similarity factor. Region overrides replace individual entries."""

    genre: float = 0.22
    cast: float = 0.16
    crew: float = 0.10
    franchise: float = 0.12
    language: float = 0.15
    region: float = 0.15
    year: float = 0.06
    rating: float = 0.05
    popularity: float = 0.04
    runtime: float = 0.02
    budget: float = 0.02
    production_company: float = 0.01
    maturity: float = 0.02
    cultural_type: float = 0.05

    def for_region(self, region: str | None) -> "ScoringWeights":
        override = REGIONAL_WEIGHT_OVERRIDES.get(region or "")
        if not override:
            return self
        return self.model_copy(update=dict(override))


# Users in these regions weigh language/region/genre differently from the base table
REGIONAL_WEIGHT_OVERRIDES: Final = MappingProxyType(
    {
        "north-america": {"language": 0.20, "region": 0.18, "genre": 0.20},
        "europe": {"language": 0.18, "region": 0.20, "genre": 0.18},
        "asia": {"language": 0.25, "region": 0.22, "genre": 0.15},
        "latin-america": {"language": 0.22, "region": 0.20, "genre": 0.16},
        "middle-east": {"language": 0.20, "region": 0.22, "genre": 0.16},
        "africa": {"language": 0.18, "region": 0.20, "genre": 0.18},
        "oceania": {"language": 0.16, "region": 0.18, "genre": 0.20},
    }
)

DEFAULT_WEIGHTS: Final[ScoringWeights] = ScoringWeights()

FRANCHISE_KEYWORDS: Final[tuple[str, ...]] = (
    "marvel",
    "dc",
    "star wars",
    "star trek",
    "james bond",
    "harry potter",
    "lord of the rings",
    "fast and furious",
    "mission impossible",
    "transformers",
    "pirates of the caribbean",
    "indiana jones",
    "terminator",
    "alien",
    "predator",
    "x-men",
    "spider-man",
    "batman",
    "superman",
    "avengers",
    "justice league",
)

# ISO 639-1 plus the common ISO 639-2 spelling of each language
LANGUAGE_GROUPS: Final[dict[str, tuple[str, ...]]] = {
    "english": ("en", "eng"),
    "spanish": ("es", "spa"),
    "french": ("fr", "fra"),
    "german": ("de", "ger"),
    "italian": ("it", "ita"),
    "portuguese": ("pt", "por"),
    "russian": ("ru", "rus"),
    "chinese": ("zh", "chi", "cmn"),
    "japanese": ("ja", "jpn"),
    "korean": ("ko", "kor"),
    "hindi": ("hi", "hin"),
    "arabic": ("ar", "ara"),
    "turkish": ("tr", "tur"),
    "dutch": ("nl", "nld"),
    "swedish": ("sv", "swe"),
    "norwegian": ("no", "nor"),
    "danish": ("da", "dan"),
    "finnish": ("fi", "fin"),
    "polish": ("pl", "pol"),
    "czech": ("cs", "ces"),
    "hungarian": ("hu", "hun"),
    "romanian": ("ro", "ron"),
    "bulgarian": ("bg", "bul"),
    "greek": ("el", "ell"),
    "hebrew": ("he", "heb"),
    "thai": ("th", "tha"),
    "vietnamese": ("vi", "vie"),
    "indonesian": ("id", "ind"),
    "malay": ("ms", "msa"),
    "filipino": ("tl", "fil"),
}

LANGUAGE_FAMILIES: Final[dict[str, tuple[str, ...]]] = {
    "romance": ("spanish", "french", "italian", "portuguese", "romanian"),
    "germanic": ("english", "german", "dutch", "swedish", "norwegian", "danish"),
    "slavic": ("russian", "polish", "czech", "bulgarian"),
    "scandinavian": ("swedish", "norwegian", "danish"),
}

# Ordered: a country belongs to the first region listing it (MX is north-america)
MACRO_REGIONS: Final[dict[str, tuple[str, ...]]] = {
    "north-america": ("US", "CA", "MX"),
    "europe": ("GB", "FR", "DE", "IT", "ES", "NL", "SE", "NO", "DK", "FI", "PL", "CZ", "HU", "RO", "BG", "GR"),
    "asia": ("JP", "KR", "CN", "IN", "TH", "VN", "ID", "MY", "PH", "SG", "TW", "HK"),
    "latin-america": ("BR", "AR", "CL", "CO", "PE", "VE", "MX"),
    "middle-east": ("TR", "IL", "AE", "SA", "EG", "IR"),
    "africa": ("ZA", "NG", "EG", "KE", "GH"),
    "oceania": ("AU", "NZ"),
    "eastern-europe": ("RU", "UA", "BY", "MD", "GE", "AM", "AZ"),
    "scandinavia": ("SE", "NO", "DK", "FI", "IS"),
    "balkans": ("RS", "HR", "SI", "BA", "ME", "MK", "AL"),
    "baltic": ("EE", "LV", "LT"),
    "benelux": ("BE", "NL", "LU"),
    "iberia": ("ES", "PT"),
    "central-europe": ("DE", "AT", "CH", "LI"),
    "mediterranean": ("IT", "GR", "CY", "MT"),
}

REGION_FAMILIES: Final[dict[str, tuple[str, ...]]] = {
    "european": (
        "europe",
        "scandinavia",
        "balkans",
        "baltic",
        "benelux",
        "iberia",
        "central-europe",
        "mediterranean",
        "eastern-europe",
    ),
    "asian": ("asia",),
    "american": ("north-america", "latin-america"),
    "african": ("africa", "middle-east"),
}

# Language share per user region, added on top of the language weight
REGIONAL_LANGUAGE_AFFINITY: Final[dict[str, dict[str, float]]] = {
    "north-america": {"en": 0.3, "es": 0.2, "fr": 0.1},
    "europe": {"en": 0.2, "fr": 0.3, "de": 0.25, "es": 0.2, "it": 0.2},
    "asia": {"ja": 0.4, "ko": 0.35, "zh": 0.3, "hi": 0.25, "th": 0.2},
    "latin-america": {"es": 0.4, "pt": 0.3, "en": 0.15},
    "middle-east": {"ar": 0.4, "tr": 0.3, "he": 0.25, "en": 0.15},
    "africa": {"en": 0.3, "fr": 0.25, "ar": 0.2},
    "oceania": {"en": 0.4, "mi": 0.2},
}

# Genre popularity per user region, keyed by lower-cased genre name
CULTURAL_GENRE_AFFINITY: Final[dict[str, dict[str, float]]] = {
    "north-america": {
        "action": 0.3,
        "comedy": 0.25,
        "drama": 0.2,
        "family": 0.2,
        "western": 0.15,
        "science fiction": 0.2,
        "horror": 0.15,
    },
    "europe": {"drama": 0.3, "comedy": 0.25, "romance": 0.2, "thriller": 0.2, "history": 0.25, "documentary": 0.25},
    "asia": {"action": 0.3, "drama": 0.3, "romance": 0.25, "horror": 0.2, "animation": 0.4, "thriller": 0.25},
    "latin-america": {"drama": 0.3, "romance": 0.3, "comedy": 0.25, "thriller": 0.2, "soap": 0.4, "family": 0.2},
    "middle-east": {"drama": 0.35, "thriller": 0.25, "romance": 0.2, "history": 0.25, "family": 0.2},
    "africa": {"drama": 0.35, "comedy": 0.25, "family": 0.2, "documentary": 0.25, "history": 0.25, "romance": 0.2},
    "oceania": {"drama": 0.25, "comedy": 0.3, "adventure": 0.25, "family": 0.2, "documentary": 0.25, "thriller": 0.2},
}

# Checked in order; the first type sharing a keyword with an item's genres wins
CULTURAL_CONTENT_TYPES: Final[dict[str, tuple[str, ...]]] = {
    "bollywood": ("musical", "romance", "family", "drama"),
    "korean-wave": ("drama", "romance", "thriller", "comedy"),
    "anime": ("animation", "fantasy", "sci-fi", "adventure"),
    "nollywood": ("drama", "comedy", "family", "romance"),
    "telenovelas": ("romance", "drama", "family", "soap"),
    "european-arthouse": ("drama", "art-house", "experimental", "documentary"),
    "scandinavian-noir": ("thriller", "crime", "drama", "mystery"),
    "chinese-wuxia": ("action", "fantasy", "martial-arts", "historical"),
    "japanese-samurai": ("action", "historical", "drama", "martial-arts"),
    "korean-thrillers": ("thriller", "crime", "drama", "mystery"),
}


def language_group(code: str | None) -> str | None:
    if not code:
        return None
    for group, codes in LANGUAGE_GROUPS.items():
        if code in codes:
            return group
    return None


def region_for_country(country_code: str | None) -> str | None:
    if not country_code:
        return None
    for region, countries in MACRO_REGIONS.items():
        if country_code in countries:
            return region
    return None
