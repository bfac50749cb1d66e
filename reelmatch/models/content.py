from typing import Literal

from pydantic import BaseModel, Field, field_validator

MediaType = Literal["movie", "tv"]


class Genre(BaseModel):
    id: int
    name: str | None = None


class CastMember(BaseModel):
    id: int
    name: str | None = None
    order: int | None = None


class CrewMember(BaseModel):
    id: int
    name: str | None = None
    job: str | None = None


class Collection(BaseModel):
    """Franchise grouping (TMDB ``belongs_to_collection``)."""

    id: int
    name: str | None = None


class CandidateItem(BaseModel):
    """
    One piece of content under consideration for a similar-content list.

    Empty lists and None mean "unknown"; the scorer skips a factor instead of
    penalising it. ``similarity_score`` is only set once the item has been scored
    and is always kept inside [0, 1].
    """

    id: int
    media_type: MediaType = "movie"
    title: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    release_date: str | None = None
    year: int | None = None
    genres: list[Genre] = Field(default_factory=list)
    cast: list[CastMember] = Field(default_factory=list)
    crew: list[CrewMember] = Field(default_factory=list)
    original_language: str | None = None
    production_countries: list[str] = Field(default_factory=list)
    production_companies: list[int] = Field(default_factory=list)
    collection: Collection | None = None
    vote_average: float | None = None
    vote_count: int | None = None
    popularity: float | None = None
    runtime: int | None = None
    budget: int | None = None
    adult: bool | None = None
    source: str | None = None
    enriched: bool = False
    similarity_score: float | None = None

    @field_validator("similarity_score")
    @classmethod
    def _clamp_score(cls, value: float | None) -> float | None:
        if value is None:
            return None
        return max(0.0, min(1.0, float(value)))

    @property
    def collection_id(self) -> int | None:
        return self.collection.id if self.collection else None

    @property
    def genre_ids(self) -> set[int]:
        return {g.id for g in self.genres}

    @property
    def genre_names(self) -> list[str]:
        return [g.name for g in self.genres if g.name]

    @property
    def normalized_title(self) -> str:
        return (self.title or "").lower().strip()

    @property
    def score(self) -> float:
        return self.similarity_score or 0.0

    def with_score(self, score: float) -> "CandidateItem":
        """Copy of this item carrying ``score`` clamped to [0, 1]."""
        return self.model_copy(update={"similarity_score": max(0.0, min(1.0, float(score)))})


class SimilarContentOptions(BaseModel):
    """Options accepted by ``RecommendationService.get_similar_content``."""

    limit: int = Field(default=200, ge=1)
    min_score: float = Field(default=0.2, ge=0.0, le=1.0)
    force_refresh: bool = False
    page: int = Field(default=1, ge=1)
    user_id: str | None = None
    fast_start: bool = True
    infinite_loading: bool = False
    use_cultural_context: bool = True
