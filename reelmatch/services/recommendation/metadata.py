from typing import Any

from reelmatch.models.content import CandidateItem, CastMember, Collection, CrewMember, Genre, MediaType
from reelmatch.services.tmdb.genre import genres_from_ids


class CandidateMetadata:
    """
    Converts raw TMDB payloads into ``CandidateItem`` records.
    """

    @staticmethod
    def extract_year(item: dict[str, Any]) -> int | None:
        """Extract year from TMDB item."""
        date_str = item.get("release_date") or item.get("first_air_date")
        if not date_str or not isinstance(date_str, str):
            return None
        head = date_str[:4]
        return int(head) if head.isdigit() else None

    @staticmethod
    def _common(raw: dict[str, Any], media_type: MediaType) -> dict[str, Any]:
        return {
            "id": raw["id"],
            "media_type": media_type,
            "title": raw.get("title") or raw.get("name"),
            "overview": raw.get("overview"),
            "poster_path": raw.get("poster_path"),
            "backdrop_path": raw.get("backdrop_path"),
            "release_date": raw.get("release_date") or raw.get("first_air_date"),
            "year": CandidateMetadata.extract_year(raw),
            "original_language": raw.get("original_language"),
            "vote_average": raw.get("vote_average"),
            "vote_count": raw.get("vote_count"),
            "popularity": raw.get("popularity"),
            "adult": raw.get("adult"),
        }

    @classmethod
    def from_listing(cls, raw: dict[str, Any], media_type: MediaType, source: str | None = None) -> CandidateItem:
        """
        Shallow record from a list/discover result.

        Listings only carry ``genre_ids``; names come from the static genre table.
        Series listings also carry ``origin_country``.
        """
        data = cls._common(raw, media_type)
        data["genres"] = genres_from_ids(raw.get("genre_ids") or [], media_type)
        data["production_countries"] = list(raw.get("origin_country") or [])
        data["source"] = source
        return CandidateItem(**data)

    @classmethod
    def from_details(cls, raw: dict[str, Any], media_type: MediaType, source: str | None = None) -> CandidateItem:
        """Full record from a details call made with ``append_to_response=credits``."""
        data = cls._common(raw, media_type)

        data["genres"] = [Genre(id=g["id"], name=g.get("name")) for g in raw.get("genres") or [] if "id" in g]

        credits = raw.get("credits") or {}
        data["cast"] = [
            CastMember(id=c["id"], name=c.get("name"), order=c.get("order"))
            for c in credits.get("cast") or []
            if c.get("id") is not None
        ]
        data["crew"] = [
            CrewMember(id=c["id"], name=c.get("name"), job=c.get("job"))
            for c in credits.get("crew") or []
            if c.get("id") is not None
        ]

        countries = [c.get("iso_3166_1") for c in raw.get("production_countries") or []]
        countries = [c for c in countries if c]
        if not countries:
            countries = list(raw.get("origin_country") or [])
        data["production_countries"] = countries
        data["production_companies"] = [
            c["id"] for c in raw.get("production_companies") or [] if c.get("id") is not None
        ]

        coll = raw.get("belongs_to_collection")
        if isinstance(coll, dict) and coll.get("id") is not None:
            data["collection"] = Collection(id=coll["id"], name=coll.get("name"))

        runtime = raw.get("runtime")
        if not runtime and raw.get("episode_run_time"):
            runtime = raw["episode_run_time"][0]
        data["runtime"] = runtime or None
        data["budget"] = raw.get("budget") or None
        data["source"] = source
        data["enriched"] = True
        return CandidateItem(**data)
