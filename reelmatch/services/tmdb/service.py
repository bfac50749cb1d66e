from typing import Any

from reelmatch.core.cancellation import CancellationToken
from reelmatch.models.content import MediaType
from reelmatch.services.tmdb.client import TMDBClient

# TV has no upcoming/now-playing lists; these are the closest equivalents.
_TV_LIST_ALIASES = {"upcoming": "on_the_air", "now_playing": "airing_today"}


class TMDBService:
    """
    Thin wrapper over the TMDB endpoints the similar-content pipeline reads.

    Methods raise the classified upstream errors from ``BaseClient``; turning
    those into empty results is the adapters' job.
    """

    def __init__(self, client: TMDBClient):
        self.client = client

    async def close(self):
        """Close the underlying HTTP client."""
        await self.client.close()

    async def get_details(
        self, media_type: MediaType, tmdb_id: int, cancel: CancellationToken | None = None
    ) -> dict[str, Any]:
        """Get details of a movie or series with credits appended."""
        params = {"append_to_response": "credits"}
        return await self.client.get(f"/{media_type}/{tmdb_id}", params=params, cancel=cancel)

    async def get_recommendations(
        self, media_type: MediaType, tmdb_id: int, page: int = 1, cancel: CancellationToken | None = None
    ) -> dict[str, Any]:
        return await self.client.get(f"/{media_type}/{tmdb_id}/recommendations", params={"page": page}, cancel=cancel)

    async def get_similar(
        self, media_type: MediaType, tmdb_id: int, page: int = 1, cancel: CancellationToken | None = None
    ) -> dict[str, Any]:
        return await self.client.get(f"/{media_type}/{tmdb_id}/similar", params={"page": page}, cancel=cancel)

    async def get_discover(
        self,
        media_type: MediaType,
        with_genres: str | None = None,
        sort_by: str = "popularity.desc",
        page: int = 1,
        cancel: CancellationToken | None = None,
        **kwargs,
    ) -> dict[str, Any]:
        """Get discover content based on params."""
        params: dict[str, Any] = {"page": page, "sort_by": sort_by}
        if with_genres:
            params["with_genres"] = with_genres
        params.update(kwargs)
        return await self.client.get(f"/discover/{media_type}", params=params, cancel=cancel)

    async def get_trending(
        self,
        media_type: MediaType,
        time_window: str = "week",
        page: int = 1,
        cancel: CancellationToken | None = None,
    ) -> dict[str, Any]:
        return await self.client.get(f"/trending/{media_type}/{time_window}", params={"page": page}, cancel=cancel)

    async def get_list(
        self, media_type: MediaType, list_name: str, page: int = 1, cancel: CancellationToken | None = None
    ) -> dict[str, Any]:
        """
        Fetch one of the curated lists: popular, top_rated, upcoming or now_playing.

        For series, ``upcoming`` and ``now_playing`` are served from
        ``on_the_air`` and ``airing_today``.
        """
        if media_type == "tv":
            list_name = _TV_LIST_ALIASES.get(list_name, list_name)
        return await self.client.get(f"/{media_type}/{list_name}", params={"page": page}, cancel=cancel)
