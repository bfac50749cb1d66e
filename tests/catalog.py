"""In-memory TMDB stand-in served through ``httpx.MockTransport``."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import Any

import httpx

from reelmatch.core.base_client import RetryPolicy
from reelmatch.core.rate_limiter import RateLimiter
from reelmatch.services.tmdb.client import TMDBClient
from reelmatch.services.tmdb.service import TMDBService

BASE_URL = "https://tmdb.test"

Route = tuple[int, Any]


class FakeCatalog:
    """Routes request paths to canned JSON payloads and records every request."""

    def __init__(self) -> None:
        self.routes: dict[str, Route] = {}
        self.requests: list[httpx.Request] = []
        self.delays: dict[str, float] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    def add(self, path: str, payload: Any = None, status: int = 200) -> None:
        self.routes[path] = (status, payload)

    def listing(self, path: str, results: list[dict[str, Any]]) -> None:
        self.add(path, {"page": 1, "results": results})

    def respond(self, path: str, responder: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[path] = (200, responder)

    def calls(self, path: str) -> int:
        return sum(1 for request in self.requests if request.url.path == path)

    def requested_paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def delay(self, path: str, seconds: float) -> None:
        self.delays[path] = seconds

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if request.url.path in self.delays:
                await asyncio.sleep(self.delays[request.url.path])
            return self._route(request)
        finally:
            self.in_flight -= 1

    def _route(self, request: httpx.Request) -> httpx.Response:
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"status_message": "The resource you requested could not be found."})
        status, payload = route
        if callable(payload):
            return payload(request)
        return httpx.Response(status, json=payload if payload is not None else {})


async def no_sleep(_delay: float) -> None:
    return None


def build_tmdb(catalog: FakeCatalog, max_retries: int = 3, api_key: str | None = "test-key") -> TMDBService:
    client = TMDBClient(
        api_key=api_key,
        base_url=BASE_URL,
        retry_policy=RetryPolicy(max_retries=max_retries, base_delay=0.0, jitter=(1.0, 1.0)),
        rate_limiter=RateLimiter(max_requests=1000),
        transport=httpx.MockTransport(catalog.handler),
        sleep=no_sleep,
    )
    return TMDBService(client)


def listing_item(
    item_id: int,
    title: str,
    genre_ids: Iterable[int] = (28,),
    vote_average: float = 7.0,
    popularity: float = 50.0,
    language: str = "en",
    release_date: str = "2010-05-01",
) -> dict[str, Any]:
    return {
        "id": item_id,
        "title": title,
        "genre_ids": list(genre_ids),
        "vote_average": vote_average,
        "vote_count": 500,
        "popularity": popularity,
        "original_language": language,
        "release_date": release_date,
        "adult": False,
    }


def details(
    item_id: int,
    title: str,
    genres: Iterable[tuple[int, str]] = ((28, "Action"),),
    cast_ids: Iterable[int] = (),
    director: int | None = None,
    language: str = "en",
    countries: Iterable[str] = ("US",),
    release_date: str = "2010-05-01",
    vote_average: float = 7.0,
    popularity: float = 50.0,
    runtime: int = 120,
    collection: tuple[int, str] | None = None,
) -> dict[str, Any]:
    crew = [{"id": director, "name": f"Director {director}", "job": "Director"}] if director else []
    return {
        "id": item_id,
        "title": title,
        "genres": [{"id": gid, "name": name} for gid, name in genres],
        "credits": {
            "cast": [{"id": cid, "name": f"Actor {cid}", "order": i} for i, cid in enumerate(cast_ids)],
            "crew": crew,
        },
        "original_language": language,
        "production_countries": [{"iso_3166_1": code, "name": code} for code in countries],
        "production_companies": [],
        "belongs_to_collection": {"id": collection[0], "name": collection[1]} if collection else None,
        "release_date": release_date,
        "vote_average": vote_average,
        "vote_count": 500,
        "popularity": popularity,
        "runtime": runtime,
        "budget": 0,
        "adult": False,
    }
