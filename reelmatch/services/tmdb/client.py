from typing import Any

from reelmatch.core.base_client import BaseClient, RetryPolicy
from reelmatch.core.coalescer import RequestCoalescer
from reelmatch.core.rate_limiter import RateLimiter
from reelmatch.core.version import __version__


class TMDBClient(BaseClient):
    """
    Client for interacting with the TMDB API.
    """

    def __init__(
        self,
        api_key: str | None,
        language: str = "en-US",
        base_url: str = "https://api.themoviedb.org/3",
        timeout: float = 10.0,
        retry_policy: RetryPolicy | None = None,
        rate_limiter: RateLimiter | None = None,
        coalescer: RequestCoalescer | None = None,
        **kwargs: Any,
    ):
        headers = {
            "User-Agent": f"Reelmatch/{__version__}",
            "Accept": "application/json",
        }
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            retry_policy=retry_policy,
            headers=headers,
            rate_limiter=rate_limiter,
            coalescer=coalescer,
            **kwargs,
        )
        self.api_key = api_key
        self.language = language

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        """Override request to always include API key and language."""
        params = dict(kwargs.get("params") or {})
        if self.api_key:
            params["api_key"] = self.api_key
        params.setdefault("language", self.language)
        kwargs["params"] = params
        return await super()._request(method, url, **kwargs)
