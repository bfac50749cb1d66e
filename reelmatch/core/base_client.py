import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import httpx
from loguru import logger

from reelmatch.core.cancellation import CancellationToken
from reelmatch.core.coalescer import RequestCoalescer
from reelmatch.core.errors import RequestCancelled, UpstreamError, classify_error
from reelmatch.core.rate_limiter import RateLimiter


@dataclass
class RetryPolicy:
    """Exponential backoff with multiplicative jitter."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: tuple[float, float] = (0.7, 1.3)
    rng: random.Random = field(default_factory=random.Random)

    def backoff(self, attempt: int) -> float:
        """Delay before the attempt that follows ``attempt`` (1-based)."""
        delay = min(self.max_delay, self.base_delay * (self.multiplier ** (attempt - 1)))
        low, high = self.jitter
        return delay * self.rng.uniform(low, high)


class BaseClient:
    """
    Base asynchronous HTTP client with built-in retry logic and logging.

    Every attempt passes through the shared rate limiter and the request
    coalescer (keyed by full URL plus attempt number), is bounded by a per-call
    timeout, and is aborted when the caller's cancellation token fires.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 10.0,
        retry_policy: RetryPolicy | None = None,
        headers: dict[str, str] | None = None,
        rate_limiter: RateLimiter | None = None,
        coalescer: RequestCoalescer | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.headers = headers or {}
        self.rate_limiter = rate_limiter or RateLimiter()
        self.coalescer = coalescer or RequestCoalescer()
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    @property
    def max_retries(self) -> int:
        return self.retry_policy.max_retries

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx.AsyncClient instance."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def request_key(self, method: str, url: str, params: dict[str, Any] | None, attempt: int) -> str:
        query = urlencode(sorted((params or {}).items()))
        return f"{method} {self.base_url}{url}?{query}#{attempt}"

    async def _send(self, method: str, url: str, **kwargs) -> Any:
        # Shared by every waiter on the key; the coalescer cancels it once none remain.
        await self.rate_limiter.acquire()
        client = await self.get_client()
        response = await asyncio.wait_for(client.request(method, url, **kwargs), timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    async def _request(
        self,
        method: str,
        url: str,
        cancel: CancellationToken | None = None,
        max_tries: int | None = None,
        **kwargs,
    ) -> Any:
        """Internal request handler with retry logic. Raises the classified final error."""
        cancel = cancel or CancellationToken()
        tries = max_tries or self.max_retries
        last_exception: BaseException | None = None

        for attempt in range(1, tries + 1):
            cancel.raise_if_cancelled()
            key = self.request_key(method, url, kwargs.get("params"), attempt)
            try:
                return await cancel.guard(self.coalescer.dedupe(key, lambda: self._send(method, url, **kwargs)))
            except RequestCancelled:
                raise
            except (httpx.HTTPError, TimeoutError, UpstreamError) as e:
                error = classify_error(e)
                last_exception = error
                if not getattr(error, "retryable", False):
                    if error is e:
                        raise
                    raise error from e
                if attempt < tries:
                    wait_time = self.retry_policy.backoff(attempt)
                    logger.warning(
                        f"Request failed ({method} {url}): {error}. "
                        f"Retrying in {wait_time:.2f}s... (Attempt {attempt}/{tries})"
                    )
                    await cancel.guard(self._sleep(wait_time))
                else:
                    logger.error(f"Request failed after {tries} attempts ({method} {url}): {error}")

        if last_exception:
            raise last_exception
        raise httpx.RequestError("Request failed for unknown reasons")

    async def get(
        self, url: str, params: dict[str, Any] | None = None, cancel: CancellationToken | None = None, **kwargs
    ) -> Any:
        """Perform a GET request and return the JSON response."""
        return await self._request("GET", url, cancel=cancel, params=params, **kwargs)
