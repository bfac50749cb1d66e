"""
Error taxonomy for upstream catalog calls.

Only ``InvalidContentRequest`` ever reaches a caller of the public facade; the
rest are absorbed into empty results at the adapter boundary.
"""

import asyncio

import httpx


class UpstreamError(Exception):
    """Base class for failures talking to the catalog API."""

    retryable: bool = False

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientUpstreamError(UpstreamError):
    """Network failures, timeouts and 5xx responses."""

    retryable = True


class NotFoundError(UpstreamError):
    """404: the source has no data for this item."""


class RateLimitedError(UpstreamError):
    """429: skipped by this source rather than retried, to avoid amplifying load."""


class ClientRequestError(UpstreamError):
    """Any other 4xx response."""


class RequestCancelled(Exception):
    """The request's cancellation token fired. Not an error condition."""


class InvalidContentRequest(ValueError):
    """Missing or malformed content id / type passed to the public facade."""


def classify_error(exc: BaseException) -> BaseException:
    """Map a raw exception onto the upstream error taxonomy.

    Already-classified errors and cancellations are returned untouched.
    Anything unknown is returned as-is and therefore never retried.
    """
    if isinstance(exc, (UpstreamError, RequestCancelled)):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        message = f"HTTP {status}: {exc.response.reason_phrase}"
        if status == 404:
            return NotFoundError(message, status)
        if status == 429:
            return RateLimitedError(message, status)
        if status >= 500:
            return TransientUpstreamError(message, status)
        return ClientRequestError(message, status)
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return TransientUpstreamError(f"Timed out: {exc.__class__.__name__}")
    if isinstance(exc, httpx.TransportError):
        return TransientUpstreamError(f"Network error: {exc.__class__.__name__}: {exc}")
    return exc
