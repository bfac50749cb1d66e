import asyncio
import random

import httpx
from loguru import logger

from reelmatch.core.cancellation import CancellationToken
from reelmatch.core.errors import RequestCancelled, UpstreamError
from reelmatch.models.content import CandidateItem
from reelmatch.services.recommendation.metadata import CandidateMetadata
from reelmatch.services.tmdb.service import TMDBService


class DetailEnricher:
    """
    Replaces shallow listing records with full detail records.

    A fixed number of workers pull indexes from one shared queue, so detail calls
    start in input order but may finish in any order. Each worker pauses for a
    short jittered interval between calls. Only the first ``detail_limit`` items
    are looked up; the rest, and any item whose lookup fails, keep their shallow
    record.
    """

    def __init__(
        self,
        tmdb: TMDBService,
        workers: int = 3,
        detail_limit: int = 12,
        spacing: tuple[float, float] = (0.06, 0.1),
        rng: random.Random | None = None,
    ):
        self.tmdb = tmdb
        self.workers = max(1, workers)
        self.detail_limit = detail_limit
        self.spacing = spacing
        self._rng = rng or random.Random()

    async def enrich(self, candidates: list[CandidateItem], cancel: CancellationToken) -> list[CandidateItem]:
        results = list(candidates)
        queue: asyncio.Queue[int] = asyncio.Queue()
        for index in range(min(self.detail_limit, len(candidates))):
            queue.put_nowait(index)

        async def worker():
            while not cancel.cancelled:
                try:
                    index = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                item = candidates[index]
                try:
                    raw = await self.tmdb.get_details(item.media_type, item.id, cancel=cancel)
                    results[index] = CandidateMetadata.from_details(raw, item.media_type, source=item.source)
                except RequestCancelled:
                    return
                except (UpstreamError, httpx.HTTPError, KeyError, TypeError, ValueError) as e:
                    logger.debug(f"Keeping shallow record for {item.media_type}/{item.id}: {e}")

                if not queue.empty():
                    try:
                        await cancel.sleep(self._rng.uniform(*self.spacing))
                    except RequestCancelled:
                        return

        await asyncio.gather(*(worker() for _ in range(min(self.workers, queue.qsize()) or 1)))
        return results
