from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from reelmatch.models.content import CandidateItem
from reelmatch.models.cultural import CulturalContext


@runtime_checkable
class CulturalContextProvider(Protocol):
    """Source of per-user cultural preferences (normally the user-profile service)."""

    async def get_context(self, user_id: str) -> CulturalContext | None: ...


class InMemoryCulturalContextProvider:
    """Keeps contexts in a dict. Useful for single-process deployments and tests."""

    def __init__(self, contexts: dict[str, CulturalContext] | None = None):
        self._contexts: dict[str, CulturalContext] = dict(contexts or {})

    def set_context(self, user_id: str, context: CulturalContext) -> None:
        self._contexts[user_id] = context

    def record_history(self, user_id: str, rated_items: Iterable[tuple[CandidateItem, float]]) -> CulturalContext:
        context = CulturalContext.from_history(rated_items)
        self._contexts[user_id] = context
        return context

    def forget(self, user_id: str) -> None:
        self._contexts.pop(user_id, None)

    async def get_context(self, user_id: str) -> CulturalContext | None:
        return self._contexts.get(user_id)
