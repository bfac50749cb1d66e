from collections.abc import Callable, Iterable
from typing import Literal

from rapidfuzz.distance import Levenshtein

from reelmatch.models.content import CandidateItem

DedupStrategy = Literal["id", "title", "strict", "smart"]

DEFAULT_TITLE_THRESHOLD = 0.9


def title_similarity(a: str, b: str) -> float:
    """Normalised Levenshtein ratio: 1 - distance / longer length."""
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


class Deduplicator:
    """
    Collapses candidates that describe the same content.

    On a collision the item with the higher ``similarity_score`` survives (the
    earlier one wins ties, or always when ``keep_best_score`` is off). Passes are
    repeated until nothing merges, so deduplicating an already deduplicated list
    returns it unchanged.
    """

    def __init__(self, title_threshold: float = DEFAULT_TITLE_THRESHOLD):
        self.title_threshold = title_threshold

    def dedupe(
        self,
        items: Iterable[CandidateItem],
        strategy: DedupStrategy = "smart",
        keep_best_score: bool = True,
    ) -> list[CandidateItem]:
        collides = self._matcher(strategy)
        current = list(items)
        while True:
            merged = self._single_pass(current, collides, keep_best_score)
            if len(merged) == len(current):
                return merged
            current = merged

    def _matcher(self, strategy: DedupStrategy) -> Callable[[CandidateItem, CandidateItem], bool]:
        if strategy == "id":
            return _same_id
        if strategy == "title":
            return _same_title
        if strategy == "strict":
            return lambda a, b: _same_id(a, b) or _same_title(a, b)
        if strategy == "smart":
            return self._fuzzy_match
        raise ValueError(f"Unknown dedup strategy: {strategy}")

    def _fuzzy_match(self, a: CandidateItem, b: CandidateItem) -> bool:
        if _same_id(a, b) or _same_title(a, b):
            return True
        title_a, title_b = a.normalized_title, b.normalized_title
        if not title_a or not title_b:
            return False
        return title_similarity(title_a, title_b) >= self.title_threshold

    @staticmethod
    def _single_pass(
        items: list[CandidateItem],
        collides: Callable[[CandidateItem, CandidateItem], bool],
        keep_best_score: bool,
    ) -> list[CandidateItem]:
        survivors: list[CandidateItem] = []
        for item in items:
            for i, kept in enumerate(survivors):
                if collides(kept, item):
                    if keep_best_score and item.score > kept.score:
                        survivors[i] = item
                    break
            else:
                survivors.append(item)
        return survivors


def _same_id(a: CandidateItem, b: CandidateItem) -> bool:
    return a.id == b.id and a.media_type == b.media_type


def _same_title(a: CandidateItem, b: CandidateItem) -> bool:
    return bool(a.normalized_title) and a.normalized_title == b.normalized_title
