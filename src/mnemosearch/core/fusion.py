from __future__ import annotations

from collections.abc import Iterable, Sequence

DEFAULT_RRF_K = 60


def rrf_scores(lists: Iterable[Sequence[str]], k: int = DEFAULT_RRF_K) -> dict[str, float]:
    """Reciprocal Rank Fusion scores.

    Each ID earns ``1 / (k + rank)`` from every list it appears in, with
    ``rank`` starting at 1. The returned dict preserves the order in which
    IDs were first seen. A repeated ID within one list only counts once, at
    its best position.
    """
    scores: dict[str, float] = {}
    for ranked in lists:
        seen: set[str] = set()
        for rank, memory_id in enumerate(ranked, start=1):
            if memory_id in seen:
                continue
            seen.add(memory_id)
            scores[memory_id] = scores.get(memory_id, 0.0) + 1.0 / (k + rank)
    return scores


def rrf_fuse(
    lists: Iterable[Sequence[str]],
    limit: int,
    k: int = DEFAULT_RRF_K,
) -> list[str]:
    """Merge ranked ID lists into one ranking, best first.

    Ties keep the order of first appearance (earlier list, then earlier
    position), so the result never depends on the sort implementation.
    """
    if limit <= 0:
        return []
    scores = rrf_scores(lists, k)
    # sorted() is stable and dict order is first appearance.
    ranked = sorted(scores, key=lambda memory_id: scores[memory_id], reverse=True)
    return ranked[:limit]
