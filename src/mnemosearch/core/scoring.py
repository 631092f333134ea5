from __future__ import annotations

import re
from collections.abc import Sequence

import numpy as np

_WORD_STRIP_RE = re.compile(r"[^a-z0-9\s]")


def cosine_similarity(
    vec1: Sequence[float] | np.ndarray | None,
    vec2: Sequence[float] | np.ndarray | None,
) -> float:
    """Calculate cosine similarity between two vectors.

    Returns 0.0 when either vector is missing or all-zero, or when the lengths
    differ. Never raises for numeric input.
    """
    if vec1 is None or vec2 is None:
        return 0.0
    a = np.asarray(vec1, dtype=np.float64).reshape(-1)
    b = np.asarray(vec2, dtype=np.float64).reshape(-1)
    if a.shape != b.shape or a.size == 0:
        return 0.0

    norm1 = float(np.linalg.norm(a))
    norm2 = float(np.linalg.norm(b))
    if norm1 == 0 or norm2 == 0:
        return 0.0

    similarity = float(np.dot(a, b)) / (norm1 * norm2)
    if not np.isfinite(similarity):
        return 0.0
    return similarity


def extract_words(text: str) -> set[str]:
    """Lowercased words longer than two characters, punctuation dropped."""
    stripped = _WORD_STRIP_RE.sub(" ", text.lower())
    return {word for word in stripped.split() if len(word) > 2}


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    if not a and not b:
        return 1.0
    intersection = len(a & b)
    union = len(a) + len(b) - intersection
    return intersection / union if union else 0.0
