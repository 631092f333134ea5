from __future__ import annotations

from .fusion import rrf_fuse
from .intent import classify_search_intent, get_intent_weights
from .models import (
    BackfillReport,
    IntentClassification,
    IntentWeights,
    Memory,
    SearchIntent,
    SearchResponse,
)
from .scoring import cosine_similarity, jaccard_similarity

__all__ = [
    "BackfillReport",
    "IntentClassification",
    "IntentWeights",
    "Memory",
    "SearchIntent",
    "SearchResponse",
    "classify_search_intent",
    "cosine_similarity",
    "get_intent_weights",
    "jaccard_similarity",
    "rrf_fuse",
]
