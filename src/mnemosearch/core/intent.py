"""
Rule-based search intent classification.

Rules are evaluated in priority order and the first match wins:

1. entity       path-like, identifier-like, file-like or short keyword queries
2. temporal     recency / change language
3. relationship connective language
4. aspect       conventions, practices, or a known category label
5. exploratory  everything else

Each intent maps to a fixed weight profile that callers use to re-weight
the fused ranking.
"""

from __future__ import annotations

import re

from .models import IntentClassification, IntentWeights, SearchIntent

SEARCH_INTENTS: tuple[SearchIntent, ...] = tuple(SearchIntent)

INTENT_WEIGHTS: dict[SearchIntent, IntentWeights] = {
    SearchIntent.ENTITY: IntentWeights(
        fts_boost=2.0,
        vector_boost=0.5,
        recency_boost=0.3,
        priority_boost=1.0,
        graph_boost=0.0,
    ),
    SearchIntent.TEMPORAL: IntentWeights(
        fts_boost=0.7,
        vector_boost=0.5,
        recency_boost=3.0,
        priority_boost=0.5,
        graph_boost=0.0,
    ),
    SearchIntent.RELATIONSHIP: IntentWeights(
        fts_boost=0.5,
        vector_boost=1.5,
        recency_boost=1.0,
        priority_boost=1.0,
        graph_boost=2.0,
    ),
    SearchIntent.ASPECT: IntentWeights(
        fts_boost=1.0,
        vector_boost=1.5,
        recency_boost=0.5,
        priority_boost=1.5,
        graph_boost=0.0,
    ),
    SearchIntent.EXPLORATORY: IntentWeights(
        fts_boost=1.0,
        vector_boost=1.2,
        recency_boost=1.0,
        priority_boost=1.0,
        graph_boost=0.0,
    ),
}

TEMPORAL_PATTERN = re.compile(
    r"\b(recent(ly)?|latest|last\s+week|changed|new(ly)?|updated|since|yesterday|today)\b",
    re.IGNORECASE,
)
RELATIONSHIP_PATTERN = re.compile(
    r"\b(related\s+to|depends\s+on|connected|linked|references|impacts|affects)\b",
    re.IGNORECASE,
)
ASPECT_PATTERN = re.compile(
    r"\b(conventions?|rules?|patterns?|how\s+to|best\s+practice|style|strategy)\b",
    re.IGNORECASE,
)

# Memory category labels an agent commonly files knowledge under.
ASPECT_TYPE_NAMES: tuple[str, ...] = (
    "testing",
    "architecture",
    "coding_style",
    "constraints",
    "lessons_learned",
    "file_map",
    "folder_structure",
    "workflows",
    "dependencies",
    "deployment",
    "security",
)

FILE_EXT_PATTERN = re.compile(r"\.\w{1,6}$")
IDENTIFIER_PATTERN = re.compile(r"^[A-Z][a-zA-Z0-9]+$|^[a-z]+(_[a-z]+)+$")
QUESTION_PATTERN = re.compile(r"^(what|how|why|where|when|which|who|show|tell)\b", re.IGNORECASE)
_TERM_STRIP_RE = re.compile(r"[^a-zA-Z0-9/_.-]")

_SHORT_QUERY_WORDS = 3


def extract_terms(query: str) -> list[str]:
    return [term for term in _TERM_STRIP_RE.sub(" ", query).split() if len(term) > 1]


def suggest_types(query: str) -> list[str]:
    lowered = query.lower()
    return [
        name
        for name in ASPECT_TYPE_NAMES
        if name in lowered or name.replace("_", " ") in lowered
    ]


def classify_search_intent(query: str) -> IntentClassification:
    trimmed = query.strip()
    terms = extract_terms(trimmed)
    words = trimmed.split()
    suggested = suggest_types(trimmed)

    def result(intent: SearchIntent, confidence: float) -> IntentClassification:
        return IntentClassification(
            intent=intent,
            confidence=confidence,
            extracted_terms=terms,
            suggested_types=suggested,
        )

    if "/" in trimmed:
        return result(SearchIntent.ENTITY, 0.9)
    if len(words) == 1 and IDENTIFIER_PATTERN.match(words[0]):
        return result(SearchIntent.ENTITY, 0.85)
    if FILE_EXT_PATTERN.search(trimmed):
        return result(SearchIntent.ENTITY, 0.8)

    temporal = bool(TEMPORAL_PATTERN.search(trimmed))
    relationship = bool(RELATIONSHIP_PATTERN.search(trimmed))
    aspect = bool(ASPECT_PATTERN.search(trimmed))

    if (
        trimmed
        and len(words) <= _SHORT_QUERY_WORDS
        and not QUESTION_PATTERN.match(trimmed)
        and not (temporal or relationship or aspect)
    ):
        return result(SearchIntent.ENTITY, 0.6)
    if temporal:
        return result(SearchIntent.TEMPORAL, 0.85)
    if relationship:
        return result(SearchIntent.RELATIONSHIP, 0.8)
    if aspect or suggested:
        return result(SearchIntent.ASPECT, 0.75)
    return result(SearchIntent.EXPLORATORY, 0.5)


def get_intent_weights(intent: SearchIntent | str) -> IntentWeights:
    return INTENT_WEIGHTS[SearchIntent(intent)]
