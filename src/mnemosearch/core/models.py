# core/models.py
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class SearchIntent(str, Enum):
    """Coarse shape of a search query, used to bias ranking weights."""

    ENTITY = "entity"
    ASPECT = "aspect"
    TEMPORAL = "temporal"
    EXPLORATORY = "exploratory"
    RELATIONSHIP = "relationship"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def coerce_datetime(value: datetime | str | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        dt = value
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class Memory(BaseModel):
    """A project-scoped memory record as seen by the retrieval core.

    The primary record store owns the lifecycle of a memory. The retrieval
    core reads ``key``, ``content`` and ``tags`` to build its indexes and only
    ever writes ``embedding``.

    Attributes:
        memory_id (str): Opaque stable identifier
        project_id (str): Scope of the memory
        key (str): Human-chosen path-like label, e.g. ``agent/context/testing``
        content (str): Free text
        tags (List[str]): Ordered short labels
        embedding (Optional[str]): Serialized quantized embedding, see
            :mod:`mnemosearch.embeddings.codec`
        archived_at (Optional[datetime]): Archived memories are never returned
            by search
    """

    memory_id: str = Field(default_factory=lambda: uuid4().hex)
    project_id: str
    key: str
    content: str
    tags: list[str] = Field(default_factory=list)
    embedding: str | None = None
    archived_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("key", "project_id")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("archived_at", "created_at", "updated_at", mode="before")
    @classmethod
    def parse_timestamps(cls, v):
        return coerce_datetime(v)

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    def embedding_text(self) -> str:
        """Text handed to the embedding model for this memory."""
        return f"{self.key} {self.content} {' '.join(self.tags)}"

    def indexed_fields_differ(self, other: "Memory") -> bool:
        return (self.key, self.content, self.tags) != (other.key, other.content, other.tags)


class IntentClassification(BaseModel):
    intent: SearchIntent
    confidence: float = Field(ge=0.0, le=1.0)
    extracted_terms: list[str] = Field(default_factory=list)
    suggested_types: list[str] = Field(default_factory=list)


class IntentWeights(BaseModel):
    """Per-intent multipliers the caller applies during secondary ranking."""

    model_config = {"frozen": True}

    fts_boost: float
    vector_boost: float
    recency_boost: float
    priority_boost: float
    graph_boost: float


class SearchResponse(BaseModel):
    memory_ids: list[str] = Field(default_factory=list)
    classification: IntentClassification
    weights: IntentWeights
    lexical_available: bool = False
    semantic_available: bool = False


class BackfillReport(BaseModel):
    total: int = 0
    embedded: int = 0
    failed: int = 0
    duration_ms: float = 0.0

    @property
    def remaining(self) -> int:
        return self.total - self.embedded
