"""
Compact storage format for embeddings.

Vectors are stored as JSON of their int8 quantization::

    {"values": [-128..127, ...], "min": <float>, "max": <float>}

Records written before quantization existed hold a plain JSON array of
floats. The two are told apart by shape alone; there is no version field.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Sequence
from typing import Any

import numpy as np
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import SerializationError

logger = logging.getLogger(__name__)

_LEVELS = 255
_OFFSET = 128


class QuantizedEmbedding(BaseModel):
    values: list[int] = Field(default_factory=list)
    min: float
    max: float

    @field_validator("values")
    @classmethod
    def values_must_fit_int8(cls, v: list[int]) -> list[int]:
        for value in v:
            if not -_OFFSET <= value <= _LEVELS - _OFFSET:
                raise ValueError(f"quantized value out of int8 range: {value}")
        return v

    @field_validator("min", "max")
    @classmethod
    def bounds_must_be_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("quantization bounds must be finite")
        return v

    @property
    def range(self) -> float:
        return (self.max - self.min) or 1.0


def quantize(vector: Sequence[float] | np.ndarray) -> QuantizedEmbedding:
    arr = np.asarray(vector, dtype=np.float64)
    if arr.size == 0:
        return QuantizedEmbedding(values=[], min=0.0, max=0.0)
    if not np.all(np.isfinite(arr)):
        raise SerializationError("Cannot quantize a vector with NaN or infinite entries")
    lo = float(arr.min())
    hi = float(arr.max())
    span = (hi - lo) or 1.0
    # np.round is half-to-even; floor(x + 0.5) keeps half-up rounding.
    scaled = np.floor((arr - lo) / span * _LEVELS + 0.5) - _OFFSET
    return QuantizedEmbedding(values=scaled.astype(np.int64).tolist(), min=lo, max=hi)


def dequantize(quantized: QuantizedEmbedding) -> np.ndarray:
    values = np.asarray(quantized.values, dtype=np.float64)
    restored = (values + _OFFSET) / _LEVELS * quantized.range + quantized.min
    return restored.astype(np.float32)


def serialize(vector: Sequence[float] | np.ndarray) -> str:
    return quantize(vector).model_dump_json()


def deserialize(blob: str | bytes) -> np.ndarray:
    """Decode a stored embedding, quantized or legacy.

    Raises:
        SerializationError: if the blob is not valid JSON or has neither shape.
    """
    try:
        parsed: Any = json.loads(blob)
    except (json.JSONDecodeError, TypeError, ValueError) as exc:
        raise SerializationError(f"Embedding is not valid JSON: {exc}") from exc

    if _looks_quantized(parsed):
        try:
            return dequantize(QuantizedEmbedding.model_validate(parsed))
        except ValidationError as exc:
            raise SerializationError(f"Malformed quantized embedding: {exc}") from exc

    if isinstance(parsed, list):
        try:
            legacy = np.asarray(parsed, dtype=np.float32)
        except (TypeError, ValueError) as exc:
            raise SerializationError("Legacy embedding holds non-numeric entries") from exc
        if legacy.ndim != 1:
            raise SerializationError("Legacy embedding must be a flat array")
        if not np.all(np.isfinite(legacy)):
            raise SerializationError("Legacy embedding holds non-finite entries")
        return legacy

    raise SerializationError(f"Unrecognized embedding shape: {type(parsed).__name__}")


def _looks_quantized(parsed: Any) -> bool:
    if not isinstance(parsed, dict):
        return False
    minimum = parsed.get("min")
    return (
        isinstance(parsed.get("values"), list)
        and isinstance(minimum, (int, float))
        and not isinstance(minimum, bool)
    )


def vector_from_blob(
    blob: str | None,
    dimension: int | None = None,
    *,
    memory_id: str | None = None,
) -> np.ndarray | None:
    """Decode one stored embedding, isolating failures to that record.

    Returns None when the blob is absent, malformed, or of the wrong length.
    """
    if not blob:
        return None
    try:
        vector = deserialize(blob)
    except SerializationError:
        logger.warning("Skipping malformed embedding for memory %s", memory_id, exc_info=True)
        return None
    if dimension is not None and vector.shape[0] != dimension:
        logger.warning(
            "Skipping embedding for memory %s: dimension %d != %d",
            memory_id,
            vector.shape[0],
            dimension,
        )
        return None
    return vector
