from __future__ import annotations

from .codec import QuantizedEmbedding, dequantize, deserialize, quantize, serialize
from .provider import EmbeddingProvider

__all__ = [
    "EmbeddingProvider",
    "QuantizedEmbedding",
    "dequantize",
    "deserialize",
    "quantize",
    "serialize",
]
