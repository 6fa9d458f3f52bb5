"""Embedding types and the binary vector codec.

Vectors are carried in memory as one-dimensional ``float32`` numpy arrays and
serialized as contiguous 4-byte little-endian floats. The mapping codecs sort
their keys so that persisted files diff cleanly between runs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TypeAlias

import numpy as np

EmbeddingModel: TypeAlias = str
"""The identifying name of an embedding model."""

EmbeddingVector: TypeAlias = np.ndarray
"""A one-dimensional ``float32`` vector produced by an embedding model."""

Embedding: TypeAlias = dict[EmbeddingModel, EmbeddingVector]
"""Vectors for one text fragment, keyed by the model that produced them."""

Embeddings: TypeAlias = dict[str, Embedding]
"""Embeddings for many text fragments, keyed by the fragment text."""

_WIRE_DTYPE = np.dtype("<f4")


def as_embedding_vector(values: EmbeddingVector | Sequence[float]) -> EmbeddingVector:
    """Coerce ``values`` into a one-dimensional ``float32`` vector."""
    vector = np.asarray(values, dtype=np.float32)
    if vector.ndim != 1:
        raise ValueError(f"Embedding vectors must be one-dimensional; received shape {vector.shape}")
    return vector


def encode_embedding_vector(vector: EmbeddingVector | Sequence[float]) -> bytes:
    """Encode ``vector`` as packed 4-byte little-endian floats."""
    return as_embedding_vector(vector).astype(_WIRE_DTYPE, copy=False).tobytes()


def decode_embedding_vector(data: bytes) -> EmbeddingVector:
    """Decode packed little-endian floats into a native ``float32`` vector."""
    if len(data) % _WIRE_DTYPE.itemsize != 0:
        raise ValueError(
            f"Encoded embedding vector length must be a multiple of {_WIRE_DTYPE.itemsize}; "
            f"received {len(data)} bytes"
        )
    # frombuffer returns a read-only view; copy so the vector owns its memory.
    return np.frombuffer(data, dtype=_WIRE_DTYPE).astype(np.float32)


def encode_embedding(embedding: Mapping[EmbeddingModel, EmbeddingVector]) -> dict[str, bytes]:
    """Encode every vector of ``embedding``, sorted by model name."""
    return {
        model: encode_embedding_vector(embedding[model])
        for model in sorted(embedding)
    }


def decode_embedding(embedding: Mapping[EmbeddingModel, bytes]) -> Embedding:
    """Decode an encoded ``embedding``; accepts any key order."""
    return {
        str(model): decode_embedding_vector(vector)
        for model, vector in embedding.items()
    }


def encode_embeddings(embeddings: Mapping[str, Mapping[EmbeddingModel, EmbeddingVector]]) -> dict[str, dict[str, bytes]]:
    """Encode every embedding of ``embeddings``, sorted by text."""
    return {
        text: encode_embedding(embeddings[text])
        for text in sorted(embeddings)
    }


def decode_embeddings(embeddings: Mapping[str, Mapping[EmbeddingModel, bytes] | None]) -> Embeddings:
    """Decode encoded ``embeddings``; a text with no vectors decodes to ``{}``."""
    return {
        str(text): decode_embedding(embedding or {})
        for text, embedding in embeddings.items()
    }


def check_encoded_embeddings(embeddings: object, where: str) -> Mapping[str, Mapping[EmbeddingModel, bytes] | None]:
    """Validate the shape of encoded ``embeddings`` loaded from a file.

    Raises:
        ValueError: If the structure is not ``text -> model -> bytes``.
    """
    if embeddings is None:
        return {}
    if not isinstance(embeddings, Mapping):
        raise ValueError(f"Invalid embeddings for {where}: expected a mapping")
    for text, embedding in embeddings.items():
        if embedding is None:
            continue
        if not isinstance(embedding, Mapping):
            raise ValueError(f"Invalid embedding for {where}, phrase {text!r}: expected a mapping")
        for model, vector in embedding.items():
            if not isinstance(vector, bytes):
                raise ValueError(
                    f"Invalid vector for {where}, phrase {text!r}, model {model!r}: "
                    "expected !!binary data"
                )
    return embeddings
