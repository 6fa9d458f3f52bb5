"""Distance metrics between embedding vectors."""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import TypeAlias

import numpy as np

from idiomindex.index.embedding import EmbeddingVector

EmbeddingDistance: TypeAlias = Callable[[EmbeddingVector, EmbeddingVector], float]
"""A metric where lower values mean more similar vectors."""


def cosine_distance(a: EmbeddingVector, b: EmbeddingVector) -> float:
    """Return ``1 - cos(a, b)``.

    Vectors of different length, or a zero vector, yield ``inf`` so that the
    candidate never wins a ranking instead of aborting it.
    """
    if len(a) != len(b):
        return math.inf

    a64 = np.asarray(a, dtype=np.float64)
    b64 = np.asarray(b, dtype=np.float64)
    denominator = math.sqrt(float(np.dot(a64, a64))) * math.sqrt(float(np.dot(b64, b64)))
    if denominator == 0.0:
        return math.inf
    return 1.0 - float(np.dot(a64, b64)) / denominator
