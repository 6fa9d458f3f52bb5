"""Decayed aggregation of recent query vectors for one conversation."""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence

import numpy as np

from idiomindex.errors import QueryError
from idiomindex.index.embedding import EmbeddingVector, as_embedding_vector

DEFAULT_QUERY_HYSTERESIS = 5
DEFAULT_QUERY_DECAY = 0.8


class QueryHistory:
    """Bounded window of the most recent distinct query vectors.

    The window holds at most ``hysteresis`` vectors, oldest first. Consecutive
    duplicates are collapsed so that re-asking the same question does not
    drown out earlier turns.
    """

    def __init__(
        self,
        hysteresis: int = DEFAULT_QUERY_HYSTERESIS,
        decay: float = DEFAULT_QUERY_DECAY,
    ) -> None:
        if hysteresis < 1:
            raise ValueError("Query hysteresis must be at least 1")
        self._hysteresis = int(hysteresis)
        self._decay = float(decay)
        self._vectors: deque[EmbeddingVector] = deque(maxlen=self._hysteresis)

    @property
    def hysteresis(self) -> int:
        return self._hysteresis

    @property
    def decay(self) -> float:
        return self._decay

    @property
    def vectors(self) -> tuple[EmbeddingVector, ...]:
        return tuple(self._vectors)

    def __len__(self) -> int:
        return len(self._vectors)

    def add(self, vector: EmbeddingVector | Sequence[float]) -> None:
        """Append ``vector`` unless it equals the most recently added one."""
        query_vector = as_embedding_vector(vector)
        if self._vectors:
            last_vector = self._vectors[-1]
            if query_vector is last_vector:
                return
            if len(query_vector) != len(last_vector):
                raise QueryError("Dimension mismatch")
            if np.array_equal(query_vector, last_vector):
                return
        # deque(maxlen=...) evicts from the front.
        self._vectors.append(query_vector)

    def average(self) -> EmbeddingVector:
        """Collapse the window into one unit-length representative vector.

        The i-th of N vectors (oldest first) is weighted by
        ``decay ** (N - 1 - i)``; the weighted mean is L2-normalised unless
        its norm is zero. A single stored vector is returned unchanged.
        """
        vector_count = len(self._vectors)
        if vector_count == 0:
            raise QueryError("No query vectors")
        if vector_count == 1:
            return self._vectors[0]

        vector_dim = len(self._vectors[0])
        weighted_sum = np.zeros(vector_dim, dtype=np.float64)
        sum_of_weights = 0.0
        for i, vector in enumerate(self._vectors):
            if len(vector) != vector_dim:
                raise QueryError("Dimension mismatch")
            weight = self._decay ** (vector_count - i - 1)
            weighted_sum += np.asarray(vector, dtype=np.float64) * weight
            sum_of_weights += weight

        query_vector = weighted_sum / sum_of_weights
        norm = float(np.linalg.norm(query_vector))
        if norm != 0.0:
            query_vector = query_vector / norm
        return query_vector.astype(np.float32)

    def clear(self) -> None:
        self._vectors.clear()
