"""Feature-hashing embedding adapter implementing EmbedderPort."""

from __future__ import annotations

import hashlib
import re
import time
from collections.abc import Sequence
from typing import Any

import numpy as np

from idiomindex.app.ports.embedding import EmbedderPort, EmbeddingResult

_TOKEN_PATTERN = re.compile(r"[a-z0-9_]+")


class HashingEmbedder(EmbedderPort):
    """Deterministic offline embedder based on signed token hashing.

    Each lowercase token is hashed into one of ``dimensions`` buckets with a
    hash-derived sign; the resulting count vector is L2-normalised. Texts that
    share tokens land close together under cosine distance, which is enough
    for offline use and reproducible tests. The ``model`` argument only keys
    the cache; every model name yields the same vectors.
    """

    MODEL_ID = "hashing-256"

    def __init__(self, *, dimensions: int = 256) -> None:
        if dimensions < 2:
            raise ValueError("HashingEmbedder requires at least 2 dimensions")
        self._dimensions = int(dimensions)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed_text(self, text: str) -> np.ndarray:
        vector = np.zeros(self._dimensions, dtype=np.float32)
        for token in _TOKEN_PATTERN.findall(text.lower()):
            digest = hashlib.sha1(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "little") % self._dimensions
            sign = 1.0 if digest[4] % 2 == 0 else -1.0
            vector[bucket] += sign
        norm = float(np.linalg.norm(vector))
        if norm != 0.0:
            vector /= norm
        return vector

    async def embed(
        self,
        texts: Sequence[str],
        *,
        model: str,
        **options: Any,  # noqa: ARG002
    ) -> EmbeddingResult:
        start = time.perf_counter()
        vectors = [self.embed_text(text) for text in texts]
        latency_ms = (time.perf_counter() - start) * 1000.0
        return EmbeddingResult(
            embeddings=vectors,
            latency_ms=latency_ms,
            model=model,
            dimensions=self._dimensions,
            token_count=sum(len(_TOKEN_PATTERN.findall(text.lower())) for text in texts),
        )
