"""Embedding port interface for the semantic index.

Defines a protocol for text embedding providers and a small DTO for
returning vectors with minimal telemetry. Adapters implement this port
to support online embedding backends or the built-in offline hashing
embedder. Batching, chunking, and retry policy belong to the adapter.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, overload

import numpy as np

from idiomindex.errors import EmbedderError


@dataclass(slots=True)
class EmbeddingResult:
    """Embedding vectors and basic telemetry."""

    embeddings: list[np.ndarray]
    latency_ms: float
    model: str | None = None
    dimensions: int | None = None
    token_count: int | None = None


class EmbedderPort(Protocol):
    """Port interface for text embedding services.

    Implementations must return one vector per input text, in input order,
    and should tolerate large batches. Cancellation reaches the adapter as
    ordinary ``asyncio`` task cancellation of the awaited call.

    Side effects: network API calls for online adapters.
    """

    async def embed(
        self,
        texts: Sequence[str],
        *,
        model: str,
        **options: Any,
    ) -> EmbeddingResult:
        """Embed ``texts`` with ``model``.

        Args:
            texts: Text fragments to embed (ordered)
            model: Embedding model identifier
            **options: Adapter-specific request options

        Returns:
            EmbeddingResult with vectors and telemetry
        """
        ...


def check_embedding_result(result: EmbeddingResult, texts: Sequence[str]) -> list[np.ndarray]:
    """Return the vectors of ``result``, one per text of ``texts``.

    Raises:
        EmbedderError: If the embedder returned too few or too many vectors.
    """
    if len(result.embeddings) != len(texts):
        raise EmbedderError(
            f"Embedder returned {len(result.embeddings)} vector(s) for {len(texts)} text(s)"
        )
    return list(result.embeddings)


@overload
async def embed(
    embedder: EmbedderPort, texts: str, *, model: str, **options: Any
) -> np.ndarray: ...


@overload
async def embed(
    embedder: EmbedderPort, texts: Sequence[str], *, model: str, **options: Any
) -> list[np.ndarray]: ...


async def embed(
    embedder: EmbedderPort,
    texts: str | Sequence[str],
    *,
    model: str,
    **options: Any,
) -> np.ndarray | list[np.ndarray]:
    """Embed a single text or a batch of texts.

    A ``str`` argument returns a single vector; a sequence returns a list of
    vectors in the same order.
    """
    if isinstance(texts, str):
        result = await embedder.embed([texts], model=model, **options)
        return check_embedding_result(result, [texts])[0]
    batch = list(texts)
    result = await embedder.embed(batch, model=model, **options)
    return check_embedding_result(result, batch)
