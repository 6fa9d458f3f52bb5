"""Exact nearest-neighbour index over idioms.

An :class:`Index` ranks a fixed list of idioms against a query by scanning
every phrase vector of every idiom. Vectors are computed lazily through an
:class:`~idiomindex.app.ports.embedding.EmbedderPort` and cached in place, so
a warm index never calls the embedder and a cold one needs at most one
batched call for the query side and one for the idiom side.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeAlias, TypeVar

from idiomindex.app.ports.embedding import EmbedderPort, check_embedding_result
from idiomindex.context import AgentContext
from idiomindex.errors import ConfigurationError, InvariantError, QueryError
from idiomindex.index.distance import EmbeddingDistance, cosine_distance
from idiomindex.index.embedding import (
    Embedding,
    EmbeddingModel,
    Embeddings,
    EmbeddingVector,
    as_embedding_vector,
)
from idiomindex.index.idiom import Idiom

T = TypeVar("T")

DEFAULT_HISTORY_PENALTY = 0.1

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Found(Generic[T]):
    """A complete ranking, nearest first."""

    values: list[T]


@dataclass(frozen=True, slots=True)
class NeedsBackfill:
    """The scan reached a phrase with no vector for the requested model."""

    idiom_id: str
    text: str


ScanResult: TypeAlias = "Found[Any] | NeedsBackfill"


@dataclass(frozen=True, slots=True)
class _PromptVector:
    vector: EmbeddingVector
    penalty: float


class Index(Generic[T]):
    """A reusable similarity search over a fixed set of idioms.

    Call the index with a literal string, an explicit vector, or nothing at
    all to rank against the ambient :class:`~idiomindex.context.AgentContext`.
    Construction is cheap; no vectors are computed until the first call.
    """

    def __init__(
        self,
        idioms: Sequence[Idiom[T]],
        *,
        id: str | None = None,  # noqa: A002
        model: EmbeddingModel | None = None,
        embedder: EmbedderPort | None = None,
        distance: EmbeddingDistance | None = None,
        limit: int | None = None,
        history_penalty: float | None = None,
    ) -> None:
        self.id = id
        self.model = model
        self.embedder = embedder
        self.distance: EmbeddingDistance = distance if distance is not None else cosine_distance
        self.limit = limit
        self.history_penalty = history_penalty
        self.idioms: tuple[Idiom[T], ...] = tuple(idioms)
        self._query_embeddings: Embeddings = {}

    async def __call__(
        self,
        query: str | EmbeddingVector | Sequence[float] | None = None,
        *,
        model: EmbeddingModel | None = None,
        embedder: EmbedderPort | None = None,
        limit: int | None = None,
        history_penalty: float | None = None,
        context: AgentContext | None = None,
        **options: Any,
    ) -> list[T]:
        """Return the indexed values most similar to ``query``, nearest first.

        Args:
            query: Literal text, an explicit vector, or ``None`` to use the
                prompt turns (or decayed query vector) of the active context.
            model: Embedding model; defaults to the index model.
            embedder: Embedder override; defaults to the index embedder.
            limit: Maximum number of results; unbounded when unset.
            history_penalty: Distance penalty rate for older prompt turns.
            context: Conversation context for ambient queries; defaults to
                the scoped context.
            **options: Passed through to every embedder call.

        Raises:
            ConfigurationError: If no model or embedder can be resolved.
            QueryError: If no query is given and no context supplies one.
            EmbedderError: If the embedder returns the wrong number of vectors.
            InvariantError: If idiom vectors are still missing after backfill.
        """
        model = model if model is not None else self.model
        if model is None:
            raise ConfigurationError("Unspecified embedding model")

        embedder = embedder if embedder is not None else self.embedder
        if embedder is None:
            raise ConfigurationError("Unspecified embedder")

        limit = limit if limit is not None else self.limit
        if limit is not None and limit < 0:
            raise QueryError(f"Invalid limit: {limit}")

        if history_penalty is None:
            history_penalty = (
                self.history_penalty if self.history_penalty is not None else DEFAULT_HISTORY_PENALTY
            )
        if history_penalty < 0:
            raise QueryError(f"Invalid history penalty: {history_penalty}")

        prompt_sets, explicit_vector = self._resolve_prompts(query, context)

        if explicit_vector is not None:
            prompt_vectors = [_PromptVector(explicit_vector, 1.0)]
        else:
            await self._fill_prompt_embeddings(prompt_sets, model, embedder, options)
            prompt_vectors = self._weigh_prompts(prompt_sets, model, 1.0 + history_penalty)

        result = self._scan(model, prompt_vectors, limit)
        if isinstance(result, NeedsBackfill):
            _logger.debug(
                "Index %s missing %s vector for idiom %s; backfilling",
                self.id or "<anonymous>",
                model,
                result.idiom_id,
            )
            await self._backfill(model, embedder, options)
            result = self._scan(model, prompt_vectors, limit)
            if isinstance(result, NeedsBackfill):
                raise InvariantError("Failed to resolve all idiom embeddings")

        return result.values

    def _resolve_prompts(
        self,
        query: str | EmbeddingVector | Sequence[float] | None,
        context: AgentContext | None,
    ) -> tuple[list[Embeddings], EmbeddingVector | None]:
        """Return the prompt sets to rank against, or an explicit vector."""
        if query is None:
            agent = context if context is not None else AgentContext.get()
            if agent is not None:
                if agent.prompt_embeddings:
                    return list(agent.prompt_embeddings), None
                if len(agent.query_history) != 0:
                    return [], agent.average_query_vector()
            raise QueryError("Unspecified query")

        if isinstance(query, str):
            embedding = self._query_embeddings.setdefault(query, {})
            return [{query: embedding}], None

        return [], as_embedding_vector(query)

    async def _fill_prompt_embeddings(
        self,
        prompt_sets: list[Embeddings],
        model: EmbeddingModel,
        embedder: EmbedderPort,
        options: dict[str, Any],
    ) -> None:
        missing: dict[str, list[Embedding]] = {}
        for prompt_set in prompt_sets:
            for text, embedding in prompt_set.items():
                if model not in embedding:
                    missing.setdefault(text, []).append(embedding)

        if missing:
            await _embed_missing(missing, model, embedder, options)

    @staticmethod
    def _weigh_prompts(
        prompt_sets: list[Embeddings],
        model: EmbeddingModel,
        penalty_rate: float,
    ) -> list[_PromptVector]:
        prompt_vectors: list[_PromptVector] = []
        turn_count = len(prompt_sets)
        for turn_index, prompt_set in enumerate(prompt_sets):
            penalty = math.pow(penalty_rate, turn_count - turn_index - 1)
            for text, embedding in prompt_set.items():
                vector = embedding.get(model)
                if vector is None:
                    raise InvariantError(f"Failed to resolve query embedding for {text!r}")
                prompt_vectors.append(_PromptVector(vector, penalty))
        return prompt_vectors

    def _scan(
        self,
        model: EmbeddingModel,
        prompt_vectors: list[_PromptVector],
        limit: int | None,
    ) -> ScanResult:
        distances: list[float] = []
        values: list[T] = []

        for idiom in self.idioms:
            # Position of this idiom's current entry in the result list.
            nearest: int | None = None
            for text, embedding in idiom.embeddings.items():
                idiom_vector = embedding.get(model)
                if idiom_vector is None:
                    return NeedsBackfill(idiom_id=idiom.id, text=text)

                for prompt in prompt_vectors:
                    distance = self.distance(prompt.vector, idiom_vector) * prompt.penalty
                    if nearest is not None:
                        if not distance < distances[nearest]:
                            continue
                        del distances[nearest]
                        del values[nearest]
                        nearest = None

                    # Equal distances insert after existing entries.
                    position = len(distances)
                    while position > 0 and distance < distances[position - 1]:
                        position -= 1

                    if limit is None or position < limit:
                        if limit is not None and len(distances) == limit:
                            distances.pop()
                            values.pop()
                        distances.insert(position, distance)
                        values.insert(position, idiom.value)
                        nearest = position

        return Found(values)

    async def _backfill(
        self,
        model: EmbeddingModel,
        embedder: EmbedderPort,
        options: dict[str, Any],
    ) -> None:
        missing: dict[str, list[Embedding]] = {}
        for idiom in self.idioms:
            for text in idiom.missing_phrases(model):
                missing.setdefault(text, []).append(idiom.embeddings[text])

        if missing:
            await _embed_missing(missing, model, embedder, options)


async def _embed_missing(
    missing: dict[str, list[Embedding]],
    model: EmbeddingModel,
    embedder: EmbedderPort,
    options: dict[str, Any],
) -> None:
    """Embed every text of ``missing`` in one batch and store the vectors."""
    texts = list(missing)
    result = await embedder.embed(texts, model=model, **options)
    for text, vector in zip(texts, check_embedding_result(result, texts)):
        embedding_vector = as_embedding_vector(vector)
        for embedding in missing[text]:
            embedding[model] = embedding_vector
    _logger.debug(
        "Embedded %d text(s) with %s in %.1f ms",
        len(texts),
        model,
        result.latency_ms,
    )


def define_index(
    idioms: Sequence[Idiom[T]],
    *,
    id: str | None = None,  # noqa: A002
    model: EmbeddingModel | None = None,
    embedder: EmbedderPort | None = None,
    distance: EmbeddingDistance | None = None,
    limit: int | None = None,
    history_penalty: float | None = None,
) -> Index[T]:
    """Create an :class:`Index` over ``idioms``.

    Example:
        >>> next_action = define_index(
        ...     define_idioms({
        ...         "action.continue": ("continue", ["I have another question."]),
        ...         "action.stop": ("stop", ["Thanks for your help."]),
        ...     }),
        ...     model="hashing-256",
        ...     embedder=HashingEmbedder(),
        ...     limit=1,
        ... )
    """
    return Index(
        idioms,
        id=id,
        model=model,
        embedder=embedder,
        distance=distance,
        limit=limit,
        history_penalty=history_penalty,
    )
