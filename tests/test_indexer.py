"""Nearest-neighbour index behaviour: ranking, caching, and failure modes."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

import numpy as np
import pytest

from idiomindex.app.adapters import HashingEmbedder
from idiomindex.app.ports.embedding import EmbedderPort, EmbeddingResult
from idiomindex.context import AgentContext
from idiomindex.errors import ConfigurationError, EmbedderError, InvariantError, QueryError
from idiomindex.index import cosine_distance, define_idiom, define_idioms, define_index
from idiomindex.index.indexer import Found, NeedsBackfill

MODEL = "mock-2d"


class TableEmbedder(EmbedderPort):
    """Returns fixed vectors from a lookup table and records every call."""

    def __init__(self, table: dict[str, Sequence[float]]) -> None:
        self.table = table
        self.calls: list[list[str]] = []
        self.options: list[dict[str, Any]] = []

    async def embed(
        self,
        texts: Sequence[str],
        *,
        model: str,
        **options: Any,
    ) -> EmbeddingResult:
        self.calls.append(list(texts))
        self.options.append(dict(options))
        return EmbeddingResult(
            embeddings=[np.asarray(self.table[text], dtype=np.float32) for text in texts],
            latency_ms=0.0,
            model=model,
            dimensions=2,
        )


class ShortEmbedder(TableEmbedder):
    """Drops every vector it is asked for."""

    async def embed(self, texts: Sequence[str], *, model: str, **options: Any) -> EmbeddingResult:
        self.calls.append(list(texts))
        return EmbeddingResult(embeddings=[], latency_ms=0.0, model=model)


COLOR_TABLE = {
    "warm": [1.0, 0.0],
    "cool": [0.0, 1.0],
    "a warm color": [0.9, 0.1],
    "a cool color": [0.1, 0.9],
}


def _color_index(embedder: EmbedderPort, **config: Any):
    idioms = define_idioms(
        {
            "red": ("red", ["a warm color"]),
            "blue": ("blue", ["a cool color"]),
        }
    )
    return define_index(idioms, model=MODEL, embedder=embedder, **config)


def test_warm_query_ranks_red_first() -> None:
    embedder = TableEmbedder(COLOR_TABLE)
    index = _color_index(embedder)

    assert asyncio.run(index("warm", limit=1)) == ["red"]
    assert asyncio.run(index("warm", limit=2)) == ["red", "blue"]
    assert asyncio.run(index("cool", limit=2)) == ["blue", "red"]


def test_index_limit_default_and_unbounded() -> None:
    embedder = TableEmbedder(COLOR_TABLE)

    assert asyncio.run(_color_index(embedder, limit=1)("cool")) == ["blue"]
    assert asyncio.run(_color_index(embedder)("cool")) == ["blue", "red"]
    assert asyncio.run(_color_index(embedder)("cool", limit=0)) == []


def test_cold_index_uses_two_batched_calls_then_warm_path_uses_none() -> None:
    embedder = TableEmbedder(COLOR_TABLE)
    index = _color_index(embedder)

    asyncio.run(index("warm"))
    assert embedder.calls == [["warm"], ["a warm color", "a cool color"]]

    asyncio.run(index("warm"))
    assert len(embedder.calls) == 2

    # Only the new query text is embedded; idiom vectors stay cached.
    asyncio.run(index("cool"))
    assert embedder.calls[2:] == [["cool"]]


def test_explicit_vector_skips_prompt_embedding() -> None:
    embedder = TableEmbedder(COLOR_TABLE)
    index = _color_index(embedder)

    assert asyncio.run(index(np.array([0.0, 1.0], dtype=np.float32), limit=1)) == ["blue"]
    assert asyncio.run(index([1.0, 0.0], limit=1)) == ["red"]
    assert embedder.calls == [["a warm color", "a cool color"]]


def test_preloaded_idiom_vectors_need_no_embedder_calls() -> None:
    embedder = TableEmbedder(COLOR_TABLE)
    red = define_idiom(
        "red",
        ["a warm color"],
        id="red",
        resolver=lambda idiom_id, value: {"a warm color": {MODEL: np.array([0.9, 0.1], dtype=np.float32)}},
    )
    blue = define_idiom(
        "blue",
        ["a cool color"],
        id="blue",
        resolver=lambda idiom_id, value: {"a cool color": {MODEL: np.array([0.1, 0.9], dtype=np.float32)}},
    )
    index = define_index([red, blue], model=MODEL, embedder=embedder)

    assert asyncio.run(index([1.0, 0.0])) == ["red", "blue"]
    assert embedder.calls == []


def test_idiom_appears_once_with_best_phrase() -> None:
    table = {
        "query": [1.0, 0.0],
        "close": [0.99, 0.01],
        "far": [0.0, 1.0],
        "middle": [0.7, 0.3],
    }
    embedder = TableEmbedder(table)
    idioms = define_idioms(
        {
            "multi": ("multi", ["far", "close"]),
            "single": ("single", ["middle"]),
        }
    )
    index = define_index(idioms, model=MODEL, embedder=embedder)

    results = asyncio.run(index("query"))

    assert results == ["multi", "single"]


def test_backfill_deduplicates_shared_phrases() -> None:
    embedder = TableEmbedder({"query": [1.0, 0.0], "shared": [1.0, 0.0], "other": [0.0, 1.0]})
    idioms = define_idioms(
        {
            "first": ("first", ["shared"]),
            "second": ("second", ["shared", "other"]),
        }
    )
    index = define_index(idioms, model=MODEL, embedder=embedder)

    asyncio.run(index("query"))

    assert embedder.calls[1] == ["shared", "other"]


def test_limit_evicts_worst_entry() -> None:
    table = {
        "query": [1.0, 0.0],
        "p1": [0.2, 0.8],
        "p2": [0.9, 0.1],
        "p3": [0.6, 0.4],
    }
    embedder = TableEmbedder(table)
    idioms = define_idioms(
        {
            "one": ("one", ["p1"]),
            "two": ("two", ["p2"]),
            "three": ("three", ["p3"]),
        }
    )
    index = define_index(idioms, model=MODEL, embedder=embedder, limit=2)

    assert asyncio.run(index("query")) == ["two", "three"]


def test_ties_keep_earlier_idiom() -> None:
    embedder = TableEmbedder({"query": [1.0, 0.0], "same-a": [0.5, 0.5], "same-b": [0.5, 0.5]})
    idioms = define_idioms(
        {
            "first": ("first", ["same-a"]),
            "second": ("second", ["same-b"]),
        }
    )
    index = define_index(idioms, model=MODEL, embedder=embedder)

    assert asyncio.run(index("query", limit=1)) == ["first"]
    assert asyncio.run(index("query")) == ["first", "second"]


def test_zero_phrase_idiom_is_never_ranked() -> None:
    embedder = TableEmbedder(COLOR_TABLE)
    idioms = define_idioms({"empty": ("empty", []), "red": ("red", ["a warm color"])})
    index = define_index(idioms, model=MODEL, embedder=embedder)

    assert asyncio.run(index("warm")) == ["red"]


def test_results_are_deterministic() -> None:
    embedder = TableEmbedder(COLOR_TABLE)
    index = _color_index(embedder)

    first = asyncio.run(index("warm"))
    for _ in range(5):
        assert asyncio.run(index("warm")) == first


def test_history_penalty_changes_winner_between_turns() -> None:
    # Hand-computed cosine distances:
    #   turn one [0.8, 0.6]:     alpha 0.2,   beta 0.4
    #   turn two [20/29, 21/29]: alpha 9/29,  beta 8/29
    table = {
        "turn one": [0.8, 0.6],
        "turn two": [20 / 29, 21 / 29],
        "alpha phrase": [1.0, 0.0],
        "beta phrase": [0.0, 1.0],
    }
    turn_one = np.array(table["turn one"], dtype=np.float32)
    turn_two = np.array(table["turn two"], dtype=np.float32)
    alpha = np.array(table["alpha phrase"], dtype=np.float32)
    beta = np.array(table["beta phrase"], dtype=np.float32)
    assert cosine_distance(turn_one, alpha) == pytest.approx(0.2, abs=1e-6)
    assert cosine_distance(turn_one, beta) == pytest.approx(0.4, abs=1e-6)
    assert cosine_distance(turn_two, alpha) == pytest.approx(9 / 29, abs=1e-6)
    assert cosine_distance(turn_two, beta) == pytest.approx(8 / 29, abs=1e-6)

    embedder = TableEmbedder(table)
    idioms = define_idioms(
        {
            "alpha": ("alpha", ["alpha phrase"]),
            "beta": ("beta", ["beta phrase"]),
        }
    )
    index = define_index(idioms, model=MODEL, embedder=embedder)

    context = AgentContext(split_prompt=False)
    context.add_prompt("turn one")
    context.add_prompt("turn two")

    # Equal weights: alpha 0.2 beats beta 8/29.
    assert asyncio.run(index(context=context, history_penalty=0.0)) == ["alpha", "beta"]
    # Turn one doubled: alpha min(0.4, 9/29) loses to beta 8/29.
    assert asyncio.run(index(context=context, history_penalty=1.0)) == ["beta", "alpha"]
    # Prompt vectors were fetched in a single batch.
    assert embedder.calls[0] == ["turn one", "turn two"]


def test_scoped_context_supplies_ambient_query() -> None:
    embedder = TableEmbedder(COLOR_TABLE)
    index = _color_index(embedder, limit=1)
    context = AgentContext(split_prompt=False)
    context.add_prompt("cool")

    async def run_query() -> list[str]:
        with AgentContext.scope(context):
            return await index()

    assert asyncio.run(run_query()) == ["blue"]


def test_context_query_vectors_used_without_prompts() -> None:
    embedder = TableEmbedder(COLOR_TABLE)
    index = _color_index(embedder, limit=1)
    context = AgentContext()
    context.add_query_vector([0.0, 1.0])

    assert asyncio.run(index(context=context)) == ["blue"]


def test_literal_query_leaves_context_history_untouched() -> None:
    embedder = TableEmbedder(COLOR_TABLE)
    index = _color_index(embedder)
    context = AgentContext()
    context.add_query_vector([0.0, 1.0])

    asyncio.run(index("warm", context=context))

    assert len(context.query_vectors) == 1
    np.testing.assert_array_equal(context.query_vectors[0], np.array([0.0, 1.0], dtype=np.float32))


def test_one_context_serves_indexes_of_different_dimensions() -> None:
    idioms = define_idioms(
        {
            "warm": ("warm", ["a warm color"]),
            "cool": ("cool", ["a cool color"]),
        }
    )
    small = define_index(idioms, model="hashing-16", embedder=HashingEmbedder(dimensions=16))
    large = define_index(idioms, model="hashing-32", embedder=HashingEmbedder(dimensions=32))
    context = AgentContext()
    context.add_query_vector(np.ones(8, dtype=np.float32))

    assert len(asyncio.run(small("warm color", context=context))) == 2
    assert len(asyncio.run(large("warm color", context=context))) == 2
    assert len(context.query_vectors) == 1


def test_call_options_override_index_defaults() -> None:
    default_embedder = TableEmbedder(COLOR_TABLE)
    override_embedder = TableEmbedder(COLOR_TABLE)
    index = _color_index(default_embedder)

    asyncio.run(index("warm", embedder=override_embedder, dimensions=2))

    assert default_embedder.calls == []
    assert override_embedder.options[0] == {"dimensions": 2}


def test_missing_model_raises_configuration_error() -> None:
    index = define_index([], embedder=TableEmbedder(COLOR_TABLE))

    with pytest.raises(ConfigurationError, match="Unspecified embedding model"):
        asyncio.run(index("warm"))


def test_missing_embedder_raises_configuration_error() -> None:
    index = define_index([], model=MODEL)

    with pytest.raises(ConfigurationError, match="Unspecified embedder"):
        asyncio.run(index("warm"))


def test_missing_query_raises_query_error() -> None:
    index = _color_index(TableEmbedder(COLOR_TABLE))

    with pytest.raises(QueryError, match="Unspecified query"):
        asyncio.run(index())

    with pytest.raises(QueryError, match="Unspecified query"):
        asyncio.run(index(context=AgentContext()))


def test_invalid_limit_and_penalty_raise_query_error() -> None:
    index = _color_index(TableEmbedder(COLOR_TABLE))

    with pytest.raises(QueryError):
        asyncio.run(index("warm", limit=-1))
    with pytest.raises(QueryError):
        asyncio.run(index("warm", history_penalty=-0.5))


def test_short_embedder_response_raises_embedder_error() -> None:
    embedder = ShortEmbedder({})
    index = _color_index(embedder)

    with pytest.raises(EmbedderError, match=r"returned 0 vector\(s\) for 2 text\(s\)"):
        asyncio.run(index([1.0, 0.0]))
    # One backfill attempt, no retries.
    assert len(embedder.calls) == 1
    assert all(not idiom.has_model(MODEL) for idiom in index.idioms)


def test_unresolved_idiom_vectors_raise_invariant_error() -> None:
    index = _color_index(TableEmbedder(COLOR_TABLE))

    class GrowingEmbedder(TableEmbedder):
        """Adds an unembedded phrase to an idiom while the backfill is in flight."""

        async def embed(self, texts: Sequence[str], *, model: str, **options: Any) -> EmbeddingResult:
            index.idioms[0].embeddings["a late phrase"] = {}
            return await super().embed(texts, model=model, **options)

    embedder = GrowingEmbedder(COLOR_TABLE)

    with pytest.raises(InvariantError, match="Failed to resolve all idiom embeddings"):
        asyncio.run(index([1.0, 0.0], embedder=embedder))
    assert len(embedder.calls) == 1


def test_embedder_failure_propagates() -> None:
    class FailingEmbedder(TableEmbedder):
        async def embed(self, texts: Sequence[str], *, model: str, **options: Any) -> EmbeddingResult:
            raise RuntimeError("provider unavailable")

    index = _color_index(FailingEmbedder({}))

    with pytest.raises(RuntimeError, match="provider unavailable"):
        asyncio.run(index("warm"))


def test_cancellation_propagates_into_embedder() -> None:
    class BlockingEmbedder(TableEmbedder):
        def __init__(self) -> None:
            super().__init__({})
            self.cancelled = False

        async def embed(self, texts: Sequence[str], *, model: str, **options: Any) -> EmbeddingResult:
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
            return EmbeddingResult(embeddings=[], latency_ms=0.0)

    embedder = BlockingEmbedder()
    index = _color_index(embedder)

    async def run_and_cancel() -> None:
        task = asyncio.create_task(index("warm"))
        await asyncio.sleep(0)
        task.cancel()
        await task

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(run_and_cancel())
    assert embedder.cancelled


def test_concurrent_queries_agree() -> None:
    embedder = TableEmbedder(COLOR_TABLE)
    index = _color_index(embedder)

    async def run_both() -> list[list[str]]:
        return list(await asyncio.gather(index("warm"), index("warm")))

    first, second = asyncio.run(run_both())
    assert first == second == ["red", "blue"]


def test_scan_reports_backfill_before_embedding() -> None:
    index = _color_index(TableEmbedder(COLOR_TABLE))

    result = index._scan(MODEL, [], None)

    assert isinstance(result, NeedsBackfill)
    assert result.idiom_id == "red"

    asyncio.run(index("warm"))
    assert isinstance(index._scan(MODEL, [], None), Found)
