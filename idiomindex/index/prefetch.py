"""Ahead-of-time embedding of manifest phrases."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from idiomindex.app.ports.embedding import EmbedderPort, check_embedding_result
from idiomindex.index.embedding import EmbeddingModel, as_embedding_vector
from idiomindex.index.inventory import Inventory, InventoryIdiom
from idiomindex.index.manifest import Manifest
from idiomindex.index.precache import Precache, create_precache

logger = logging.getLogger(__name__)


async def prefetch_inventory(
    manifest: Manifest,
    embedder: EmbedderPort,
    embedding_models: Sequence[EmbeddingModel],
    precache: Precache | None = None,
    **options: Any,
) -> Inventory:
    """Embed every manifest phrase for every model and build an inventory.

    Phrases already present in ``precache`` are not re-embedded; everything
    else is fetched with one batched embedder call per model and written back
    into the precache. The returned inventory shares vectors with the
    precache.

    Args:
        manifest: Idioms to prefetch.
        embedder: Embedder used for missing phrases.
        embedding_models: Models to prefetch, in order.
        precache: Cache to read from and update; a fresh one when omitted.
        **options: Passed through to the embedder.

    Returns:
        Inventory whose ``embedding_models`` is ``embedding_models``.

    Raises:
        EmbedderError: If the embedder returns the wrong number of vectors.
    """
    if precache is None:
        precache = create_precache()

    phrases = manifest.phrases()
    for phrase in phrases:
        precache.embeddings.setdefault(phrase, {})

    for model in embedding_models:
        missing = [phrase for phrase in phrases if model not in precache.embeddings[phrase]]
        if not missing:
            logger.debug("All %d phrase(s) cached for %s", len(phrases), model)
            continue

        result = await embedder.embed(missing, model=model, **options)
        for phrase, vector in zip(missing, check_embedding_result(result, missing)):
            precache.embeddings[phrase][model] = as_embedding_vector(vector)
        logger.info(
            "Prefetched %d of %d phrase(s) for %s in %.1f ms",
            len(missing),
            len(phrases),
            model,
            result.latency_ms,
        )

    idioms = {
        idiom_id: InventoryIdiom(
            embeddings={phrase: precache.embeddings[phrase] for phrase in definition.phrases}
        )
        for idiom_id, definition in manifest.idioms.items()
    }
    return Inventory(embedding_models=list(embedding_models), idioms=idioms)
