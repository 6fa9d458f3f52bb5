"""Text-keyed embedding cache shared between prefetch runs.

Unlike an inventory, a precache is keyed by phrase text rather than idiom id,
so identical phrases used by several idioms are embedded once and survive
idiom renames.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from idiomindex.index.embedding import (
    Embeddings,
    check_encoded_embeddings,
    decode_embeddings,
    encode_embeddings,
)
from idiomindex.index.idiom import Idiom
from idiomindex.utils.files import atomic_write_text
from idiomindex.utils.yaml_io import dump_yaml, load_yaml_mapping

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Precache:
    """Phrase embeddings keyed by phrase text."""

    embeddings: Embeddings = field(default_factory=dict)


def create_precache() -> Precache:
    return Precache()


def parse_precache(text: str) -> Precache:
    data = load_yaml_mapping(text, "precache")
    embeddings = check_encoded_embeddings(data.get("embeddings"), "precache")
    return Precache(embeddings=decode_embeddings(embeddings))


def format_precache(precache: Precache) -> str:
    data = {"embeddings": encode_embeddings(precache.embeddings)}
    return dump_yaml(data)


def load_precache(path: Path) -> Precache:
    """Read a precache file, or return an empty precache if it is missing."""
    path = Path(path)
    if not path.exists():
        logger.debug("No precache at %s; starting empty", path)
        return create_precache()
    return parse_precache(path.read_text(encoding="utf-8"))


def save_precache(path: Path, precache: Precache) -> None:
    """Write ``precache`` to ``path``, creating parent directories."""
    atomic_write_text(Path(path), format_precache(precache))


def apply_precache(idioms: Iterable[Idiom], precache: Precache) -> int:
    """Seed idiom phrase vectors from ``precache``.

    Existing vectors are never overwritten. Returns the number of vectors
    attached.
    """
    applied = 0
    for idiom in idioms:
        for text, embedding in idiom.embeddings.items():
            cached = precache.embeddings.get(text)
            if not cached:
                continue
            for model, vector in cached.items():
                if model not in embedding:
                    embedding[model] = vector
                    applied += 1
    return applied


def update_precache(precache: Precache, idioms: Iterable[Idiom]) -> int:
    """Merge idiom phrase vectors into ``precache``.

    Vectors already cached are kept. Returns the number of vectors added.
    """
    added = 0
    for idiom in idioms:
        for text, embedding in idiom.embeddings.items():
            if not embedding:
                continue
            cached = precache.embeddings.setdefault(text, {})
            for model, vector in embedding.items():
                if model not in cached:
                    cached[model] = vector
                    added += 1
    return added
