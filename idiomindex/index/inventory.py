"""Persisted idiom embeddings loaded at startup.

An inventory file is YAML with binary vectors::

    embeddingModels: [hashing-256]
    idioms:
      status.success:
        embeddings:
          Operation completed successfully.:
            hashing-256: !!binary |
              AAAAAAAAgD8=

Idioms defined with :func:`inventory_resolver` start out with these vectors
attached, so a fully inventoried index answers queries without embedding any
idiom phrase.
"""

from __future__ import annotations

import inspect
import logging
import os
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, TypeAlias

from idiomindex.config import get_settings
from idiomindex.index.embedding import (
    EmbeddingModel,
    Embeddings,
    check_encoded_embeddings,
    decode_embeddings,
    encode_embeddings,
)
from idiomindex.index.idiom import IdiomResolver
from idiomindex.utils.files import atomic_write_text
from idiomindex.utils.yaml_io import dump_yaml, load_yaml_mapping

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class InventoryIdiom:
    """Stored phrase embeddings for one idiom."""

    embeddings: Embeddings = field(default_factory=dict)


@dataclass(slots=True)
class Inventory:
    """Idiom embeddings keyed by idiom id."""

    embedding_models: list[EmbeddingModel] = field(default_factory=list)
    idioms: dict[str, InventoryIdiom] = field(default_factory=dict)

    def vector_count(self) -> int:
        """Return the total number of stored vectors."""
        return sum(
            len(embedding)
            for idiom in self.idioms.values()
            for embedding in idiom.embeddings.values()
        )


InventorySource: TypeAlias = (
    Inventory
    | Awaitable[Any]
    | Callable[[], Any]
    | ModuleType
    | str
    | os.PathLike[str]
    | bool
    | None
)
"""Anything :func:`resolve_inventory` knows how to turn into an inventory."""


def create_inventory() -> Inventory:
    return Inventory()


def parse_inventory(text: str) -> Inventory:
    """Parse inventory YAML.

    Raises:
        ValueError: If the document is not a well-formed inventory.
    """
    data = load_yaml_mapping(text, "inventory")

    embedding_models = data.get("embeddingModels") or []
    if not isinstance(embedding_models, list):
        raise ValueError("Invalid inventory: embeddingModels must be a list")

    idioms_data = data.get("idioms") or {}
    if not isinstance(idioms_data, dict):
        raise ValueError("Invalid inventory: idioms must be a mapping")

    idioms: dict[str, InventoryIdiom] = {}
    for idiom_id, idiom_data in idioms_data.items():
        if idiom_data is not None and not isinstance(idiom_data, dict):
            raise ValueError(f"Invalid inventory entry for idiom {idiom_id!r}")
        embeddings = check_encoded_embeddings(
            (idiom_data or {}).get("embeddings"), f"idiom {idiom_id!r}"
        )
        idioms[str(idiom_id)] = InventoryIdiom(embeddings=decode_embeddings(embeddings))

    return Inventory(
        embedding_models=[str(model) for model in embedding_models],
        idioms=idioms,
    )


def format_inventory(inventory: Inventory) -> str:
    """Serialize ``inventory`` as YAML with every mapping key sorted."""
    data = {
        "embeddingModels": list(inventory.embedding_models),
        "idioms": {
            idiom_id: {"embeddings": encode_embeddings(inventory.idioms[idiom_id].embeddings)}
            for idiom_id in sorted(inventory.idioms)
        },
    }
    return dump_yaml(data)


def load_inventory(path: Path) -> Inventory:
    """Read an inventory file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the file is not a well-formed inventory.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Inventory not found: {path}")
    return parse_inventory(path.read_text(encoding="utf-8"))


def save_inventory(path: Path, inventory: Inventory) -> None:
    atomic_write_text(Path(path), format_inventory(inventory))


async def resolve_inventory(source: InventorySource) -> Inventory | None:
    """Resolve ``source`` into an inventory.

    ``True`` loads the configured default inventory path, if that file
    exists; ``False`` and ``None`` mean "no inventory". Paths, modules with
    an ``inventory`` attribute, awaitables and zero-argument callables (sync
    or async) are resolved recursively.

    Raises:
        FileNotFoundError: If an explicit inventory path does not exist.
        TypeError: If ``source`` is of an unsupported type.
    """
    if source is None or source is False:
        return None
    if source is True:
        default_path = get_settings().get_inventory_path()
        if not default_path.exists():
            logger.debug("No inventory at default path %s", default_path)
            return None
        return load_inventory(default_path)
    if isinstance(source, Inventory):
        return source
    if isinstance(source, (str, os.PathLike)):
        return load_inventory(Path(source))
    if isinstance(source, ModuleType):
        return await resolve_inventory(getattr(source, "inventory", None))
    if inspect.isawaitable(source):
        return await resolve_inventory(await source)
    if callable(source):
        return await resolve_inventory(source())
    raise TypeError(f"Unsupported inventory source: {type(source).__name__}")


async def resolve_inventories(sources: Iterable[InventorySource]) -> list[Inventory]:
    """Resolve many inventory sources, skipping those that fail to load."""
    inventories: list[Inventory] = []
    for source in sources:
        try:
            inventory = await resolve_inventory(source)
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Skipping inventory source %r: %s", source, exc)
            continue
        if inventory is not None:
            inventories.append(inventory)
    return inventories


def inventory_resolver(inventory: Inventory) -> IdiomResolver:
    """Return an :data:`IdiomResolver` that looks idioms up by id."""

    def resolve(idiom_id: str, value: Any) -> Embeddings | None:  # noqa: ARG001
        entry = inventory.idioms.get(idiom_id)
        return entry.embeddings if entry is not None else None

    return resolve
