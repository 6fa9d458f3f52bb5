"""Application bootstrap wiring the embedder, settings, and index factories."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from idiomindex.app.adapters import HashingEmbedder
from idiomindex.app.ports import EmbedderPort
from idiomindex.config import Settings, get_settings
from idiomindex.context import AgentContext
from idiomindex.errors import ConfigurationError
from idiomindex.index import (
    Index,
    Inventory,
    Manifest,
    Precache,
    apply_precache,
    define_index,
    inventory_resolver,
    load_inventory,
    load_precache,
    manifest_idioms,
    save_precache,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ApplicationContainer:
    """Aggregates wired adapters and settings for the CLI layer."""

    settings: Settings
    embedder: EmbedderPort

    def load_precache(self, path: Path | None = None) -> Precache:
        return load_precache(path if path is not None else self.settings.get_precache_path())

    def save_precache(self, precache: Precache, path: Path | None = None) -> Path:
        destination = path if path is not None else self.settings.get_precache_path()
        save_precache(destination, precache)
        return destination

    def load_inventory(self, path: Path | None = None) -> Inventory | None:
        """Load ``path``, or the configured default inventory if it exists."""
        if path is not None:
            return load_inventory(path)
        default_path = self.settings.get_inventory_path()
        if not default_path.exists():
            return None
        return load_inventory(default_path)

    def build_index(
        self,
        manifest: Manifest,
        *,
        inventory: Inventory | None = None,
        precache: Precache | None = None,
        model: str | None = None,
        limit: int | None = None,
        history_penalty: float | None = None,
        id: str | None = None,  # noqa: A002
    ) -> Index[Any]:
        """Build an index over the idioms of ``manifest``.

        Inventory vectors are attached first; the precache then fills any
        phrase the inventory does not cover.
        """
        resolver = inventory_resolver(inventory) if inventory is not None else None
        idioms = manifest_idioms(manifest, resolver=resolver)
        if precache is not None:
            applied = apply_precache(idioms, precache)
            logger.debug("Seeded %d vector(s) from precache", applied)

        model = model if model is not None else self.settings.embedding_model
        logger.debug(
            "%d of %d idiom(s) fully embedded for %s",
            sum(idiom.has_model(model) for idiom in idioms),
            len(idioms),
            model,
        )

        return define_index(
            idioms,
            id=id,
            model=model,
            embedder=self.embedder,
            limit=limit if limit is not None else self.settings.index_limit,
            history_penalty=(
                history_penalty if history_penalty is not None else self.settings.history_penalty
            ),
        )

    def create_context(self, **options: Any) -> AgentContext:
        """Create a conversation context using the configured query window."""
        options.setdefault("query_hysteresis", self.settings.query_hysteresis)
        options.setdefault("query_decay", self.settings.query_decay)
        return AgentContext.create(**options)


def _create_embedder(settings: Settings) -> EmbedderPort:
    if settings.embedder_backend == "hashing":
        return HashingEmbedder(dimensions=settings.hashing_dimensions)
    raise ConfigurationError(f"Unknown embedder backend: {settings.embedder_backend}")


def bootstrap_application(settings: Settings | None = None) -> ApplicationContainer:
    """Instantiate adapters for CLI consumption."""

    active_settings = settings or get_settings()
    return ApplicationContainer(
        settings=active_settings,
        embedder=_create_embedder(active_settings),
    )
