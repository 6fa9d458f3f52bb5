"""Declarative idiom manifests.

A manifest lists the idioms of a project so that their phrase embeddings can
be prefetched ahead of time and indexes can be built without code::

    idioms:
      status.success:
        value: success
        phrases:
          - Operation completed successfully.
      status.error:
        phrases:
          - An error occurred during processing.

An idiom without a ``value`` uses its id as its value.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from idiomindex.index.idiom import Idiom, IdiomResolver, define_idiom
from idiomindex.utils.yaml_io import load_yaml_mapping


class IdiomDefinition(BaseModel):
    """Manifest entry for one idiom."""

    value: Any = None
    phrases: list[str] = Field(default_factory=list)


class Manifest(BaseModel):
    """Idiom definitions keyed by idiom id."""

    idioms: dict[str, IdiomDefinition] = Field(default_factory=dict)

    def phrases(self) -> list[str]:
        """Return every distinct phrase, in first-seen order."""
        seen: dict[str, None] = {}
        for definition in self.idioms.values():
            for phrase in definition.phrases:
                seen.setdefault(phrase, None)
        return list(seen)


def parse_manifest(text: str) -> Manifest:
    """Parse and validate manifest YAML.

    Raises:
        ValueError: If the document is not a valid manifest.
    """
    data = load_yaml_mapping(text, "manifest")
    try:
        return Manifest.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid manifest: {exc}") from exc


def load_manifest(path: Path) -> Manifest:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Manifest not found: {path}")
    return parse_manifest(path.read_text(encoding="utf-8"))


def manifest_idioms(manifest: Manifest, resolver: IdiomResolver | None = None) -> list[Idiom[Any]]:
    """Build :class:`Idiom` objects for every manifest entry, in manifest order."""
    return [
        define_idiom(
            definition.value if definition.value is not None else idiom_id,
            definition.phrases,
            id=idiom_id,
            resolver=resolver,
        )
        for idiom_id, definition in manifest.idioms.items()
    ]
