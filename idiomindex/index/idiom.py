"""Idioms: values paired with descriptive phrases and their cached vectors."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeAlias, TypeVar

from idiomindex.index.embedding import Embedding, EmbeddingModel, Embeddings

T = TypeVar("T")

IdiomResolver: TypeAlias = Callable[[str, Any], Embeddings | None]
"""Runtime hook returning pre-computed embeddings for an idiom id and value."""


@dataclass(eq=False, slots=True)
class Idiom(Generic[T]):
    """A value associated with the embeddings of its descriptive phrases.

    ``embeddings`` is the live cache for this idiom: indexes fill it in place
    and every index that includes the idiom sees the same vectors. The phrase
    set is fixed at definition time.
    """

    id: str
    value: T
    embeddings: Embeddings = field(default_factory=dict)

    @property
    def phrases(self) -> list[str]:
        return list(self.embeddings)

    def missing_phrases(self, model: EmbeddingModel) -> list[str]:
        """Return the phrases that have no vector for ``model`` yet."""
        return [text for text, embedding in self.embeddings.items() if model not in embedding]

    def has_model(self, model: EmbeddingModel) -> bool:
        return all(model in embedding for embedding in self.embeddings.values())


def default_idiom_id(value: Any) -> str:
    """Derive a semi-stable id from the value's defining module and name."""
    module = getattr(value, "__module__", None)
    qualname = getattr(value, "__qualname__", None)
    if isinstance(module, str) and isinstance(qualname, str):
        return f"{module}.{qualname}"
    return repr(value)


def define_idiom(
    value: T,
    phrases: Iterable[str],
    *,
    id: str | None = None,  # noqa: A002
    resolver: IdiomResolver | None = None,
) -> Idiom[T]:
    """Create an idiom for ``value`` described by ``phrases``.

    When ``resolver`` returns embeddings for the idiom, vectors for matching
    phrases are attached immediately. Resolved embedding objects are shared,
    not copied, so a precache that backs several idioms is filled once.

    Example:
        >>> truthy = define_idiom(True, ["The answer is yes", "I agree", "Ok"], id="truthy")
    """
    idiom_id = id if id is not None else default_idiom_id(value)
    resolved = resolver(idiom_id, value) if resolver is not None else None

    embeddings: Embeddings = {}
    for phrase in phrases:
        if phrase in embeddings:
            continue
        embedding: Embedding | None = resolved.get(phrase) if resolved else None
        embeddings[phrase] = embedding if embedding is not None else {}
    return Idiom(id=idiom_id, value=value, embeddings=embeddings)


def define_idioms(
    definitions: Mapping[str, tuple[Any, Sequence[str]]] | Iterable[tuple[Any, Sequence[str]]],
    *,
    resolver: IdiomResolver | None = None,
) -> list[Idiom[Any]]:
    """Create idioms for many values at once.

    Accepts either a mapping of ``id -> (value, phrases)`` or an iterable of
    ``(value, phrases)`` pairs whose ids are derived from the values.

    Example:
        >>> statuses = define_idioms({
        ...     "status.success": ("success", ["Operation completed successfully."]),
        ...     "status.error": ("error", ["An error occurred during processing."]),
        ... })
    """
    if isinstance(definitions, Mapping):
        return [
            define_idiom(value, phrases, id=idiom_id, resolver=resolver)
            for idiom_id, (value, phrases) in definitions.items()
        ]
    return [define_idiom(value, phrases, resolver=resolver) for value, phrases in definitions]
