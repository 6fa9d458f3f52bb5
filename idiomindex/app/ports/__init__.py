"""Port interfaces for the idiomindex application layer.

These protocol interfaces define contracts for adapters.
The index engine depends on these ports, never on concrete implementations.
"""

__all__ = [
    "EmbedderPort",
    "EmbeddingResult",
    "check_embedding_result",
    "embed",
]

from idiomindex.app.ports.embedding import (
    EmbedderPort,
    EmbeddingResult,
    check_embedding_result,
    embed,
)
