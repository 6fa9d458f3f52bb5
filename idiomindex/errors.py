"""Exception hierarchy for idiomindex."""

from __future__ import annotations


class IdiomIndexError(RuntimeError):
    """Base class for errors raised by the index engine."""


class ConfigurationError(IdiomIndexError):
    """Raised when no embedding model, embedder, or context can be resolved."""


class QueryError(IdiomIndexError):
    """Raised when a query cannot be formed from the given inputs."""


class InvariantError(IdiomIndexError):
    """Raised when the cache is still incomplete after a backfill.

    Never expected in correct operation; the index fails loudly instead of
    returning a partial ranking.
    """


class EmbedderError(IdiomIndexError):
    """Raised when an embedder returns a different number of vectors than requested."""
