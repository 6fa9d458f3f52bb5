"""Conversation state consulted by indexes when no literal query is given.

An :class:`AgentContext` owns the prompt history (one ``Embeddings`` per
turn, filled lazily by the indexes that rank against it) and the decayed
query-vector window of a single conversation. Pass it explicitly with
``index(context=...)`` or scope it for the current task with
:meth:`AgentContext.scope`.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, TypeVar

from idiomindex.errors import ConfigurationError
from idiomindex.index.aggregator import (
    DEFAULT_QUERY_DECAY,
    DEFAULT_QUERY_HYSTERESIS,
    QueryHistory,
)
from idiomindex.index.embedding import Embeddings, EmbeddingVector
from idiomindex.utils.sentences import split_sentences

R = TypeVar("R")

DEFAULT_PROMPT_HYSTERESIS = 5

PromptSplitter = Callable[[str], list[str]]

_current_context: ContextVar[AgentContext | None] = ContextVar(
    "idiomindex.agent", default=None
)


class AgentContext:
    """The runtime state of one conversation or agent."""

    def __init__(
        self,
        parent: AgentContext | None = None,
        *,
        prompt_hysteresis: int | None = None,
        query_hysteresis: int | None = None,
        query_decay: float | None = None,
        split_prompt: PromptSplitter | bool | None = None,
    ) -> None:
        self._parent = parent

        if prompt_hysteresis is None:
            prompt_hysteresis = (
                parent.prompt_hysteresis if parent is not None else DEFAULT_PROMPT_HYSTERESIS
            )
        if prompt_hysteresis < 1:
            raise ValueError("Prompt hysteresis must be at least 1")
        if query_hysteresis is None:
            query_hysteresis = (
                parent.query_history.hysteresis if parent is not None else DEFAULT_QUERY_HYSTERESIS
            )
        if query_decay is None:
            query_decay = parent.query_history.decay if parent is not None else DEFAULT_QUERY_DECAY

        self._prompt_hysteresis = prompt_hysteresis
        self._prompt_embeddings: deque[Embeddings] = deque(maxlen=prompt_hysteresis)
        self._query_history = QueryHistory(hysteresis=query_hysteresis, decay=query_decay)

        if split_prompt is None:
            self._split_prompt = parent.split_prompt if parent is not None else split_sentences
        elif split_prompt is True:
            self._split_prompt = split_sentences
        elif split_prompt is False:
            self._split_prompt = None
        else:
            self._split_prompt = split_prompt

    @property
    def parent(self) -> AgentContext | None:
        return self._parent

    @property
    def prompt_hysteresis(self) -> int:
        """The number of recent prompts considered for ranking."""
        return self._prompt_hysteresis

    @property
    def prompt_embeddings(self) -> tuple[Embeddings, ...]:
        """Recent prompt turns, oldest first."""
        return tuple(self._prompt_embeddings)

    @property
    def split_prompt(self) -> PromptSplitter | None:
        return self._split_prompt

    @property
    def query_history(self) -> QueryHistory:
        return self._query_history

    @property
    def query_vectors(self) -> tuple[EmbeddingVector, ...]:
        return self._query_history.vectors

    def add_prompt(self, prompt: str) -> Embeddings:
        """Record a conversational turn and return its (empty) embeddings.

        The prompt is split into fragments so that each sentence is matched
        on its own; the oldest turn is evicted once the window is full.
        """
        fragments = self._split_prompt(prompt) if self._split_prompt is not None else [prompt]
        if not fragments:
            fragments = [prompt]
        embeddings: Embeddings = {fragment: {} for fragment in fragments}
        self._prompt_embeddings.append(embeddings)
        return embeddings

    def add_query_vector(self, vector: EmbeddingVector | Sequence[float]) -> None:
        self._query_history.add(vector)

    def average_query_vector(self) -> EmbeddingVector:
        return self._query_history.average()

    def clear(self) -> None:
        """Forget the prompt and query history."""
        self._prompt_embeddings.clear()
        self._query_history.clear()

    def spawn(self, **options: Any) -> AgentContext:
        """Create a child context that inherits this context's settings."""
        return AgentContext(self, **options)

    @classmethod
    def current(cls) -> AgentContext:
        """Return the context scoped to the current task.

        Raises:
            ConfigurationError: If no context is in scope.
        """
        context = _current_context.get()
        if context is None:
            raise ConfigurationError("Not in an agent context")
        return context

    @classmethod
    def get(cls) -> AgentContext | None:
        return _current_context.get()

    @classmethod
    def create(cls, **options: Any) -> AgentContext:
        return cls(None, **options)

    @classmethod
    def get_or_create(cls, **options: Any) -> AgentContext:
        context = _current_context.get()
        if context is None:
            context = cls.create(**options)
        return context

    @classmethod
    @contextmanager
    def scope(cls, context: AgentContext | None) -> Iterator[AgentContext | None]:
        """Make ``context`` current for the enclosed block.

        Works inside coroutines too: each ``asyncio`` task sees its own copy
        of the context variable.
        """
        token = _current_context.set(context)
        try:
            yield context
        finally:
            _current_context.reset(token)

    @classmethod
    def run(cls, context: AgentContext | None, func: Callable[..., R], *args: Any) -> R:
        """Call ``func(*args)`` with ``context`` in scope."""
        with cls.scope(context):
            return func(*args)
