"""Concrete adapters wiring application ports to built-in implementations."""

from __future__ import annotations

from .hashing import HashingEmbedder

__all__ = [
    "HashingEmbedder",
]
