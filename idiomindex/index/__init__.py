"""Idiom definitions, the nearest-neighbour index, and embedding persistence."""

from idiomindex.index.aggregator import QueryHistory
from idiomindex.index.distance import EmbeddingDistance, cosine_distance
from idiomindex.index.embedding import (
    Embedding,
    EmbeddingModel,
    Embeddings,
    EmbeddingVector,
    decode_embedding,
    decode_embedding_vector,
    decode_embeddings,
    encode_embedding,
    encode_embedding_vector,
    encode_embeddings,
)
from idiomindex.index.idiom import Idiom, IdiomResolver, define_idiom, define_idioms
from idiomindex.index.indexer import Found, Index, NeedsBackfill, define_index
from idiomindex.index.inventory import (
    Inventory,
    InventoryIdiom,
    create_inventory,
    format_inventory,
    inventory_resolver,
    load_inventory,
    parse_inventory,
    resolve_inventories,
    resolve_inventory,
    save_inventory,
)
from idiomindex.index.manifest import (
    IdiomDefinition,
    Manifest,
    load_manifest,
    manifest_idioms,
    parse_manifest,
)
from idiomindex.index.precache import (
    Precache,
    apply_precache,
    create_precache,
    format_precache,
    load_precache,
    parse_precache,
    save_precache,
    update_precache,
)
from idiomindex.index.prefetch import prefetch_inventory

__all__ = [
    "Embedding",
    "EmbeddingDistance",
    "EmbeddingModel",
    "EmbeddingVector",
    "Embeddings",
    "Found",
    "Idiom",
    "IdiomDefinition",
    "IdiomResolver",
    "Index",
    "Inventory",
    "InventoryIdiom",
    "Manifest",
    "NeedsBackfill",
    "Precache",
    "QueryHistory",
    "apply_precache",
    "cosine_distance",
    "create_inventory",
    "create_precache",
    "decode_embedding",
    "decode_embedding_vector",
    "decode_embeddings",
    "define_idiom",
    "define_idioms",
    "define_index",
    "encode_embedding",
    "encode_embedding_vector",
    "encode_embeddings",
    "format_inventory",
    "format_precache",
    "inventory_resolver",
    "load_inventory",
    "load_manifest",
    "load_precache",
    "manifest_idioms",
    "parse_inventory",
    "parse_manifest",
    "parse_precache",
    "prefetch_inventory",
    "resolve_inventories",
    "resolve_inventory",
    "save_inventory",
    "save_precache",
    "update_precache",
]
