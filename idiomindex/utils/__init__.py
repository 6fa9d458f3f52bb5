"""Utility modules for common operations."""

from idiomindex.utils.files import atomic_write_text, ensure_dir
from idiomindex.utils.schema import SchemaStamp, build_schema_stamp

__all__ = [
    "atomic_write_text",
    "ensure_dir",
    "SchemaStamp",
    "build_schema_stamp",
]
