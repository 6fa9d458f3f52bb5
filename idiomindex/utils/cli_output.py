"""Schema-wrapped JSON output for CLI commands."""

from __future__ import annotations

import json
from typing import Any

from idiomindex.utils.schema import build_schema_stamp


def json_response(schema_id: str, schema_version: int, **data: Any) -> str:
    """Render ``data`` as indented JSON behind a schema stamp.

    The stamp keys (``schema_id``, ``schema_version``, ``producer``,
    ``produced_at``) come first; payload keys follow in call order.
    """
    stamp = build_schema_stamp(schema_id=schema_id, schema_version=schema_version)
    return json.dumps(
        {
            "schema_id": stamp.schema_id,
            "schema_version": stamp.schema_version,
            "producer": stamp.producer,
            "produced_at": stamp.produced_at,
            **data,
        },
        indent=2,
        default=str,
    )
