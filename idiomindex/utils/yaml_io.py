"""YAML helpers for inventory, precache and manifest files."""

from __future__ import annotations

from typing import Any

import yaml


def load_yaml_mapping(text: str, kind: str) -> dict[str, Any]:
    """Parse ``text`` and require a mapping (or an empty document) at the top level.

    Raises:
        ValueError: If the YAML is malformed or not a mapping.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid {kind} YAML: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid {kind}: expected a mapping at the top level")
    return data


def dump_yaml(data: dict[str, Any]) -> str:
    """Serialize ``data`` with sorted keys; ``bytes`` values become ``!!binary``."""
    return yaml.safe_dump(data, sort_keys=True, allow_unicode=True, default_flow_style=False)
