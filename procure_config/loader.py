"""
YAML loader for runtime settings.

Invariants enforced
-------------------
* Unknown keys raise ``ValueError``: a typo never silently falls back to
  a default.
* Values are coerced to the field's type; a value that cannot be coerced
  raises ``ValueError`` naming the key.

Failure modes
-------------
* Missing file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
* Top level not a mapping -> ``ValueError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from procure_config.settings import Settings

_COERCE = {
    "database_url": str,
    "pool_size": int,
    "max_overflow": int,
    "pool_timeout": int,
    "busy_timeout": float,
    "log_level": str,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0", "off"):
        return False
    raise ValueError(f"{key}: cannot parse boolean from {value!r}")


def parse_settings(data: dict[str, Any]) -> Settings:
    """Build ``Settings`` from a raw mapping."""
    unknown = set(data) - Settings.field_names()
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key == "echo":
            kwargs[key] = _parse_bool(key, value)
            continue
        try:
            kwargs[key] = _COERCE[key](value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{key}: invalid value {value!r}") from exc
    return Settings(**kwargs)
