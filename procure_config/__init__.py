"""
procure_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_settings()``.  No other component reads configuration files or
    environment variables directly.

Architecture position:
    Configuration.  ``procure_kernel.db.engine.init_engine_from_settings``
    consumes the returned ``Settings``; the kernel never reads YAML itself.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_settings()``.
    - Source order: explicit ``path`` argument, else ``PROCURE_CONFIG_FILE``,
      else ``procure_config/sets/default.yaml``.  ``DATABASE_URL`` overrides
      ``database_url`` from any source.
    - Unknown keys are rejected.

Failure modes:
    - ``FileNotFoundError`` -- the selected file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.
    - ``yaml.YAMLError`` -- malformed YAML.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path

from procure_config.loader import load_yaml_file, parse_settings
from procure_config.settings import Settings

__all__ = ["Settings", "get_settings"]

_logger = logging.getLogger("procure_kernel.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_FILE_ENV = "PROCURE_CONFIG_FILE"
DATABASE_URL_ENV = "DATABASE_URL"


def get_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """The ONLY public configuration entrypoint.

    Args:
        path: Explicit YAML file; wins over ``PROCURE_CONFIG_FILE``.
        environ: Environment mapping, defaults to ``os.environ``.

    Returns:
        Frozen ``Settings``.
    """
    env = os.environ if environ is None else environ
    source = Path(path or env.get(CONFIG_FILE_ENV) or _DEFAULT_CONFIG_FILE)

    settings = parse_settings(load_yaml_file(source))
    if env.get(DATABASE_URL_ENV):
        settings = replace(settings, database_url=env[DATABASE_URL_ENV])

    _logger.info(
        "PROCURE_CONFIG_LOADED",
        extra={
            "config_file": str(source),
            "database_url_overridden": bool(env.get(DATABASE_URL_ENV)),
            "log_level": settings.log_level,
        },
    )
    return settings
