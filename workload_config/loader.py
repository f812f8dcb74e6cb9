"""
Configuration Loader (``workload_config.loader``).

Responsibility
--------------
Reads settings layers and merges them in precedence order:

1. the packaged ``defaults.yaml``;
2. an optional YAML file named by ``WORKLOAD_CONFIG_FILE``;
3. ``WORKLOAD_<KEY>`` environment variables.

Later layers override earlier ones key by key.  Only ``get_settings()`` in
``workload_config`` should call into this module.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* A YAML document that is not a mapping  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from workload_config.schema import EngineSettings

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"
CONFIG_FILE_ENV = "WORKLOAD_CONFIG_FILE"
ENV_PREFIX = "WORKLOAD_"


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
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def env_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    """``WORKLOAD_LOG_LEVEL=DEBUG`` -> ``{"log_level": "DEBUG"}``."""
    return {
        key[len(ENV_PREFIX):].lower(): value
        for key, value in environ.items()
        if key.startswith(ENV_PREFIX) and key != CONFIG_FILE_ENV
    }


def merge_layers(
    environ: Mapping[str, str] | None = None,
    defaults_file: Path = DEFAULTS_FILE,
) -> dict[str, Any]:
    environ = os.environ if environ is None else environ

    merged = load_yaml_file(defaults_file)
    config_file = environ.get(CONFIG_FILE_ENV)
    if config_file:
        merged.update(load_yaml_file(Path(config_file)))
    merged.update(env_overrides(environ))
    return merged


def load_settings(
    environ: Mapping[str, str] | None = None,
    defaults_file: Path = DEFAULTS_FILE,
) -> EngineSettings:
    return EngineSettings.from_mapping(merge_layers(environ, defaults_file))


def compute_checksum(data: Mapping[str, Any]) -> str:
    """Deterministic SHA-256 of the merged settings, for the config trace."""
    canonical = json.dumps(dict(data), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
