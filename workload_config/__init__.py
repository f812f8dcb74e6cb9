"""
workload_config -- single public entrypoint for engine settings.

Responsibility:
    Provides the ONLY way to obtain runtime settings, through
    ``get_settings()``.  Services receive the values they need through
    their constructors and never read files or the environment.

Architecture position:
    Configuration.  The kernel MUST NEVER import from ``workload_config``;
    entry points (scripts, application wiring) read settings and pass them
    down.

Failure modes:
    - ``ValueError`` -- unknown key or malformed value in any layer.
    - ``FileNotFoundError`` -- ``WORKLOAD_CONFIG_FILE`` names a missing file.
"""

from __future__ import annotations

import logging
from typing import Mapping

from workload_config.loader import compute_checksum, load_settings, merge_layers
from workload_config.schema import EngineSettings

_logger = logging.getLogger("workload_kernel.config")


def get_settings(environ: Mapping[str, str] | None = None) -> EngineSettings:
    """
    Merge the settings layers and return a frozen ``EngineSettings``.

    Not cached: each call re-reads the layers, so tests can vary the
    environment per call.
    """
    merged = merge_layers(environ)
    settings = EngineSettings.from_mapping(merged)

    _logger.info(
        "WORKLOAD_CONFIG_TRACE",
        extra={
            "trace_type": "WORKLOAD_CONFIG_TRACE",
            "checksum": compute_checksum(
                {k: v for k, v in merged.items() if k != "confirmation_secret"}
            ),
            "log_level": settings.log_level,
            "currency": settings.currency,
            "notifications_enabled": settings.notifications_enabled,
        },
    )
    if settings.uses_default_secret:
        _logger.warning("default_confirmation_secret_in_use")
    return settings


__all__ = [
    "EngineSettings",
    "get_settings",
    "load_settings",
]
