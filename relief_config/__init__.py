"""
relief_config -- single public entrypoint for ledger settings.

Runtime code obtains settings only through ``get_active_settings()``.
The kernel never imports from this package; ``relief_services.runtime``
passes the relevant values into kernel constructors.

Every call emits a ``RELIEF_CONFIG_TRACE`` log entry with the settings
checksum so a deployment can show which configuration was in force.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from relief_config.loader import load_settings
from relief_config.schema import (
    AnalyticsSettings,
    DatabaseSettings,
    LedgerPolicy,
    LedgerSettings,
    LoggingSettings,
)

__all__ = [
    "AnalyticsSettings",
    "DatabaseSettings",
    "LedgerPolicy",
    "LedgerSettings",
    "LoggingSettings",
    "get_active_settings",
]

_logger = logging.getLogger("relief_kernel.config")


def get_active_settings(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Load and validate the settings in force.

    Args:
        config_path: YAML document to read; the packaged defaults when None.
        environ: Environment used for overrides; ``os.environ`` when None.
    """
    settings = load_settings(config_path, environ)
    _logger.info(
        "RELIEF_CONFIG_TRACE",
        extra={
            "source": str(config_path) if config_path is not None else "defaults",
            "checksum": settings.checksum,
            "log_level": settings.logging.level,
            "max_update_attempts": settings.ledger.max_update_attempts,
        },
    )
    return settings
