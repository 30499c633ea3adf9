"""
YAML loading for ledger settings.

Reads a settings document, overlays environment overrides and parses the
result into a ``LedgerSettings``.  Only ``relief_config.get_active_settings``
is expected to call into this module at runtime.
"""

from __future__ import annotations

import copy
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from relief_config.schema import LedgerSettings

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "RELIEF_DATABASE_URL": ("database", "url"),
    "RELIEF_LOG_LEVEL": ("logging", "level"),
}


def load_yaml_file(path: Path | str) -> dict[str, Any]:
    """
    Load a YAML file and return its parsed contents.

    Raises:
        FileNotFoundError: if ``path`` does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return a copy of ``data`` with any set override variables applied."""
    environ = os.environ if environ is None else environ
    merged = copy.deepcopy(data)
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            merged.setdefault(section, {})
            if merged[section] is None:
                merged[section] = {}
            merged[section][key] = value
    return merged


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Load settings from ``path`` (or the packaged defaults) with overrides.

    Raises:
        FileNotFoundError: if an explicit ``path`` does not exist.
        ValueError: if the document fails schema validation.
    """
    data = load_yaml_file(path if path is not None else DEFAULTS_PATH)
    return LedgerSettings.from_dict(apply_env_overrides(data, environ))
