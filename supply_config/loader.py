"""
Settings Loader (``supply_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into ``LedgerSettings``.  This is
internal tooling; runtime callers use ``supply_config.get_active_settings()``.

Invariants enforced
-------------------
* Unknown sections or keys are errors, so a misspelled key never silently
  falls back to a default.
* Value types are checked against the dataclass defaults (bool is not
  accepted where an int is expected).
* ``compute_checksum`` is deterministic for equal mappings.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or wrong type  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from supply_config.schema import (
    DashboardSettings,
    DatabaseSettings,
    DataLogSettings,
    InventorySettings,
    LedgerSettings,
    LoggingSettings,
    StockSettings,
)

_SECTIONS: dict[str, type] = {
    "stock": StockSettings,
    "dashboard": DashboardSettings,
    "data_log": DataLogSettings,
    "inventory": InventorySettings,
    "database": DatabaseSettings,
    "logging": LoggingSettings,
}

_TOP_LEVEL = {"config_id", "version", *_SECTIONS}


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
        raise ValueError(f"{path}: top-level YAML must be a mapping, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _check_type(section: str, name: str, value: Any, default: Any) -> Any:
    expected = type(default)
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, bool) != (expected is bool) or not isinstance(value, expected):
        raise ValueError(
            f"{section}.{name}: expected {expected.__name__}, got {type(value).__name__}"
        )
    return value


def _parse_section(name: str, cls: type, data: Any) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"{name}: expected a mapping, got {type(data).__name__}")
    defaults = cls()
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"{name}: unknown key(s) {', '.join(unknown)}")
    values = {
        key: _check_type(name, key, value, getattr(defaults, key))
        for key, value in data.items()
    }
    return cls(**values)


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """Parse a loaded mapping into LedgerSettings."""
    unknown = sorted(set(data) - _TOP_LEVEL)
    if unknown:
        raise ValueError(f"unknown top-level key(s) {', '.join(unknown)}")

    sections = {name: _parse_section(name, cls, data.get(name)) for name, cls in _SECTIONS.items()}
    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int):
        raise ValueError(f"version: expected int, got {type(version).__name__}")

    return LedgerSettings(
        config_id=str(data.get("config_id", "default")),
        version=version,
        checksum=compute_checksum(data),
        **sections,
    )


def load_settings(path: Path) -> LedgerSettings:
    return parse_settings(load_yaml_file(path))
