"""
supply_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads configuration
    files or environment variables.

Architecture position:
    Configuration -- sits above ``supply_kernel``.  The kernel MUST NEVER
    import from ``supply_config``; ``bridges`` translates settings into
    kernel inputs.

Invariants enforced:
    - Single entrypoint: all runtime settings flow through
      ``get_active_settings()``.
    - Validation: settings must pass ``validate_settings`` before they are
      returned.

Environment:
    SUPPLY_LEDGER_CONFIG        path of a YAML file replacing the defaults
    SUPPLY_LEDGER_DATABASE_URL  overrides ``database.url``

Failure modes:
    - ``FileNotFoundError`` -- the configured path does not exist.
    - ``ValueError`` -- parse or validation failures.

Audit relevance:
    Every successful call emits a ``SUPPLY_CONFIG_TRACE`` log entry with
    the config id, version, checksum, and source path.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from supply_config.loader import load_settings
from supply_config.schema import LedgerSettings
from supply_config.validator import validate_settings
from supply_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "ledger.yaml"

CONFIG_PATH_ENV = "SUPPLY_LEDGER_CONFIG"
DATABASE_URL_ENV = "SUPPLY_LEDGER_DATABASE_URL"


def get_active_settings(config_path: Path | str | None = None) -> LedgerSettings:
    """
    The ONLY public configuration entrypoint.

    Args:
        config_path: Explicit settings file.  Takes precedence over
            SUPPLY_LEDGER_CONFIG and the shipped defaults.

    Returns:
        Validated LedgerSettings.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        ValueError: If parsing or validation fails.
    """
    path = Path(config_path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    settings = load_settings(path)

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        settings = replace(settings, database=replace(settings.database, url=database_url))

    validation = validate_settings(settings)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_warning", extra={"warning": warning})

    _logger.info(
        "SUPPLY_CONFIG_TRACE",
        extra={
            "trace_type": "SUPPLY_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "source": str(path),
            "database_url_overridden": bool(database_url),
        },
    )
    return settings


__all__ = ["LedgerSettings", "get_active_settings"]
