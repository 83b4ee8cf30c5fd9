"""
Settings Validator (``supply_config.validator``).

Responsibility
--------------
Checks value ranges and cross-field consistency of parsed ``LedgerSettings``
before they reach the kernel.

Failure modes
-------------
* Errors  -> ``get_active_settings()`` refuses the configuration.
* Warnings  -> logged; the configuration is still used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from supply_config.schema import LedgerSettings

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class ConfigValidationResult:
    """
    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_settings(settings: LedgerSettings) -> ConfigValidationResult:
    result = ConfigValidationResult()

    def at_least(value: int | float, minimum: int, name: str) -> None:
        if value < minimum:
            result.errors.append(f"{name} must be >= {minimum}, got {value}")

    at_least(settings.stock.low_stock_threshold, 1, "stock.low_stock_threshold")
    at_least(settings.stock.expiring_window_days, 0, "stock.expiring_window_days")

    dashboard = settings.dashboard
    at_least(dashboard.recent_activity_limit, 1, "dashboard.recent_activity_limit")
    at_least(dashboard.alert_limit, 1, "dashboard.alert_limit")
    at_least(dashboard.usage_window_days, 1, "dashboard.usage_window_days")
    at_least(dashboard.trend_months, 1, "dashboard.trend_months")

    data_log = settings.data_log
    at_least(data_log.default_page_size, 1, "data_log.default_page_size")
    at_least(data_log.max_page_size, 1, "data_log.max_page_size")
    if data_log.default_page_size > data_log.max_page_size:
        result.errors.append(
            f"data_log.default_page_size ({data_log.default_page_size}) exceeds "
            f"data_log.max_page_size ({data_log.max_page_size})"
        )

    database = settings.database
    if not database.url.strip():
        result.errors.append("database.url must not be empty")
    at_least(database.pool_size, 1, "database.pool_size")
    at_least(database.max_overflow, 0, "database.max_overflow")
    if database.sqlite_timeout <= 0:
        result.errors.append(f"database.sqlite_timeout must be > 0, got {database.sqlite_timeout}")
    if database.url.startswith("sqlite") and ":memory:" in database.url:
        result.warnings.append("in-memory SQLite database: data is lost when the process exits")

    if settings.logging.level.upper() not in _LOG_LEVELS:
        result.errors.append(
            f"logging.level must be one of {', '.join(sorted(_LOG_LEVELS))}, "
            f"got {settings.logging.level!r}"
        )
    elif logging.getLevelName(settings.logging.level.upper()) == logging.DEBUG:
        result.warnings.append("logging.level DEBUG logs every listing and dashboard build")

    return result
