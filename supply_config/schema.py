"""
Settings Schema (``supply_config.schema``).

Responsibility
--------------
Frozen dataclasses describing every tunable of the ledger.  Defaults here
match ``defaults/ledger.yaml`` so a partial file only overrides what it
names.

Architecture position
---------------------
**Config layer** -- pure data.  No dependency on the kernel.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StockSettings:
    low_stock_threshold: int = 5
    expiring_window_days: int = 30


@dataclass(frozen=True)
class DashboardSettings:
    recent_activity_limit: int = 10
    alert_limit: int = 10
    usage_window_days: int = 30
    trend_months: int = 6


@dataclass(frozen=True)
class DataLogSettings:
    default_page_size: int = 50
    max_page_size: int = 200


@dataclass(frozen=True)
class InventorySettings:
    # False keeps total_count at the store-stage match count
    total_count_includes_batch_facets: bool = False


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///supply_ledger.db"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10
    sqlite_timeout: float = 30.0


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class LedgerSettings:
    """
    Complete, parsed ledger configuration.

    Contract
    --------
    * ``checksum`` is the SHA-256 of the canonical JSON form of the source
      mapping; identical files produce identical checksums.
    """

    config_id: str = "default"
    version: int = 1
    stock: StockSettings = field(default_factory=StockSettings)
    dashboard: DashboardSettings = field(default_factory=DashboardSettings)
    data_log: DataLogSettings = field(default_factory=DataLogSettings)
    inventory: InventorySettings = field(default_factory=InventorySettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
