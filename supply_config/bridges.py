"""
Config -> Kernel Bridges.

Functions that convert ``LedgerSettings`` into kernel inputs.  These live in
supply_config (the producer) because the kernel must never import
supply_config.

Usage:
    from supply_config import get_active_settings
    from supply_config.bridges import build_orchestrator

    settings = get_active_settings()
    with session_scope() as session:
        ledger = build_orchestrator(session, settings)
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from supply_config.schema import LedgerSettings
from supply_kernel.domain.clock import Clock
from supply_kernel.domain.stock import StockPolicy
from supply_kernel.selectors.dashboard_selector import DashboardLimits
from supply_kernel.selectors.inventory_selector import ListingOptions
from supply_kernel.services.inventory_orchestrator import InventoryOrchestrator


def stock_policy_from_settings(settings: LedgerSettings) -> StockPolicy:
    return StockPolicy(
        low_stock_threshold=settings.stock.low_stock_threshold,
        expiring_window_days=settings.stock.expiring_window_days,
    )


def dashboard_limits_from_settings(settings: LedgerSettings) -> DashboardLimits:
    dashboard = settings.dashboard
    return DashboardLimits(
        recent_activity_limit=dashboard.recent_activity_limit,
        alert_limit=dashboard.alert_limit,
        usage_window_days=dashboard.usage_window_days,
        trend_months=dashboard.trend_months,
    )


def listing_options_from_settings(settings: LedgerSettings) -> ListingOptions:
    return ListingOptions(
        total_count_includes_batch_facets=settings.inventory.total_count_includes_batch_facets,
    )


def engine_kwargs_from_settings(settings: LedgerSettings) -> dict[str, Any]:
    """Keyword arguments for supply_kernel.db.engine.init_engine_from_url."""
    database = settings.database
    return {
        "echo": database.echo,
        "pool_size": database.pool_size,
        "max_overflow": database.max_overflow,
        "sqlite_timeout": database.sqlite_timeout,
    }


def build_orchestrator(
    session: Session,
    settings: LedgerSettings,
    clock: Clock | None = None,
    **overrides: Any,
) -> InventoryOrchestrator:
    """Construct an InventoryOrchestrator wired with the configured policies."""
    kwargs: dict[str, Any] = {
        "policy": stock_policy_from_settings(settings),
        "dashboard_limits": dashboard_limits_from_settings(settings),
        "listing_options": listing_options_from_settings(settings),
        "default_page_size": settings.data_log.default_page_size,
        "max_page_size": settings.data_log.max_page_size,
    }
    kwargs.update(overrides)
    return InventoryOrchestrator(session, clock=clock, **kwargs)
