"""
Module: supply_kernel.selectors.dashboard_selector
Responsibility: Assembles the dashboard from AggregateQueries results.
Architecture position: Kernel > Selectors.  Depends on the AggregateQueries
    interface, the injected Clock, and StockPolicy.

Invariants enforced:
    - A procedure is the composite key (patient_id, procedure_name, UTC day
      of procedure_date).  Several usage rows of one procedure count once.
    - monthly_usage_trends always holds trend_months entries, newest first,
      including the current month; months without usage are zero-filled.
    - Caps and windows come from DashboardLimits; the low-stock threshold
      and expiring window come from StockPolicy.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.orm import Session

from supply_kernel.domain.clock import Clock
from supply_kernel.domain.dtos import Dashboard, MonthlyUsage, SummaryStats, UsageRow
from supply_kernel.domain.stock import DEFAULT_STOCK_POLICY, StockPolicy
from supply_kernel.domain.values import days_ago, month_start, shift_months, utc_day
from supply_kernel.logging_config import get_logger
from supply_kernel.selectors.aggregate_queries import AggregateQueries, SqlAggregateQueries
from supply_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.dashboard")


@dataclass(frozen=True)
class DashboardLimits:
    recent_activity_limit: int = 10
    alert_limit: int = 10
    usage_window_days: int = 30
    trend_months: int = 6

    def __post_init__(self) -> None:
        for name in ("recent_activity_limit", "alert_limit", "usage_window_days", "trend_months"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")


def procedure_key(row: UsageRow) -> tuple[str, str, object]:
    return (row.patient_id, row.procedure_name, utc_day(row.procedure_date))


def count_procedures(rows: Iterable[UsageRow]) -> int:
    return len({procedure_key(row) for row in rows})


class DashboardSelector(BaseSelector):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: StockPolicy = DEFAULT_STOCK_POLICY,
        limits: DashboardLimits | None = None,
        queries: AggregateQueries | None = None,
    ):
        super().__init__(session, clock)
        self.policy = policy
        self.limits = limits or DashboardLimits()
        self.queries = queries or SqlAggregateQueries(session)

    def get_dashboard(self) -> Dashboard:
        now = self.clock.now()
        limits = self.limits

        low_stock, low_stock_count = self.queries.low_stock_summary(
            self.policy.low_stock_threshold, limits.alert_limit
        )
        expiring, expiring_count = self.queries.expiring_soon_summary(
            now, self.policy.expiring_window, limits.alert_limit
        )
        counts = self.queries.count_summary()

        window_start = days_ago(now, limits.usage_window_days)
        trend_start = shift_months(month_start(now), -(limits.trend_months - 1))
        usage_rows = self.queries.usage_rows_since(min(window_start, trend_start))

        recent_procedures = count_procedures(
            row for row in usage_rows if row.procedure_date >= window_start
        )

        dashboard = Dashboard(
            recent_activity=self.queries.recent_activity(limits.recent_activity_limit),
            low_stock_alerts=low_stock,
            expiring_soon_alerts=expiring,
            summary_stats=SummaryStats(
                total_materials=counts.total_materials,
                active_batches=counts.active_batches,
                total_vendors=counts.total_vendors,
                recent_procedures=recent_procedures,
                total_documents=counts.total_documents,
                low_stock_count=low_stock_count,
                expiring_soon_count=expiring_count,
            ),
            inventory_by_category=self.queries.inventory_by_category(),
            monthly_usage_trends=self._monthly_trends(usage_rows, now),
            advance_materials_used=self.queries.advance_materials_used(
                window_start, limits.alert_limit
            ),
        )
        logger.debug(
            "dashboard_built",
            extra={
                "low_stock_count": low_stock_count,
                "expiring_soon_count": expiring_count,
                "recent_procedures": recent_procedures,
            },
        )
        return dashboard

    def _monthly_trends(self, rows: Iterable[UsageRow], now) -> tuple[MonthlyUsage, ...]:
        current = month_start(now)
        months = [
            shift_months(current, -offset).strftime("%Y-%m")
            for offset in range(self.limits.trend_months)
        ]
        keys: dict[str, set] = defaultdict(set)
        totals: dict[str, int] = defaultdict(int)
        for row in rows:
            month = month_start(row.procedure_date).strftime("%Y-%m")
            keys[month].add(procedure_key(row))
            totals[month] += row.quantity
        return tuple(
            MonthlyUsage(month=m, procedure_count=len(keys[m]), total_quantity=totals[m])
            for m in months
        )
