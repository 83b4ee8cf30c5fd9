"""Tests for the dashboard aggregates."""

from datetime import datetime, timedelta, timezone

import pytest

from supply_kernel.domain.dtos import UsageRow
from supply_kernel.domain.stock import StockPolicy
from supply_kernel.selectors.dashboard_selector import (
    DashboardLimits,
    DashboardSelector,
    count_procedures,
)


class TestProcedureCounting:
    def test_rows_of_one_procedure_count_once(self):
        day = datetime(2024, 6, 10, 9, 0, tzinfo=timezone.utc)
        rows = [
            UsageRow("P-1", "Angioplasty", day, 1),
            UsageRow("P-1", "Angioplasty", day + timedelta(hours=3), 2),
            UsageRow("P-1", "Angioplasty", day + timedelta(hours=5), 1),
        ]
        assert count_procedures(rows) == 1

    def test_distinct_day_patient_or_name(self):
        day = datetime(2024, 6, 10, 9, 0, tzinfo=timezone.utc)
        rows = [
            UsageRow("P-1", "Angioplasty", day, 1),
            UsageRow("P-1", "Angioplasty", day + timedelta(days=1), 1),
            UsageRow("P-2", "Angioplasty", day, 1),
            UsageRow("P-1", "Angiography", day, 1),
        ]
        assert count_procedures(rows) == 4


class TestDashboardLimits:
    def test_rejects_zero(self):
        with pytest.raises(ValueError):
            DashboardLimits(alert_limit=0)


class TestGetDashboard:
    def test_expiring_alerts_exclude_expired_batches(self, ledger, make_material, make_batch):
        material = make_material()
        soon = make_batch(material.id, quantity=4, expires_in_days=10)
        expired = make_batch(material.id, quantity=4, expires_in_days=-2)
        make_batch(material.id, quantity=4, expires_in_days=60)

        dashboard = ledger.get_dashboard()

        alert_ids = [a.batch_id for a in dashboard.expiring_soon_alerts]
        assert alert_ids == [soon.id]
        assert expired.id not in alert_ids
        assert dashboard.summary_stats.expiring_soon_count == 1
        # The classifier still flags the material because of the expired batch
        assert "expiring soon" in ledger.get_material(material.id).statuses

    def test_empty_batches_do_not_alert(self, ledger, make_material, make_batch):
        make_batch(make_material().id, quantity=4, remaining=0, expires_in_days=5)
        assert ledger.get_dashboard().expiring_soon_alerts == ()

    def test_low_stock_counts_materials(self, ledger, make_material, make_batch):
        low = make_material("Low")
        make_batch(low.id, quantity=2)
        make_batch(low.id, quantity=1)
        make_batch(make_material("Plenty").id, quantity=10)
        make_material("Empty")

        dashboard = ledger.get_dashboard()

        assert [a.name for a in dashboard.low_stock_alerts] == ["Low"]
        assert dashboard.low_stock_alerts[0].total_quantity == 3
        assert dashboard.summary_stats.low_stock_count == 1

    def test_alert_cap_keeps_uncapped_count(self, session, deterministic_clock, make_material, make_batch):
        for index in range(3):
            make_batch(make_material(f"Item {index}").id, quantity=1)
        selector = DashboardSelector(session, deterministic_clock, limits=DashboardLimits(alert_limit=2))

        dashboard = selector.get_dashboard()

        assert len(dashboard.low_stock_alerts) == 2
        assert dashboard.summary_stats.low_stock_count == 3

    def test_policy_threshold(self, session, deterministic_clock, make_material, make_batch):
        make_batch(make_material().id, quantity=8)
        selector = DashboardSelector(session, deterministic_clock, StockPolicy(low_stock_threshold=10))
        assert selector.get_dashboard().summary_stats.low_stock_count == 1

    def test_recent_procedures(self, ledger, clerk, make_material, make_batch, procedure, deterministic_clock):
        batch = make_batch(make_material().id, quantity=20)
        now = deterministic_clock.now()
        for offset in (0, 1, 2):
            ledger.record_usage(batch.id, 1, procedure(procedure_date=now - timedelta(hours=offset)), clerk.id)
        ledger.record_usage(batch.id, 1, procedure(patient_id="P-2002"), clerk.id)
        ledger.record_usage(batch.id, 1, procedure(procedure_date=now - timedelta(days=45)), clerk.id)

        assert ledger.get_dashboard().summary_stats.recent_procedures == 2

    def test_summary_counts(self, ledger, make_material, make_batch):
        material = make_material()
        make_batch(material.id, quantity=5)
        make_batch(material.id, quantity=5, remaining=0)

        stats = ledger.get_dashboard().summary_stats

        assert stats.total_materials == 1
        assert stats.active_batches == 1
        assert stats.total_vendors == 1
        assert stats.total_documents == 0

    def test_monthly_trends(self, ledger, clerk, make_material, make_batch, procedure):
        batch = make_batch(make_material().id, quantity=20)
        april = datetime(2024, 4, 3, 10, 0, tzinfo=timezone.utc)
        ledger.record_usage(batch.id, 2, procedure(procedure_date=april), clerk.id)
        ledger.record_usage(batch.id, 3, procedure(procedure_date=april + timedelta(hours=1)), clerk.id)
        ledger.record_usage(batch.id, 1, procedure(), clerk.id)

        trends = ledger.get_dashboard().monthly_usage_trends

        assert [t.month for t in trends] == [
            "2024-06", "2024-05", "2024-04", "2024-03", "2024-02", "2024-01",
        ]
        by_month = {t.month: t for t in trends}
        assert (by_month["2024-04"].procedure_count, by_month["2024-04"].total_quantity) == (1, 5)
        assert (by_month["2024-06"].procedure_count, by_month["2024-06"].total_quantity) == (1, 1)
        assert by_month["2024-05"].total_quantity == 0

    def test_inventory_by_category(self, ledger, admin, make_material, make_batch):
        make_batch(make_material().id, quantity=7)
        ledger.create_reference("material_type", {"name": "Guidewire"}, admin.id)

        categories = ledger.get_dashboard().inventory_by_category

        assert [(c.name, c.material_count, c.total_stock) for c in categories] == [
            ("Stent", 1, 7),
            ("Guidewire", 0, 0),
        ]

    def test_advance_materials_used(self, ledger, clerk, make_material, make_batch, procedure):
        advance = make_batch(make_material("Consigned").id, quantity=5, purchase_type="Advance")
        purchased = make_batch(make_material("Owned").id, quantity=5)
        ledger.record_usage(advance.id, 2, procedure(), clerk.id)
        ledger.record_usage(purchased.id, 1, procedure(), clerk.id)

        used = ledger.get_dashboard().advance_materials_used

        assert [(u.name, u.quantity_used) for u in used] == [("Consigned", 2)]

    def test_recent_activity_newest_first(self, ledger, admin, make_material, deterministic_clock):
        make_material("First")
        deterministic_clock.advance(60)
        make_material("Second")

        activity = ledger.get_dashboard().recent_activity

        assert activity[0].description == "Created material: Second"
        assert activity[0].username == "admin"
