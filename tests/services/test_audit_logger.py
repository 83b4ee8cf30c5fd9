"""
Tests for the AuditLogger.

The data log is written after the primary change in the same transaction.
If the append fails, the primary change stands and the failure is counted
and reported through structured logging.
"""

from decimal import Decimal

import pytest

from supply_kernel.domain.dtos import LogAppendStatus
from supply_kernel.models.data_log import DataLog, DataLogAction
from supply_kernel.models.material import Material


class TestAppend:
    def test_create_row(self, session, ledger, admin, deterministic_clock):
        result = ledger.audit_logger.log_create(
            "Vendor", "abc", admin.id, {"name": "Acme", "cost": Decimal("12.50")}
        )

        assert result.status == LogAppendStatus.OK
        entry = session.get(DataLog, result.log_id)
        assert entry.action == DataLogAction.CREATE
        assert entry.old_values is None
        assert entry.new_values == {"name": "Acme", "cost": "12.50"}
        assert entry.description == "Created Vendor"
        assert entry.timestamp.replace(tzinfo=None) == deterministic_clock.now().replace(tzinfo=None)

    def test_update_row_keeps_both_states(self, session, ledger, admin):
        result = ledger.audit_logger.log_update(
            "Material", "m-1", admin.id, {"name": "Old"}, {"name": "New"}, "Renamed"
        )
        entry = session.get(DataLog, result.log_id)
        assert entry.action == "UPDATE"
        assert entry.old_values == {"name": "Old"}
        assert entry.new_values == {"name": "New"}
        assert entry.description == "Renamed"

    def test_delete_row_has_no_new_values(self, session, ledger, admin):
        result = ledger.audit_logger.log_delete("Batch", "b-1", admin.id, {"quantity": 3})
        entry = session.get(DataLog, result.log_id)
        assert entry.new_values is None
        assert entry.old_values == {"quantity": 3}

    def test_invalid_action_is_a_failure_not_an_exception(self, ledger, admin):
        result = ledger.audit_logger.append("ARCHIVE", "Batch", "b-1", admin.id)
        assert result.status == LogAppendStatus.FAILED
        assert ledger.audit_logger.failure_count == 1


class TestAppendFailureGap:
    """A failed append never undoes the primary write."""

    @pytest.fixture
    def broken_writer(self, ledger, monkeypatch):
        def fail(entry):
            raise RuntimeError("data log unavailable")

        monkeypatch.setattr(ledger.audit_logger, "_write_entry", fail)
        return ledger.audit_logger

    def test_primary_write_survives(self, session, ledger, admin, brand, material_type, broken_writer):
        view = ledger.create_material(
            {"name": "Guidewire", "brand_id": brand.id, "material_type_id": material_type.id},
            admin.id,
        )

        assert session.get(Material, view.id) is not None
        assert broken_writer.failure_count == 1

    def test_no_row_written(self, session, ledger, admin, brand, material_type, broken_writer, data_log_rows):
        view = ledger.create_material(
            {"name": "Guidewire", "brand_id": brand.id, "material_type_id": material_type.id},
            admin.id,
        )
        assert data_log_rows("Material", view.id) == []

    def test_failure_reported(self, ledger, admin, brand, material_type, broken_writer, captured_logs):
        ledger.create_material(
            {"name": "Guidewire", "brand_id": brand.id, "material_type_id": material_type.id},
            admin.id,
        )

        failures = [r for r in captured_logs() if r["message"] == "data_log_append_failed"]
        assert len(failures) == 1
        assert failures[0]["level"] == "ERROR"
        assert failures[0]["log_table"] == "Material"
        assert failures[0]["failure_count"] == 1
        assert failures[0]["exc_message"] == "data log unavailable"

    def test_failures_accumulate(self, ledger, admin, broken_writer):
        for name in ("Abbott", "Terumo", "Cook Medical"):
            ledger.create_reference("brand", {"name": name}, admin.id)
        assert broken_writer.failure_count == 3
