"""
Append-only data log and frozen batch receipt fields.

ORM listeners reject changes at flush time; CHECK constraints reject bulk
statements that bypass the ORM.
"""

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from supply_kernel.exceptions import ImmutabilityViolationError, InvalidQuantityError
from supply_kernel.models.data_log import DataLog
from supply_kernel.models.material import Batch


@pytest.fixture
def entry(session, ledger, admin):
    result = ledger.audit_logger.log_create("Vendor", "v-1", admin.id, {"name": "Acme"})
    return session.get(DataLog, result.log_id)


class TestDataLogAppendOnly:
    def test_update_rejected(self, session, entry):
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            with session.begin_nested():
                entry.description = "rewritten"
                session.flush()
        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"

    def test_delete_rejected(self, session, entry):
        with pytest.raises(ImmutabilityViolationError):
            with session.begin_nested():
                session.delete(entry)
                session.flush()

    def test_values_unchanged_after_rejection(self, session, entry):
        log_id = entry.id
        with pytest.raises(ImmutabilityViolationError):
            with session.begin_nested():
                entry.new_values = {"name": "Forged"}
                session.flush()
        session.expire_all()
        assert session.get(DataLog, log_id).new_values == {"name": "Acme"}

    def test_blocked_change_is_logged(self, session, entry, captured_logs):
        with pytest.raises(ImmutabilityViolationError):
            with session.begin_nested():
                entry.table_name = "Material"
                session.flush()
        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["entity_type"] == "DataLog"


class TestBatchReceiptFields:
    def test_initial_quantity_frozen(self, session, make_material, make_batch):
        batch = session.get(Batch, make_batch(make_material().id, quantity=6).id)
        with pytest.raises(ImmutabilityViolationError):
            with session.begin_nested():
                batch.initial_quantity = 60
                session.flush()

    def test_quantity_bounds_on_flush(self, session, make_material, make_batch):
        batch = session.get(Batch, make_batch(make_material().id, quantity=6).id)
        with pytest.raises(InvalidQuantityError):
            with session.begin_nested():
                batch.quantity = 7
                session.flush()

    def test_check_constraint_on_bulk_update(self, session, make_material, make_batch):
        batch_id = make_batch(make_material().id, quantity=6).id
        with pytest.raises(IntegrityError):
            with session.begin_nested():
                session.execute(update(Batch).where(Batch.id == batch_id).values(quantity=-1))
