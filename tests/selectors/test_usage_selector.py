"""Tests for usage listings and procedure lookup."""

from datetime import date, timedelta

import pytest

from supply_kernel.exceptions import NotFoundError, ValidationError


@pytest.fixture
def usage(ledger, clerk, make_material, make_batch, procedure, deterministic_clock):
    stent = make_material("Drug-Eluting Stent")
    wire = make_material("Guidewire")
    stent_batch = make_batch(stent.id, quantity=10)
    wire_batch = make_batch(wire.id, quantity=10)
    now = deterministic_clock.now()

    first = ledger.record_usage(stent_batch.id, 1, procedure(), clerk.id)
    deterministic_clock.advance(30)
    second = ledger.record_usage(wire_batch.id, 2, procedure(), clerk.id)
    older = ledger.record_usage(
        stent_batch.id, 1,
        procedure(patient_name="John Doe", patient_id="P-2002", physician="Dr. Iyer",
                  procedure_date=now - timedelta(days=3)),
        clerk.id,
    )
    return {
        "stent": stent, "stent_batch": stent_batch, "wire_batch": wire_batch,
        "first": first, "second": second, "older": older,
    }


class TestListUsage:
    def test_most_recent_procedure_first(self, ledger, usage):
        rows = ledger.list_usage()
        assert rows[-1].id == usage["older"].id
        assert len(rows) == 3

    def test_search_patient_or_material(self, ledger, usage):
        assert [r.id for r in ledger.list_usage({"search": "john"})] == [usage["older"].id]
        assert [r.id for r in ledger.list_usage({"search": "guidewire"})] == [usage["second"].id]

    def test_physician(self, ledger, usage):
        assert [r.id for r in ledger.list_usage({"physician": "Dr. Iyer"})] == [usage["older"].id]

    def test_date_range(self, ledger, usage):
        rows = ledger.list_usage({"date_from": date(2024, 6, 12), "date_to": date(2024, 6, 12)})
        assert [r.id for r in rows] == [usage["older"].id]

    def test_date_range_from_strings(self, ledger, usage):
        rows = ledger.list_usage({"date_from": "2024-06-12", "date_to": "2024-06-12"})
        assert [r.id for r in rows] == [usage["older"].id]

    def test_blank_date_is_absent(self, ledger, usage):
        assert len(ledger.list_usage({"date_from": "", "date_to": None})) == 3

    def test_malformed_date(self, ledger, usage):
        with pytest.raises(ValidationError) as exc_info:
            ledger.list_usage({"date_to": "next tuesday"})
        assert exc_info.value.field == "date_to"

    def test_batch_takes_precedence_over_material(self, ledger, usage):
        rows = ledger.list_usage(
            {"material_id": usage["stent"].id, "batch_id": usage["wire_batch"].id}
        )
        assert [r.id for r in rows] == [usage["second"].id]

    def test_material(self, ledger, usage):
        rows = ledger.list_usage({"material_id": usage["stent"].id})
        assert {r.id for r in rows} == {usage["first"].id, usage["older"].id}


class TestProcedureRecords:
    def test_rows_of_one_procedure(self, ledger, usage, deterministic_clock):
        rows = ledger.procedure_records(
            "Jane Roe", "P-1001", "Angioplasty", deterministic_clock.now().date()
        )
        assert {r.id for r in rows} == {usage["first"].id, usage["second"].id}

    def test_accepts_datetime(self, ledger, usage, deterministic_clock):
        rows = ledger.procedure_records(
            "Jane Roe", "P-1001", "Angioplasty", deterministic_clock.now()
        )
        assert len(rows) == 2

    def test_unknown_procedure(self, ledger, usage):
        with pytest.raises(NotFoundError):
            ledger.procedure_records("Jane Roe", "P-1001", "Angioplasty", date(2023, 1, 1))
