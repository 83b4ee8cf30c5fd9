"""Tests for document records and their batch links."""

import warnings

import pytest
from sqlalchemy.exc import SAWarning

from supply_kernel.exceptions import DuplicateNameError, ForbiddenError, ValidationError
from supply_kernel.models.document import Document
from supply_kernel.models.material import Batch


@pytest.fixture
def invoice_fields(deterministic_clock):
    return {
        "document_type": "Invoice",
        "document_number": "INV-2024-001",
        "document_date": deterministic_clock.now().date().isoformat(),
        "vendor_name": "Central Surgical Supply",
        "file_ref": "documents/inv-2024-001.pdf",
    }


class TestDocuments:
    def test_create(self, ledger, make_user, invoice_fields, data_log_rows):
        clerk = make_user("docs", ["EditDocuments"])
        document = ledger.create_document(invoice_fields, clerk.id)

        assert document.document_number == "INV-2024-001"
        assert document.document_date.isoformat() == "2024-06-15T00:00:00+00:00"
        assert document.batch_count == 0
        rows = data_log_rows("Document", document.id)
        assert rows[0].new_values["file_ref"] == "documents/inv-2024-001.pdf"

    def test_duplicate_number(self, ledger, admin, invoice_fields):
        ledger.create_document(invoice_fields, admin.id)
        with pytest.raises(DuplicateNameError) as exc_info:
            ledger.create_document(invoice_fields, admin.id)
        assert exc_info.value.field == "document_number"

    def test_required_fields(self, ledger, admin, invoice_fields):
        del invoice_fields["vendor_name"]
        with pytest.raises(ValidationError):
            ledger.create_document(invoice_fields, admin.id)

    def test_requires_edit_documents(self, ledger, editor, invoice_fields):
        with pytest.raises(ForbiddenError):
            ledger.create_document(invoice_fields, editor.id)

    def test_update(self, ledger, admin, invoice_fields):
        document = ledger.create_document(invoice_fields, admin.id)
        updated = ledger.update_document(
            document.id, {"document_type": "Delivery Challan", "file_ref": ""}, admin.id
        )
        assert updated.document_type == "Delivery Challan"
        assert updated.file_ref is None

    def test_batch_created_with_link(
        self, session, ledger, admin, invoice_fields, make_material, make_batch
    ):
        document = ledger.create_document(invoice_fields, admin.id)
        material = make_material()

        with warnings.catch_warnings():
            warnings.simplefilter("error", SAWarning)
            batch = make_batch(material.id, quantity=8, document_id=document.id)

        assert batch.document_id == document.id
        assert [b.id for b in session.get(Document, document.id).batches] == [batch.id]

    def test_delete_unlinks_batches(
        self, session, ledger, admin, invoice_fields, make_material, make_batch, data_log_rows
    ):
        document = ledger.create_document(invoice_fields, admin.id)
        batch = make_batch(make_material().id, quantity=8, document_id=document.id)

        ledger.delete_document(document.id, admin.id)

        remaining = session.get(Batch, batch.id)
        assert remaining.document_id is None
        assert remaining.quantity == 8
        deleted = [r for r in data_log_rows("Document", document.id) if r.action == "DELETE"][0]
        assert deleted.old_values["batch_ids"] == [str(batch.id)]
