"""
DocumentService -- guarded CRUD for purchase documents.

Responsibility:
    Registers document metadata (type, number, date, vendor, file handle)
    that batches may link to.  Capability: Edit Documents.

Invariants enforced:
    - document_number is unique (DuplicateNameError).
    - Deleting a document unlinks its batches; the batches themselves and
      their stock are untouched.

Non-goals:
    - File bytes.  file_ref is an opaque handle supplied by the caller.
"""

from typing import Any, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from supply_kernel.domain.clock import Clock
from supply_kernel.domain.dtos import ChangeRecord, DocumentView
from supply_kernel.domain.permissions import Capability
from supply_kernel.domain.values import snapshot
from supply_kernel.exceptions import DuplicateNameError
from supply_kernel.logging_config import get_logger
from supply_kernel.models.document import Document
from supply_kernel.services.base import (
    BaseService,
    coerce_datetime,
    coerce_uuid,
    reject_unknown_fields,
    require_fields,
)
from supply_kernel.services.mutation_guard import Actor, Mutation, MutationGuard

logger = get_logger("services.document")

DOCUMENT_FIELDS = ("document_type", "document_number", "document_date", "vendor_name", "file_ref")
REQUIRED_FIELDS = ("document_type", "document_number", "document_date", "vendor_name")


def _prepare(fields: Mapping[str, Any]) -> dict[str, Any]:
    prepared = {k: (v.strip() if isinstance(v, str) else v) for k, v in fields.items()}
    if prepared.get("document_date") is not None:
        prepared["document_date"] = coerce_datetime(prepared["document_date"], "document_date")
    if "file_ref" in prepared:
        prepared["file_ref"] = prepared["file_ref"] or None
    return prepared


class DocumentService(BaseService):
    def __init__(self, session: Session, guard: MutationGuard, clock: Clock | None = None):
        super().__init__(session, clock)
        self._guard = guard

    def create_document(self, fields: Mapping[str, Any], user_id: UUID | str) -> DocumentView:
        fields = dict(fields)
        reject_unknown_fields(fields, DOCUMENT_FIELDS)
        require_fields(fields, REQUIRED_FIELDS)
        values = _prepare(fields)

        def create_document(actor: Actor) -> Mutation[DocumentView]:
            self._check_unique(values["document_number"])
            document = Document(created_by_id=actor.user_id, **values)
            self.session.add(document)
            self.session.flush()

            logger.info(
                "document_created",
                extra={"document_id": str(document.id), "document_number": document.document_number},
            )
            return Mutation(
                result=DocumentView.from_model(document),
                change=ChangeRecord(
                    action="CREATE",
                    table_name="Document",
                    record_id=str(document.id),
                    new_values=snapshot(document, DOCUMENT_FIELDS),
                    description=f"Created document: {document.document_number}",
                ),
            )

        return self._guard.execute(user_id, Capability.EDIT_DOCUMENTS, create_document).value

    def update_document(
        self,
        document_id: UUID | str,
        fields: Mapping[str, Any],
        user_id: UUID | str,
    ) -> DocumentView:
        fields = dict(fields)
        reject_unknown_fields(fields, DOCUMENT_FIELDS)
        require_fields(fields, tuple(f for f in REQUIRED_FIELDS if f in fields))
        values = _prepare(fields)

        def update_document(actor: Actor) -> Mutation[DocumentView]:
            document = self._document(document_id)
            before = snapshot(document, DOCUMENT_FIELDS)
            number = values.get("document_number")
            if number is not None and number != document.document_number:
                self._check_unique(number)
            for name, value in values.items():
                setattr(document, name, value)
            document.updated_by_id = actor.user_id
            self.session.flush()

            return Mutation(
                result=DocumentView.from_model(document),
                change=ChangeRecord(
                    action="UPDATE",
                    table_name="Document",
                    record_id=str(document.id),
                    old_values=before,
                    new_values=snapshot(document, DOCUMENT_FIELDS),
                    description=f"Updated document: {document.document_number}",
                ),
            )

        return self._guard.execute(user_id, Capability.EDIT_DOCUMENTS, update_document).value

    def delete_document(self, document_id: UUID | str, user_id: UUID | str) -> DocumentView:
        """Delete a document; linked batches keep their stock and lose the link."""

        def delete_document(actor: Actor) -> Mutation[DocumentView]:
            document = self._document(document_id)
            view = DocumentView.from_model(document)
            before = snapshot(document, DOCUMENT_FIELDS)
            before["batch_ids"] = sorted(str(b.id) for b in document.batches)
            for batch in list(document.batches):
                batch.document = None
                batch.updated_by_id = actor.user_id
            self.session.delete(document)
            self.session.flush()

            return Mutation(
                result=view,
                change=ChangeRecord(
                    action="DELETE",
                    table_name="Document",
                    record_id=str(view.id),
                    old_values=before,
                    description=f"Deleted document: {view.document_number}",
                ),
            )

        return self._guard.execute(user_id, Capability.EDIT_DOCUMENTS, delete_document).value

    def _document(self, document_id) -> Document:
        return self._get_or_raise(Document, coerce_uuid(document_id, "document_id"), "Document")

    def _check_unique(self, number: str) -> None:
        if self._count(Document.id, Document.document_number == number):
            raise DuplicateNameError("Document", number, field="document_number")
