"""
Module: supply_kernel.models.document
Responsibility: ORM persistence for purchase documents (invoices, delivery
    challans) that batches may link to.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - document_number is unique (uq_document_number).
    - Deleting a document unlinks its batches (FK ondelete=SET NULL, mirrored
      by DocumentService so the ORM identity map agrees).

Non-goals:
    - File bytes.  file_ref is an opaque handle into external object storage.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from supply_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from supply_kernel.models.material import Batch


class Document(TrackedBase):
    """A purchase document."""

    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("document_number", name="uq_document_number"),)

    document_type: Mapped[str] = mapped_column(String(50), nullable=False)

    document_number: Mapped[str] = mapped_column(String(100), nullable=False)

    document_date: Mapped[datetime] = mapped_column(nullable=False)

    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)

    file_ref: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    batches: Mapped[list["Batch"]] = relationship(
        back_populates="document",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Document {self.document_number}>"
