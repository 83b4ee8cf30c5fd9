"""
Module: supply_kernel.models.usage
Responsibility: ORM persistence for consumption of batch stock in procedures.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UsageRecord.quantity > 0 (ck_usage_quantity_positive).
    - Inserting a UsageRecord and decrementing its batch happen in the same
      transaction (services/usage_service.py).
    - batch_id restricts Batch deletion (ondelete=RESTRICT).

Audit relevance:
    A procedure is identified by (patient_id, procedure_name, procedure day).
    Several rows may share one procedure; dashboard counts deduplicate them.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from supply_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from supply_kernel.models.material import Batch


class UsageRecord(TrackedBase):
    """Units of one batch consumed during a patient procedure."""

    __tablename__ = "usage_records"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_usage_quantity_positive"),
        Index("idx_usage_batch", "batch_id"),
        Index("idx_usage_procedure_date", "procedure_date"),
        Index("idx_usage_patient", "patient_id"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("batches.id", ondelete="RESTRICT"),
        nullable=False,
    )

    patient_name: Mapped[str] = mapped_column(String(255), nullable=False)

    patient_id: Mapped[str] = mapped_column(String(100), nullable=False)

    procedure_name: Mapped[str] = mapped_column(String(255), nullable=False)

    procedure_date: Mapped[datetime] = mapped_column(nullable=False)

    physician: Mapped[str] = mapped_column(String(255), nullable=False)

    quantity: Mapped[int] = mapped_column(nullable=False)

    recorded_by_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    batch: Mapped["Batch"] = relationship(back_populates="usage_records")

    def __repr__(self) -> str:
        return f"<UsageRecord {self.patient_id} {self.procedure_name} x{self.quantity}>"
