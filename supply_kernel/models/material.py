"""
Module: supply_kernel.models.material
Responsibility: ORM persistence for materials and the purchase batches that
    hold their stock.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - 0 <= Batch.quantity <= Batch.initial_quantity (ck_batch_quantity_*).
      The same bound is checked by the before_update listener in
      db/immutability.py and by service validation.
    - Batch.initial_quantity and Batch.added_by_id are frozen after INSERT
      (db/immutability.py).
    - Deleting a Material deletes its batches (cascade="all, delete-orphan").
      MaterialService refuses the delete first if any batch has usage.

Failure modes:
    - IntegrityError on a CHECK violation that bypassed the services
      (mapped to ConstraintViolationError by MutationGuard).

Audit relevance:
    Batch quantity is the only stock-bearing column in the ledger.  It changes
    only through batch edits and UsageService decrements/restores, each of
    which is paired with a DataLog row.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from supply_kernel.db.base import TrackedBase, UUIDString
from supply_kernel.models.reference import Brand, MaterialType, Vendor

if TYPE_CHECKING:
    from supply_kernel.models.document import Document
    from supply_kernel.models.usage import UsageRecord


class PurchaseType(str, Enum):
    """How a batch was acquired."""

    PURCHASED = "Purchased"
    ADVANCE = "Advance"  # Consignment stock, paid for on use


class Material(TrackedBase):
    """
    A catalog item whose stock is the sum of its batches.

    Contract:
        Stock status is never stored here; it is derived on read by
        domain/stock.py from the batch set.
    """

    __tablename__ = "materials"
    __table_args__ = (
        Index("idx_material_name", "name"),
        Index("idx_material_brand", "brand_id"),
        Index("idx_material_type", "material_type_id"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    size: Mapped[str | None] = mapped_column(String(100), nullable=True)

    brand_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("brands.id", ondelete="RESTRICT"),
        nullable=False,
    )

    material_type_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("material_types.id", ondelete="RESTRICT"),
        nullable=False,
    )

    brand: Mapped[Brand] = relationship(lazy="joined")
    material_type: Mapped[MaterialType] = relationship(lazy="joined")

    batches: Mapped[list["Batch"]] = relationship(
        back_populates="material",
        cascade="all, delete-orphan",
        order_by="Batch.expiration_date",
    )

    def __repr__(self) -> str:
        return f"<Material {self.name}>"


class Batch(TrackedBase):
    """
    One purchase lot of a material.

    Contract:
        quantity moves only within [0, initial_quantity].  initial_quantity is
        the quantity received and never changes after insert.

    Guarantees:
        - document_id is set to NULL when the linked Document is deleted.
        - vendor_id restricts Vendor deletion.
    """

    __tablename__ = "batches"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_batch_quantity_non_negative"),
        CheckConstraint("quantity <= initial_quantity", name="ck_batch_quantity_le_initial"),
        Index("idx_batch_material", "material_id"),
        Index("idx_batch_vendor", "vendor_id"),
        Index("idx_batch_expiration", "expiration_date"),
    )

    material_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("materials.id", ondelete="CASCADE"),
        nullable=False,
    )

    vendor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("vendors.id", ondelete="RESTRICT"),
        nullable=False,
    )

    document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("documents.id", ondelete="SET NULL"),
        nullable=True,
    )

    purchase_type: Mapped[PurchaseType] = mapped_column(String(20), nullable=False)

    quantity: Mapped[int] = mapped_column(nullable=False)

    initial_quantity: Mapped[int] = mapped_column(nullable=False)

    lot_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    expiration_date: Mapped[datetime] = mapped_column(nullable=False)

    storage_location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    stock_added_date: Mapped[datetime] = mapped_column(nullable=False)

    added_by_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    material: Mapped[Material] = relationship(back_populates="batches")
    vendor: Mapped[Vendor] = relationship(lazy="joined")
    document: Mapped["Document | None"] = relationship(back_populates="batches")
    usage_records: Mapped[list["UsageRecord"]] = relationship(back_populates="batch")

    def __repr__(self) -> str:
        return f"<Batch {self.id} qty={self.quantity}/{self.initial_quantity}>"
