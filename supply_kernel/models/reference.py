"""
Module: supply_kernel.models.reference
Responsibility: ORM persistence for reference data -- brands, material types,
    vendors, and physicians.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Brand, MaterialType, and Vendor names are unique (uq_*_name).
    - Deletion is restricted while referenced: FK ondelete=RESTRICT from
      materials/batches, plus the service-layer EntityInUseError check that
      reports the reference count before the store is touched.
"""

from dataclasses import dataclass

from sqlalchemy import Boolean, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase


class Brand(TrackedBase):
    """Manufacturer brand of a material."""

    __tablename__ = "brands"
    __table_args__ = (UniqueConstraint("name", name="uq_brand_name"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    website: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Brand {self.name}>"


class MaterialType(TrackedBase):
    """Category of material (stent, catheter, ...).  Dashboard groups by it."""

    __tablename__ = "material_types"
    __table_args__ = (UniqueConstraint("name", name="uq_material_type_name"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<MaterialType {self.name}>"


class Vendor(TrackedBase):
    """Supplier of batches."""

    __tablename__ = "vendors"
    __table_args__ = (UniqueConstraint("name", name="uq_vendor_name"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    website: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    gst_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Vendor {self.name}>"


class Physician(TrackedBase):
    """
    Physician directory entry.

    UsageRecord.physician stores the name as text, so renaming or
    deactivating a physician never rewrites usage history.
    """

    __tablename__ = "physicians"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    specialization: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Physician {self.name}>"


@dataclass(frozen=True)
class ReferenceKind:
    """Descriptor of one reference-data table, keyed by its public kind name."""

    key: str
    model: type
    table_name: str
    fields: tuple[str, ...]
    required: tuple[str, ...] = ("name",)
    unique_name: bool = True


REFERENCE_KINDS: dict[str, ReferenceKind] = {
    kind.key: kind
    for kind in (
        ReferenceKind(
            key="brand",
            model=Brand,
            table_name="Brand",
            fields=("name", "description", "website", "contact_person", "contact_email", "contact_phone"),
        ),
        ReferenceKind(
            key="material_type",
            model=MaterialType,
            table_name="MaterialType",
            fields=("name", "description"),
        ),
        ReferenceKind(
            key="vendor",
            model=Vendor,
            table_name="Vendor",
            fields=(
                "name",
                "description",
                "address",
                "city",
                "state",
                "country",
                "postal_code",
                "website",
                "contact_person",
                "contact_email",
                "contact_phone",
                "gst_number",
            ),
        ),
        ReferenceKind(
            key="physician",
            model=Physician,
            table_name="Physician",
            fields=("name", "specialization", "email", "phone", "department", "is_active"),
            required=("name", "specialization"),
            unique_name=False,
        ),
    )
}
