"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable structures returned by selectors and services:
    material/batch/usage views, the inventory listing, the dashboard and its
    parts, data log pages, reference data, and the audit-side records
    (ChangeRecord, LogAppendResult).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers (never from domain logic).

Invariants enforced:
    - Callers never receive ORM instances, so reading a DTO can never trigger
      lazy loads or accidental writes.
    - LogAppendResult carries exactly one of log_id (OK) or reason (FAILED).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping
from uuid import UUID

from supply_kernel.domain.stock import StockSummary

if TYPE_CHECKING:
    from supply_kernel.models.backup import BackupRecord as BackupRecordModel
    from supply_kernel.models.data_log import DataLog as DataLogModel
    from supply_kernel.models.document import Document as DocumentModel
    from supply_kernel.models.material import Batch as BatchModel
    from supply_kernel.models.material import Material as MaterialModel
    from supply_kernel.models.usage import UsageRecord as UsageRecordModel
    from supply_kernel.models.user import User as UserModel


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


# =============================================================================
# Inventory
# =============================================================================


@dataclass(frozen=True)
class BatchView:
    id: UUID
    material_id: UUID
    vendor_id: UUID
    vendor_name: str
    document_id: UUID | None
    purchase_type: str
    quantity: int
    initial_quantity: int
    lot_number: str | None
    expiration_date: datetime
    storage_location: str | None
    stock_added_date: datetime
    added_by_id: UUID
    cost: Decimal | None = None

    @classmethod
    def from_model(cls, model: BatchModel) -> BatchView:
        return cls(
            id=model.id,
            material_id=model.material_id,
            vendor_id=model.vendor_id,
            vendor_name=model.vendor.name,
            document_id=model.document_id,
            purchase_type=_enum_value(model.purchase_type),
            quantity=model.quantity,
            initial_quantity=model.initial_quantity,
            lot_number=model.lot_number,
            expiration_date=model.expiration_date,
            storage_location=model.storage_location,
            stock_added_date=model.stock_added_date,
            added_by_id=model.added_by_id,
            cost=model.cost,
        )


@dataclass(frozen=True)
class MaterialView:
    """
    A material with its (possibly facet-filtered) batches and derived state.

    Contract:
        total_quantity and statuses are computed from ``batches`` exactly as
        returned, so the view is self-consistent.
    """

    id: UUID
    name: str
    size: str | None
    brand_id: UUID
    brand_name: str
    material_type_id: UUID
    material_type_name: str
    batches: tuple[BatchView, ...]
    total_quantity: int
    statuses: tuple[str, ...]
    primary_status: str

    @classmethod
    def from_model(
        cls,
        model: MaterialModel,
        summary: StockSummary,
        batches: tuple[BatchView, ...] | None = None,
    ) -> MaterialView:
        if batches is None:
            batches = tuple(BatchView.from_model(b) for b in model.batches)
        return cls(
            id=model.id,
            name=model.name,
            size=model.size,
            brand_id=model.brand_id,
            brand_name=model.brand.name,
            material_type_id=model.material_type_id,
            material_type_name=model.material_type.name,
            batches=batches,
            total_quantity=summary.total_quantity,
            statuses=tuple(s.value for s in summary.ordered_statuses),
            primary_status=summary.primary_status.value,
        )


@dataclass(frozen=True)
class MaterialListing:
    """
    Result of listMaterials.

    total_count counts the materials matched by the store-side facets
    (search, brand, type) unless the listing is configured to count after
    every facet.
    """

    materials: tuple[MaterialView, ...]
    total_count: int


@dataclass(frozen=True)
class OptionItem:
    id: UUID
    name: str


@dataclass(frozen=True)
class FilterOptions:
    brands: tuple[OptionItem, ...]
    material_types: tuple[OptionItem, ...]
    vendors: tuple[OptionItem, ...]
    purchase_types: tuple[str, ...]
    stock_statuses: tuple[str, ...]


# =============================================================================
# Usage
# =============================================================================


@dataclass(frozen=True)
class ProcedureContext:
    """Who, what, and when of a usage: everything except batch and quantity."""

    patient_name: str
    patient_id: str
    procedure_name: str
    procedure_date: datetime
    physician: str


@dataclass(frozen=True)
class UsageView:
    id: UUID
    batch_id: UUID
    material_id: UUID
    material_name: str
    patient_name: str
    patient_id: str
    procedure_name: str
    procedure_date: datetime
    physician: str
    quantity: int
    recorded_by_id: UUID
    batch_quantity_after: int

    @classmethod
    def from_model(cls, model: UsageRecordModel) -> UsageView:
        batch = model.batch
        return cls(
            id=model.id,
            batch_id=model.batch_id,
            material_id=batch.material_id,
            material_name=batch.material.name,
            patient_name=model.patient_name,
            patient_id=model.patient_id,
            procedure_name=model.procedure_name,
            procedure_date=model.procedure_date,
            physician=model.physician,
            quantity=model.quantity,
            recorded_by_id=model.recorded_by_id,
            batch_quantity_after=batch.quantity,
        )


# =============================================================================
# Data log / audit
# =============================================================================


@dataclass(frozen=True)
class DataLogView:
    id: UUID
    action: str
    table_name: str
    record_id: str
    old_values: Mapping[str, Any] | None
    new_values: Mapping[str, Any] | None
    user_id: UUID
    username: str
    description: str | None
    timestamp: datetime

    @classmethod
    def from_model(cls, model: DataLogModel) -> DataLogView:
        return cls(
            id=model.id,
            action=_enum_value(model.action),
            table_name=model.table_name,
            record_id=model.record_id,
            old_values=model.old_values,
            new_values=model.new_values,
            user_id=model.user_id,
            username=model.user.username,
            description=model.description,
            timestamp=model.timestamp,
        )


@dataclass(frozen=True)
class DataLogPage:
    logs: tuple[DataLogView, ...]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size


@dataclass(frozen=True)
class ChangeRecord:
    """
    What a mutation changed, handed to the Audit Logger.

    old_values/new_values are raw snapshots; the logger serializes them.
    """

    action: str
    table_name: str
    record_id: str
    old_values: Mapping[str, Any] | None = None
    new_values: Mapping[str, Any] | None = None
    description: str | None = None


class LogAppendStatus(str, Enum):
    OK = "OK"
    FAILED = "FAILED"


@dataclass(frozen=True)
class LogAppendResult:
    """Outcome of an audit append.  Never an exception."""

    status: LogAppendStatus
    log_id: UUID | None = None
    reason: str | None = None

    @classmethod
    def ok(cls, log_id: UUID) -> LogAppendResult:
        return cls(status=LogAppendStatus.OK, log_id=log_id)

    @classmethod
    def failed(cls, reason: str) -> LogAppendResult:
        return cls(status=LogAppendStatus.FAILED, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.status == LogAppendStatus.OK


# =============================================================================
# Dashboard
# =============================================================================


@dataclass(frozen=True)
class ActivityItem:
    id: UUID
    action: str
    table_name: str
    record_id: str
    description: str | None
    username: str
    timestamp: datetime


@dataclass(frozen=True)
class LowStockAlert:
    material_id: UUID
    name: str
    size: str | None
    brand_name: str
    material_type_name: str
    total_quantity: int


@dataclass(frozen=True)
class ExpiringBatchAlert:
    batch_id: UUID
    material_id: UUID
    material_name: str
    vendor_name: str
    lot_number: str | None
    quantity: int
    expiration_date: datetime


@dataclass(frozen=True)
class SummaryStats:
    total_materials: int
    active_batches: int
    total_vendors: int
    recent_procedures: int
    total_documents: int
    low_stock_count: int
    expiring_soon_count: int


@dataclass(frozen=True)
class CategoryStock:
    material_type_id: UUID
    name: str
    material_count: int
    total_stock: int


@dataclass(frozen=True)
class UsageRow:
    """Minimal usage fact for Python-side grouping."""

    patient_id: str
    procedure_name: str
    procedure_date: datetime
    quantity: int


@dataclass(frozen=True)
class MonthlyUsage:
    month: str  # YYYY-MM
    procedure_count: int
    total_quantity: int


@dataclass(frozen=True)
class AdvanceUsage:
    material_id: UUID
    name: str
    brand_name: str
    quantity_used: int


@dataclass(frozen=True)
class Dashboard:
    recent_activity: tuple[ActivityItem, ...]
    low_stock_alerts: tuple[LowStockAlert, ...]
    expiring_soon_alerts: tuple[ExpiringBatchAlert, ...]
    summary_stats: SummaryStats
    inventory_by_category: tuple[CategoryStock, ...]
    monthly_usage_trends: tuple[MonthlyUsage, ...]
    advance_materials_used: tuple[AdvanceUsage, ...]


# =============================================================================
# Reference data, documents, backups, users
# =============================================================================


@dataclass(frozen=True)
class ReferenceView:
    """A brand, material type, vendor, or physician with its descriptive fields."""

    id: UUID
    kind: str
    name: str
    attributes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DocumentView:
    id: UUID
    document_type: str
    document_number: str
    document_date: datetime
    vendor_name: str
    file_ref: str | None
    batch_count: int

    @classmethod
    def from_model(cls, model: DocumentModel) -> DocumentView:
        return cls(
            id=model.id,
            document_type=model.document_type,
            document_number=model.document_number,
            document_date=model.document_date,
            vendor_name=model.vendor_name,
            file_ref=model.file_ref,
            batch_count=len(model.batches),
        )


@dataclass(frozen=True)
class BackupView:
    id: UUID
    filename: str
    file_ref: str
    file_size: int
    description: str | None
    created_by_id: UUID

    @classmethod
    def from_model(cls, model: BackupRecordModel) -> BackupView:
        return cls(
            id=model.id,
            filename=model.filename,
            file_ref=model.file_ref,
            file_size=model.file_size,
            description=model.description,
            created_by_id=model.created_by_id,
        )


@dataclass(frozen=True)
class UserView:
    id: UUID
    username: str
    email: str
    role: str
    is_active: bool
    permissions: tuple[str, ...]

    @classmethod
    def from_model(cls, model: UserModel) -> UserView:
        return cls(
            id=model.id,
            username=model.username,
            email=model.email,
            role=model.role,
            is_active=model.is_active,
            permissions=tuple(sorted(p.name for p in model.permissions)),
        )
