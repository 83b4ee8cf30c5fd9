"""
Module: supply_kernel.selectors.aggregate_queries
Responsibility: Named aggregate queries behind the dashboard.
Architecture position: Kernel > Selectors.  DashboardSelector depends on the
    AggregateQueries interface; SqlAggregateQueries is the SQLAlchemy
    implementation used in production and in tests.

Invariants enforced:
    - Queries are dialect-neutral SQLAlchemy Core/ORM expressions.  Month and
      day bucketing is left to the caller, which groups the rows returned by
      usage_rows_since() in Python.
    - Low stock means 0 < sum(batch quantity) < threshold per material.
    - The expiring alert list is now < expiration_date <= now + window with
      quantity > 0.  Expired batches with stock are excluded here although
      the stock classifier counts them as expiring soon.

Failure modes:
    - SQLAlchemyError propagates; the dashboard is a read and has no guard.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from supply_kernel.domain.dtos import (
    ActivityItem,
    AdvanceUsage,
    CategoryStock,
    ExpiringBatchAlert,
    LowStockAlert,
    UsageRow,
)
from supply_kernel.models.data_log import DataLog
from supply_kernel.models.document import Document
from supply_kernel.models.material import Batch, Material, PurchaseType
from supply_kernel.models.reference import Brand, MaterialType, Vendor
from supply_kernel.models.usage import UsageRecord
from supply_kernel.models.user import User


@dataclass(frozen=True)
class EntityCounts:
    total_materials: int
    active_batches: int
    total_vendors: int
    total_documents: int


class AggregateQueries(ABC):
    """Repository interface for dashboard aggregates."""

    @abstractmethod
    def recent_activity(self, limit: int) -> tuple[ActivityItem, ...]:
        """Most recent data log rows, newest first."""

    @abstractmethod
    def low_stock_summary(self, threshold: int, limit: int) -> tuple[tuple[LowStockAlert, ...], int]:
        """(alerts ordered by total ascending capped at limit, uncapped count)."""

    @abstractmethod
    def expiring_soon_summary(
        self, now: datetime, window: timedelta, limit: int
    ) -> tuple[tuple[ExpiringBatchAlert, ...], int]:
        """(alerts ordered by expiration ascending capped at limit, uncapped count)."""

    @abstractmethod
    def count_summary(self) -> EntityCounts:
        ...

    @abstractmethod
    def inventory_by_category(self) -> tuple[CategoryStock, ...]:
        ...

    @abstractmethod
    def usage_rows_since(self, start: datetime) -> tuple[UsageRow, ...]:
        """Usage rows with procedure_date >= start."""

    @abstractmethod
    def advance_materials_used(self, since: datetime, limit: int) -> tuple[AdvanceUsage, ...]:
        """Materials consumed from Advance batches since ``since``, most used first."""


class SqlAggregateQueries(AggregateQueries):
    def __init__(self, session: Session):
        self.session = session

    def recent_activity(self, limit: int) -> tuple[ActivityItem, ...]:
        rows = self.session.execute(
            select(
                DataLog.id,
                DataLog.action,
                DataLog.table_name,
                DataLog.record_id,
                DataLog.description,
                User.username,
                DataLog.timestamp,
            )
            .join(User, DataLog.user_id == User.id)
            .order_by(DataLog.timestamp.desc(), DataLog.id.desc())
            .limit(limit)
        )
        return tuple(
            ActivityItem(
                id=row.id,
                action=row.action,
                table_name=row.table_name,
                record_id=row.record_id,
                description=row.description,
                username=row.username,
                timestamp=row.timestamp,
            )
            for row in rows
        )

    def low_stock_summary(self, threshold: int, limit: int) -> tuple[tuple[LowStockAlert, ...], int]:
        total = func.coalesce(func.sum(Batch.quantity), 0).label("total_quantity")
        grouped = (
            select(
                Material.id,
                Material.name,
                Material.size,
                Brand.name.label("brand_name"),
                MaterialType.name.label("material_type_name"),
                total,
            )
            .join(Brand, Material.brand_id == Brand.id)
            .join(MaterialType, Material.material_type_id == MaterialType.id)
            .outerjoin(Batch, Batch.material_id == Material.id)
            .group_by(Material.id, Material.name, Material.size, Brand.name, MaterialType.name)
            .having(and_(total > 0, total < threshold))
        )
        count = self.session.scalar(select(func.count()).select_from(grouped.subquery())) or 0
        rows = self.session.execute(grouped.order_by(total, Material.name, Material.id).limit(limit))
        alerts = tuple(
            LowStockAlert(
                material_id=row.id,
                name=row.name,
                size=row.size,
                brand_name=row.brand_name,
                material_type_name=row.material_type_name,
                total_quantity=int(row.total_quantity),
            )
            for row in rows
        )
        return alerts, count

    def expiring_soon_summary(
        self, now: datetime, window: timedelta, limit: int
    ) -> tuple[tuple[ExpiringBatchAlert, ...], int]:
        criteria = (
            Batch.quantity > 0,
            Batch.expiration_date > now,
            Batch.expiration_date <= now + window,
        )
        count = self.session.scalar(select(func.count(Batch.id)).where(*criteria)) or 0
        rows = self.session.execute(
            select(
                Batch.id,
                Batch.material_id,
                Material.name.label("material_name"),
                Vendor.name.label("vendor_name"),
                Batch.lot_number,
                Batch.quantity,
                Batch.expiration_date,
            )
            .join(Material, Batch.material_id == Material.id)
            .join(Vendor, Batch.vendor_id == Vendor.id)
            .where(*criteria)
            .order_by(Batch.expiration_date, Batch.id)
            .limit(limit)
        )
        alerts = tuple(
            ExpiringBatchAlert(
                batch_id=row.id,
                material_id=row.material_id,
                material_name=row.material_name,
                vendor_name=row.vendor_name,
                lot_number=row.lot_number,
                quantity=row.quantity,
                expiration_date=row.expiration_date,
            )
            for row in rows
        )
        return alerts, count

    def count_summary(self) -> EntityCounts:
        def count(column, *criteria) -> int:
            return self.session.scalar(select(func.count(column)).where(*criteria)) or 0

        return EntityCounts(
            total_materials=count(Material.id),
            active_batches=count(Batch.id, Batch.quantity > 0),
            total_vendors=count(Vendor.id),
            total_documents=count(Document.id),
        )

    def inventory_by_category(self) -> tuple[CategoryStock, ...]:
        stock = func.coalesce(func.sum(Batch.quantity), 0).label("total_stock")
        rows = self.session.execute(
            select(
                MaterialType.id,
                MaterialType.name,
                func.count(func.distinct(Material.id)).label("material_count"),
                stock,
            )
            .outerjoin(Material, Material.material_type_id == MaterialType.id)
            .outerjoin(Batch, Batch.material_id == Material.id)
            .group_by(MaterialType.id, MaterialType.name)
            .order_by(stock.desc(), MaterialType.name)
        )
        return tuple(
            CategoryStock(
                material_type_id=row.id,
                name=row.name,
                material_count=row.material_count,
                total_stock=int(row.total_stock),
            )
            for row in rows
        )

    def usage_rows_since(self, start: datetime) -> tuple[UsageRow, ...]:
        rows = self.session.execute(
            select(
                UsageRecord.patient_id,
                UsageRecord.procedure_name,
                UsageRecord.procedure_date,
                UsageRecord.quantity,
            ).where(UsageRecord.procedure_date >= start)
        )
        return tuple(
            UsageRow(
                patient_id=row.patient_id,
                procedure_name=row.procedure_name,
                procedure_date=row.procedure_date,
                quantity=row.quantity,
            )
            for row in rows
        )

    def advance_materials_used(self, since: datetime, limit: int) -> tuple[AdvanceUsage, ...]:
        used = func.sum(UsageRecord.quantity).label("quantity_used")
        rows = self.session.execute(
            select(Material.id, Material.name, Brand.name.label("brand_name"), used)
            .select_from(UsageRecord)
            .join(Batch, UsageRecord.batch_id == Batch.id)
            .join(Material, Batch.material_id == Material.id)
            .join(Brand, Material.brand_id == Brand.id)
            .where(
                Batch.purchase_type == PurchaseType.ADVANCE.value,
                UsageRecord.procedure_date >= since,
            )
            .group_by(Material.id, Material.name, Brand.name)
            .having(used > 0)
            .order_by(used.desc(), Material.name)
            .limit(limit)
        )
        return tuple(
            AdvanceUsage(
                material_id=row.id,
                name=row.name,
                brand_name=row.brand_name,
                quantity_used=int(row.quantity_used),
            )
            for row in rows
        )
