"""
supply_kernel.services.inventory_orchestrator -- Central DI container and
operation surface of the ledger.

Responsibility:
    Creates every service and selector exactly once over one Session and
    one Clock, and exposes the ledger's operations as methods.  Callers (a
    web layer, scripts, tests) talk to this class only.

Architecture position:
    Kernel > Services -- top of the kernel.  Receives already-built policy
    objects (StockPolicy, DashboardLimits, ListingOptions); it never reads
    configuration itself.  supply_config.bridges builds those objects.

Invariants enforced:
    - Single-instance lifecycle: one AuditLogger and one MutationGuard per
      orchestrator, shared by every write service.
    - Every mutation routes through MutationGuard.
    - Reading the data log requires Manage Settings.

Failure modes:
    - Any SupplyLedgerError raised by the services and selectors propagates
      unchanged.

Usage:
    from supply_kernel.db.engine import session_scope
    from supply_kernel.services.inventory_orchestrator import InventoryOrchestrator

    with session_scope() as session:
        ledger = InventoryOrchestrator(session)
        ledger.record_usage(batch_id, 2, context, user_id=user_id)
"""

from __future__ import annotations

from dataclasses import fields as dataclass_fields
from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import (
    BackupView,
    BatchView,
    Dashboard,
    DataLogPage,
    DocumentView,
    FilterOptions,
    MaterialListing,
    MaterialView,
    ProcedureContext,
    ReferenceView,
    UsageView,
    UserView,
)
from supply_kernel.domain.facets import DataLogFacets, InventoryFacets, PageRequest, UsageFacets
from supply_kernel.domain.permissions import Capability
from supply_kernel.domain.stock import DEFAULT_STOCK_POLICY, StockPolicy
from supply_kernel.exceptions import ValidationError
from supply_kernel.selectors.aggregate_queries import AggregateQueries
from supply_kernel.selectors.dashboard_selector import DashboardLimits, DashboardSelector
from supply_kernel.selectors.data_log_selector import DEFAULT_MAX_PAGE_SIZE, DataLogSelector
from supply_kernel.selectors.inventory_selector import InventorySelector, ListingOptions
from supply_kernel.selectors.reference_selector import ReferenceSelector
from supply_kernel.selectors.usage_selector import UsageSelector
from supply_kernel.services.audit_logger import AuditLogger
from supply_kernel.services.backup_service import BackupService
from supply_kernel.services.base import coerce_date, coerce_uuid
from supply_kernel.services.document_service import DocumentService
from supply_kernel.services.material_service import MaterialService
from supply_kernel.services.mutation_guard import IdentityResolver, MutationGuard
from supply_kernel.services.reference_data_service import ReferenceDataService
from supply_kernel.services.usage_service import UsageService
from supply_kernel.services.user_service import UserService

_UUID_FACETS = ("brand_id", "material_type_id", "vendor_id", "material_id", "batch_id")
_DATE_FACETS = ("date_from", "date_to")


def _facets(cls, facets):
    """Accept a facet object, a mapping of its fields, or None."""
    if facets is None:
        return cls()
    if isinstance(facets, cls):
        return facets
    values = dict(facets)
    unknown = sorted(set(values) - {f.name for f in dataclass_fields(cls)})
    if unknown:
        raise ValidationError(f"Unknown filter(s): {', '.join(unknown)}", field=unknown[0])
    for name in _UUID_FACETS:
        if values.get(name) not in (None, ""):
            values[name] = coerce_uuid(values[name], name)
        elif name in values:
            values[name] = None
    for name in _DATE_FACETS:
        if values.get(name) not in (None, ""):
            values[name] = coerce_date(values[name], name)
        elif name in values:
            values[name] = None
    return cls(**values)


class InventoryOrchestrator:
    """
    Operation surface over one Session.

    Contract:
        Construct once per unit of work (request, script run, test).  All
        services share the Session, Clock, AuditLogger, and MutationGuard.

    Non-goals:
        - Does NOT commit or roll back.  The caller's session_scope() does.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: StockPolicy = DEFAULT_STOCK_POLICY,
        dashboard_limits: DashboardLimits | None = None,
        listing_options: ListingOptions | None = None,
        identity_resolver: IdentityResolver | None = None,
        aggregate_queries: AggregateQueries | None = None,
        default_page_size: int = 50,
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self.policy = policy
        self.default_page_size = default_page_size

        # Audit and guard first; every write service depends on the guard
        self.audit_logger = AuditLogger(session, self._clock)
        self.guard = MutationGuard(session, self.audit_logger, identity_resolver)

        self.materials = MaterialService(session, self.guard, self._clock, policy)
        self.usage = UsageService(session, self.guard, self._clock)
        self.reference_data = ReferenceDataService(session, self.guard, self._clock)
        self.documents = DocumentService(session, self.guard, self._clock)
        self.backups = BackupService(session, self.guard, self._clock)
        self.users = UserService(session, self.guard, self._clock)

        self.inventory = InventorySelector(session, self._clock, policy, listing_options)
        self.dashboard = DashboardSelector(
            session, self._clock, policy, dashboard_limits, aggregate_queries
        )
        self.data_log = DataLogSelector(session, self._clock, max_page_size)
        self.usage_reads = UsageSelector(session, self._clock)
        self.reference = ReferenceSelector(session, self._clock)

    # -------------------------------------------------------------------------
    # Inventory
    # -------------------------------------------------------------------------

    def list_materials(self, facets: InventoryFacets | Mapping[str, Any] | None = None) -> MaterialListing:
        return self.inventory.list_materials(_facets(InventoryFacets, facets))

    def get_material(self, material_id: UUID | str) -> MaterialView:
        return self.inventory.get_material(coerce_uuid(material_id, "material_id"))

    def list_batches(self, material_id: UUID | str) -> tuple[BatchView, ...]:
        return self.inventory.list_batches(coerce_uuid(material_id, "material_id"))

    def filter_options(self) -> FilterOptions:
        return self.inventory.filter_options()

    def create_material(self, fields: Mapping[str, Any], user_id: UUID | str) -> MaterialView:
        return self.materials.create_material(fields, user_id)

    def update_material(
        self, material_id: UUID | str, fields: Mapping[str, Any], user_id: UUID | str
    ) -> MaterialView:
        return self.materials.update_material(material_id, fields, user_id)

    def delete_material(self, material_id: UUID | str, user_id: UUID | str) -> MaterialView:
        return self.materials.delete_material(material_id, user_id)

    def create_batch(
        self, material_id: UUID | str, fields: Mapping[str, Any], user_id: UUID | str
    ) -> BatchView:
        return self.materials.create_batch(material_id, fields, user_id)

    def update_batch(
        self, batch_id: UUID | str, fields: Mapping[str, Any], user_id: UUID | str
    ) -> BatchView:
        return self.materials.update_batch(batch_id, fields, user_id)

    def delete_batch(self, batch_id: UUID | str, user_id: UUID | str) -> BatchView:
        return self.materials.delete_batch(batch_id, user_id)

    # -------------------------------------------------------------------------
    # Usage
    # -------------------------------------------------------------------------

    def record_usage(
        self,
        batch_id: UUID | str,
        quantity: Any,
        context: ProcedureContext | Mapping[str, Any],
        user_id: UUID | str,
    ) -> UsageView:
        return self.usage.record_usage(batch_id, quantity, context, user_id)

    def update_usage(
        self, usage_id: UUID | str, fields: Mapping[str, Any], user_id: UUID | str
    ) -> UsageView:
        return self.usage.update_usage(usage_id, fields, user_id)

    def delete_usage(self, usage_id: UUID | str, user_id: UUID | str) -> UsageView:
        return self.usage.delete_usage(usage_id, user_id)

    def list_usage(self, facets: UsageFacets | Mapping[str, Any] | None = None) -> tuple[UsageView, ...]:
        return self.usage_reads.list_usage(_facets(UsageFacets, facets))

    def procedure_records(
        self, patient_name: str, patient_id: str, procedure_name: str, procedure_date
    ) -> tuple[UsageView, ...]:
        return self.usage_reads.procedure_records(
            patient_name, patient_id, procedure_name, procedure_date
        )

    # -------------------------------------------------------------------------
    # Dashboard and data log
    # -------------------------------------------------------------------------

    def get_dashboard(self) -> Dashboard:
        return self.dashboard.get_dashboard()

    def list_data_log(
        self,
        facets: DataLogFacets | Mapping[str, Any] | None = None,
        page: int = 1,
        page_size: int | None = None,
        user_id: UUID | str | None = None,
    ) -> DataLogPage:
        """
        Raises:
            UnauthenticatedError / ForbiddenError: caller lacks Manage Settings.
        """
        self.guard.authorize(user_id, Capability.MANAGE_SETTINGS)
        request = PageRequest(page=page, page_size=page_size or self.default_page_size)
        return self.data_log.list(_facets(DataLogFacets, facets), request)

    def data_log_table_names(self, user_id: UUID | str | None) -> tuple[str, ...]:
        self.guard.authorize(user_id, Capability.MANAGE_SETTINGS)
        return self.data_log.table_names()

    # -------------------------------------------------------------------------
    # Reference data
    # -------------------------------------------------------------------------

    def list_reference(self, kind: str) -> tuple[ReferenceView, ...]:
        return self.reference.list(kind)

    def create_reference(
        self, kind: str, fields: Mapping[str, Any], user_id: UUID | str
    ) -> ReferenceView:
        return self.reference_data.create(kind, fields, user_id)

    def update_reference(
        self, kind: str, record_id: UUID | str, fields: Mapping[str, Any], user_id: UUID | str
    ) -> ReferenceView:
        return self.reference_data.update(kind, record_id, fields, user_id)

    def delete_reference(self, kind: str, record_id: UUID | str, user_id: UUID | str) -> ReferenceView:
        return self.reference_data.delete(kind, record_id, user_id)

    # -------------------------------------------------------------------------
    # Documents and backups
    # -------------------------------------------------------------------------

    def create_document(self, fields: Mapping[str, Any], user_id: UUID | str) -> DocumentView:
        return self.documents.create_document(fields, user_id)

    def update_document(
        self, document_id: UUID | str, fields: Mapping[str, Any], user_id: UUID | str
    ) -> DocumentView:
        return self.documents.update_document(document_id, fields, user_id)

    def delete_document(self, document_id: UUID | str, user_id: UUID | str) -> DocumentView:
        return self.documents.delete_document(document_id, user_id)

    def create_backup(self, fields: Mapping[str, Any], user_id: UUID | str) -> BackupView:
        return self.backups.create_backup(fields, user_id)

    def delete_backup(self, backup_id: UUID | str, user_id: UUID | str) -> BackupView:
        return self.backups.delete_backup(backup_id, user_id)

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def bootstrap_admin(self, username: str, email: str) -> UserView:
        return self.users.bootstrap_admin(username, email)

    def create_user(
        self,
        fields: Mapping[str, Any],
        user_id: UUID | str,
        permissions: Iterable[str] = (),
    ) -> UserView:
        return self.users.create_user(fields, user_id, permissions)

    def update_user(
        self, target_id: UUID | str, fields: Mapping[str, Any], user_id: UUID | str
    ) -> UserView:
        return self.users.update_user(target_id, fields, user_id)

    def set_user_permissions(
        self, target_id: UUID | str, permissions: Iterable[str], user_id: UUID | str
    ) -> UserView:
        return self.users.set_user_permissions(target_id, permissions, user_id)
