"""
ReferenceDataService -- guarded CRUD for brands, material types, vendors,
and physicians.

Responsibility:
    One implementation for the four reference tables, driven by the
    REFERENCE_KINDS descriptors in models/reference.py.  Capability:
    Manage Settings.

Invariants enforced:
    - Unique names for brand, material type, and vendor (DuplicateNameError
      before the store's unique constraint is reached).
    - Restrict-on-delete: a brand or material type referenced by a
      material, or a vendor referenced by a batch, cannot be deleted
      (EntityInUseError with the reference count).

Audit relevance:
    One DataLog row per call; table name is the kind's model name
    ("Vendor", "Brand", "MaterialType", "Physician").
"""

from typing import Any, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from supply_kernel.domain.clock import Clock
from supply_kernel.domain.dtos import ChangeRecord, ReferenceView
from supply_kernel.domain.permissions import Capability
from supply_kernel.domain.values import snapshot
from supply_kernel.exceptions import DuplicateNameError, EntityInUseError
from supply_kernel.logging_config import get_logger
from supply_kernel.models.material import Batch, Material
from supply_kernel.models.reference import ReferenceKind
from supply_kernel.selectors.reference_selector import reference_view, resolve_kind
from supply_kernel.services.base import (
    BaseService,
    coerce_uuid,
    reject_unknown_fields,
    require_fields,
)
from supply_kernel.services.mutation_guard import Actor, Mutation, MutationGuard

logger = get_logger("services.reference_data")

# kind -> (referencing column, referencing table name)
_REFERENCED_BY = {
    "brand": (Material.brand_id, "Material"),
    "material_type": (Material.material_type_id, "Material"),
    "vendor": (Batch.vendor_id, "Batch"),
}


class ReferenceDataService(BaseService):
    """Create, update, and delete reference rows of any registered kind."""

    def __init__(self, session: Session, guard: MutationGuard, clock: Clock | None = None):
        super().__init__(session, clock)
        self._guard = guard

    def create(self, kind: str, fields: Mapping[str, Any], user_id: UUID | str) -> ReferenceView:
        kind_def = resolve_kind(kind)
        fields = _normalize(fields)
        reject_unknown_fields(fields, kind_def.fields)
        require_fields(fields, kind_def.required)

        def create_reference(actor: Actor) -> Mutation[ReferenceView]:
            self._check_unique(kind_def, fields["name"])
            row = kind_def.model(created_by_id=actor.user_id, **fields)
            self.session.add(row)
            self.session.flush()

            logger.info(
                "reference_created",
                extra={"kind": kind_def.key, "record_id": str(row.id), "record_name": row.name},
            )
            return Mutation(
                result=reference_view(kind_def, row),
                change=ChangeRecord(
                    action="CREATE",
                    table_name=kind_def.table_name,
                    record_id=str(row.id),
                    new_values=snapshot(row, kind_def.fields),
                    description=f"Created {kind_def.table_name}: {row.name}",
                ),
            )

        return self._guard.execute(
            user_id, Capability.MANAGE_SETTINGS, create_reference, operation=f"create_{kind_def.key}"
        ).value

    def update(
        self,
        kind: str,
        record_id: UUID | str,
        fields: Mapping[str, Any],
        user_id: UUID | str,
    ) -> ReferenceView:
        kind_def = resolve_kind(kind)
        fields = _normalize(fields)
        reject_unknown_fields(fields, kind_def.fields)
        require_fields(fields, tuple(f for f in kind_def.required if f in fields))

        def update_reference(actor: Actor) -> Mutation[ReferenceView]:
            row = self._row(kind_def, record_id)
            before = snapshot(row, kind_def.fields)
            if "name" in fields and fields["name"] != row.name:
                self._check_unique(kind_def, fields["name"])
            for name, value in fields.items():
                setattr(row, name, value)
            row.updated_by_id = actor.user_id
            self.session.flush()

            return Mutation(
                result=reference_view(kind_def, row),
                change=ChangeRecord(
                    action="UPDATE",
                    table_name=kind_def.table_name,
                    record_id=str(row.id),
                    old_values=before,
                    new_values=snapshot(row, kind_def.fields),
                    description=f"Updated {kind_def.table_name}: {row.name}",
                ),
            )

        return self._guard.execute(
            user_id, Capability.MANAGE_SETTINGS, update_reference, operation=f"update_{kind_def.key}"
        ).value

    def delete(self, kind: str, record_id: UUID | str, user_id: UUID | str) -> ReferenceView:
        """
        Raises:
            EntityInUseError: The row is still referenced.
        """
        kind_def = resolve_kind(kind)

        def delete_reference(actor: Actor) -> Mutation[ReferenceView]:
            row = self._row(kind_def, record_id)
            if kind_def.key in _REFERENCED_BY:
                column, referenced_by = _REFERENCED_BY[kind_def.key]
                in_use = self._count(column, column == row.id)
                if in_use:
                    raise EntityInUseError(kind_def.table_name, str(row.id), in_use, referenced_by)

            view = reference_view(kind_def, row)
            before = snapshot(row, kind_def.fields)
            self.session.delete(row)
            self.session.flush()

            return Mutation(
                result=view,
                change=ChangeRecord(
                    action="DELETE",
                    table_name=kind_def.table_name,
                    record_id=str(view.id),
                    old_values=before,
                    description=f"Deleted {kind_def.table_name}: {view.name}",
                ),
            )

        return self._guard.execute(
            user_id, Capability.MANAGE_SETTINGS, delete_reference, operation=f"delete_{kind_def.key}"
        ).value

    def _row(self, kind_def: ReferenceKind, record_id):
        return self._get_or_raise(kind_def.model, coerce_uuid(record_id, "id"), kind_def.table_name)

    def _check_unique(self, kind_def: ReferenceKind, name: str) -> None:
        if not kind_def.unique_name:
            return
        if self._count(kind_def.model.id, kind_def.model.name == name):
            raise DuplicateNameError(kind_def.table_name, name)


def _normalize(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Strip strings; blank optional strings become None."""
    result: dict[str, Any] = {}
    for name, value in fields.items():
        if isinstance(value, str):
            value = value.strip() or None
        result[name] = value
    return result
