"""
MaterialService -- guarded create/update/delete of materials and batches.

Responsibility:
    Validates material and batch input, performs the write through
    MutationGuard (capability: Edit Materials), and returns MaterialView /
    BatchView DTOs with freshly derived stock state.

Architecture position:
    Kernel > Services -- imperative shell.  Called by InventoryOrchestrator.

Invariants enforced:
    - 0 <= quantity <= initial_quantity on create and update; initial_quantity
      >= 1 on create.
    - initial_quantity and added_by are never changed by an update.
    - update_batch may set quantity directly.  This is an administrative
      correction (a recount or a write-off) and records no usage.  The write
      is a conditional UPDATE on the quantity read in the same transaction,
      so a usage decrement committed in between is never overwritten.
    - A material is deleted only if none of its batches has usage; its
      batches are then deleted with it.  A batch is deleted only if it has
      no usage.

Failure modes:
    - ValidationError / InvalidQuantityError on malformed input.
    - NotFoundError when the material, batch, brand, type, vendor, or
      document does not exist.
    - EntityInUseError when deleting something with usage history.
    - ImmutabilityViolationError when an update tries to change
      initial_quantity.
    - ConstraintViolationError when the batch quantity changed between the
      read and the conditional write of update_batch.

Audit relevance:
    One DataLog row per call: table "Material" or "Batch", with snapshots
    of the fields below.
"""

from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from supply_kernel.domain.clock import Clock
from supply_kernel.domain.dtos import BatchView, ChangeRecord, MaterialView
from supply_kernel.domain.permissions import Capability
from supply_kernel.domain.stock import DEFAULT_STOCK_POLICY, StockPolicy, classify_stock
from supply_kernel.domain.values import snapshot
from supply_kernel.exceptions import (
    ConstraintViolationError,
    EntityInUseError,
    ImmutabilityViolationError,
    InvalidQuantityError,
    ValidationError,
)
from supply_kernel.logging_config import get_logger
from supply_kernel.models.document import Document
from supply_kernel.models.material import Batch, Material, PurchaseType
from supply_kernel.models.reference import Brand, MaterialType, Vendor
from supply_kernel.models.usage import UsageRecord
from supply_kernel.services.base import (
    BaseService,
    coerce_datetime,
    coerce_decimal,
    coerce_int,
    coerce_text,
    coerce_uuid,
    reject_unknown_fields,
    require_fields,
)
from supply_kernel.services.mutation_guard import Actor, Mutation, MutationGuard

logger = get_logger("services.material")

MATERIAL_FIELDS = ("name", "size", "brand_id", "material_type_id")

BATCH_FIELDS = (
    "quantity",
    "initial_quantity",
    "expiration_date",
    "vendor_id",
    "document_id",
    "storage_location",
    "purchase_type",
    "lot_number",
    "cost",
    "stock_added_date",
)

BATCH_SNAPSHOT_FIELDS = ("material_id", "added_by_id") + BATCH_FIELDS


def parse_purchase_type(value: Any) -> PurchaseType:
    """Case-insensitive PurchaseType lookup."""
    wanted = str(getattr(value, "value", value)).strip().casefold()
    for purchase_type in PurchaseType:
        if purchase_type.value.casefold() == wanted:
            return purchase_type
    raise ValidationError(
        f"Unknown purchase type {value!r}. "
        f"Expected one of: {', '.join(p.value for p in PurchaseType)}",
        field="purchase_type",
    )


def material_snapshot(material: Material) -> dict[str, Any]:
    return snapshot(material, MATERIAL_FIELDS)


def batch_snapshot(batch: Batch) -> dict[str, Any]:
    return snapshot(batch, BATCH_SNAPSHOT_FIELDS)


class MaterialService(BaseService):
    """
    Material and batch mutations.

    Contract:
        Every public method requires the Edit Materials capability and writes
        exactly one change.

    Non-goals:
        - Usage bookkeeping (UsageService).
        - Reads and listings (InventorySelector).
    """

    def __init__(
        self,
        session: Session,
        guard: MutationGuard,
        clock: Clock | None = None,
        policy: StockPolicy = DEFAULT_STOCK_POLICY,
    ):
        super().__init__(session, clock)
        self._guard = guard
        self._policy = policy

    # -------------------------------------------------------------------------
    # Materials
    # -------------------------------------------------------------------------

    def create_material(self, fields: Mapping[str, Any], user_id: UUID | str) -> MaterialView:
        """Create a material with no batches."""
        fields = dict(fields)
        reject_unknown_fields(fields, MATERIAL_FIELDS)
        require_fields(fields, ("name", "brand_id", "material_type_id"))

        def create_material(actor: Actor) -> Mutation[MaterialView]:
            material = Material(
                name=coerce_text(fields["name"], "name"),
                size=(fields.get("size") or None),
                created_by_id=actor.user_id,
            )
            material.brand = self._brand(fields["brand_id"])
            material.material_type = self._material_type(fields["material_type_id"])
            self.session.add(material)
            self.session.flush()

            logger.info(
                "material_created",
                extra={"material_id": str(material.id), "material_name": material.name},
            )
            return Mutation(
                result=self._view(material),
                change=ChangeRecord(
                    action="CREATE",
                    table_name="Material",
                    record_id=str(material.id),
                    new_values=material_snapshot(material),
                    description=f"Created material: {material.name}",
                ),
            )

        return self._guard.execute(user_id, Capability.EDIT_MATERIALS, create_material).value

    def update_material(
        self,
        material_id: UUID | str,
        fields: Mapping[str, Any],
        user_id: UUID | str,
    ) -> MaterialView:
        """Update name, size, brand, or type.  Omitted fields are unchanged."""
        fields = dict(fields)
        reject_unknown_fields(fields, MATERIAL_FIELDS)
        if "name" in fields:
            require_fields(fields, ("name",))

        def update_material(actor: Actor) -> Mutation[MaterialView]:
            material = self._material(material_id)
            before = material_snapshot(material)

            if "name" in fields:
                material.name = coerce_text(fields["name"], "name")
            if "size" in fields:
                material.size = fields["size"] or None
            if "brand_id" in fields:
                material.brand = self._brand(fields["brand_id"])
            if "material_type_id" in fields:
                material.material_type = self._material_type(fields["material_type_id"])
            material.updated_by_id = actor.user_id
            self.session.flush()

            return Mutation(
                result=self._view(material),
                change=ChangeRecord(
                    action="UPDATE",
                    table_name="Material",
                    record_id=str(material.id),
                    old_values=before,
                    new_values=material_snapshot(material),
                    description=f"Updated material: {material.name}",
                ),
            )

        return self._guard.execute(user_id, Capability.EDIT_MATERIALS, update_material).value

    def delete_material(self, material_id: UUID | str, user_id: UUID | str) -> MaterialView:
        """
        Delete a material and its batches.

        Raises:
            EntityInUseError: Any batch of the material has usage records.
        """

        def delete_material(actor: Actor) -> Mutation[MaterialView]:
            material = self._material(material_id)
            usage_count = self._count(
                UsageRecord.id,
                UsageRecord.batch_id.in_(
                    select(Batch.id).where(Batch.material_id == material.id)
                ),
            )
            if usage_count:
                raise EntityInUseError("Material", str(material.id), usage_count, "UsageRecord")

            view = self._view(material)
            before = material_snapshot(material)
            before["batch_count"] = len(material.batches)
            self.session.delete(material)
            self.session.flush()

            logger.info(
                "material_deleted",
                extra={"material_id": str(view.id), "batch_count": len(view.batches)},
            )
            return Mutation(
                result=view,
                change=ChangeRecord(
                    action="DELETE",
                    table_name="Material",
                    record_id=str(view.id),
                    old_values=before,
                    description=f"Deleted material: {view.name}",
                ),
            )

        return self._guard.execute(user_id, Capability.EDIT_MATERIALS, delete_material).value

    # -------------------------------------------------------------------------
    # Batches
    # -------------------------------------------------------------------------

    def create_batch(
        self,
        material_id: UUID | str,
        fields: Mapping[str, Any],
        user_id: UUID | str,
    ) -> BatchView:
        """
        Receive a batch into a material.

        quantity defaults to initial_quantity; stock_added_date defaults to
        the clock's now.
        """
        fields = dict(fields)
        reject_unknown_fields(fields, BATCH_FIELDS)
        require_fields(
            fields, ("initial_quantity", "expiration_date", "vendor_id", "purchase_type")
        )
        initial = coerce_int(fields["initial_quantity"], "initial_quantity")
        if initial < 1:
            raise InvalidQuantityError(initial, "must be at least 1", field="initial_quantity")
        quantity = coerce_int(fields.get("quantity", initial), "quantity")
        self._check_bounds(quantity, initial)
        purchase_type = parse_purchase_type(fields["purchase_type"])
        expiration = coerce_datetime(fields["expiration_date"], "expiration_date")
        cost = coerce_decimal(fields.get("cost"), "cost")

        def create_batch(actor: Actor) -> Mutation[BatchView]:
            material = self._material(material_id)
            vendor = self._vendor(fields["vendor_id"])
            document = (
                self._document(fields["document_id"]) if fields.get("document_id") else None
            )
            batch = Batch(
                quantity=quantity,
                initial_quantity=initial,
                expiration_date=expiration,
                purchase_type=purchase_type,
                lot_number=fields.get("lot_number") or None,
                storage_location=fields.get("storage_location") or None,
                stock_added_date=(
                    coerce_datetime(fields["stock_added_date"], "stock_added_date")
                    if fields.get("stock_added_date")
                    else self.clock.now()
                ),
                cost=cost,
                added_by_id=actor.user_id,
                created_by_id=actor.user_id,
            )
            # In the session before the links so the backrefs cascade
            material.batches.append(batch)
            batch.vendor = vendor
            batch.document = document
            self.session.flush()

            logger.info(
                "batch_created",
                extra={
                    "batch_id": str(batch.id),
                    "material_id": str(material.id),
                    "quantity": quantity,
                },
            )
            return Mutation(
                result=BatchView.from_model(batch),
                change=ChangeRecord(
                    action="CREATE",
                    table_name="Batch",
                    record_id=str(batch.id),
                    new_values=batch_snapshot(batch),
                    description=f"Added batch to material: {material.name} (Quantity: {quantity})",
                ),
            )

        return self._guard.execute(user_id, Capability.EDIT_MATERIALS, create_batch).value

    def update_batch(
        self,
        batch_id: UUID | str,
        fields: Mapping[str, Any],
        user_id: UUID | str,
    ) -> BatchView:
        """
        Edit a batch.  initial_quantity may be sent back unchanged but never
        altered.
        """
        fields = dict(fields)
        reject_unknown_fields(fields, BATCH_FIELDS)

        def update_batch(actor: Actor) -> Mutation[BatchView]:
            batch = self._batch(batch_id)
            before = batch_snapshot(batch)

            if "initial_quantity" in fields:
                requested = coerce_int(fields["initial_quantity"], "initial_quantity")
                if requested != batch.initial_quantity:
                    raise ImmutabilityViolationError(
                        "Batch",
                        str(batch.id),
                        "initial_quantity cannot be changed after the batch is received",
                    )
            if "quantity" in fields:
                quantity = coerce_int(fields["quantity"], "quantity")
                self._check_bounds(quantity, batch.initial_quantity)
                self._set_quantity(batch, quantity, actor)
            if "expiration_date" in fields:
                batch.expiration_date = coerce_datetime(
                    fields["expiration_date"], "expiration_date"
                )
            if "stock_added_date" in fields:
                batch.stock_added_date = coerce_datetime(
                    fields["stock_added_date"], "stock_added_date"
                )
            if "vendor_id" in fields:
                batch.vendor = self._vendor(fields["vendor_id"])
            if "document_id" in fields:
                batch.document = (
                    self._document(fields["document_id"]) if fields["document_id"] else None
                )
            if "purchase_type" in fields:
                batch.purchase_type = parse_purchase_type(fields["purchase_type"])
            if "lot_number" in fields:
                batch.lot_number = fields["lot_number"] or None
            if "storage_location" in fields:
                batch.storage_location = fields["storage_location"] or None
            if "cost" in fields:
                batch.cost = coerce_decimal(fields["cost"], "cost")
            batch.updated_by_id = actor.user_id
            self.session.flush()

            return Mutation(
                result=BatchView.from_model(batch),
                change=ChangeRecord(
                    action="UPDATE",
                    table_name="Batch",
                    record_id=str(batch.id),
                    old_values=before,
                    new_values=batch_snapshot(batch),
                    description=(
                        f"Updated batch for material: {batch.material.name} "
                        f"(Quantity: {batch.quantity})"
                    ),
                ),
            )

        return self._guard.execute(user_id, Capability.EDIT_MATERIALS, update_batch).value

    def delete_batch(self, batch_id: UUID | str, user_id: UUID | str) -> BatchView:
        """
        Delete a batch.

        Raises:
            EntityInUseError: The batch has usage records.
        """

        def delete_batch(actor: Actor) -> Mutation[BatchView]:
            batch = self._batch(batch_id)
            usage_count = self._count(UsageRecord.id, UsageRecord.batch_id == batch.id)
            if usage_count:
                raise EntityInUseError("Batch", str(batch.id), usage_count, "UsageRecord")

            view = BatchView.from_model(batch)
            before = batch_snapshot(batch)
            material = batch.material
            material.batches.remove(batch)
            self.session.flush()

            return Mutation(
                result=view,
                change=ChangeRecord(
                    action="DELETE",
                    table_name="Batch",
                    record_id=str(view.id),
                    old_values=before,
                    description=f"Deleted batch from material: {material.name}",
                ),
            )

        return self._guard.execute(user_id, Capability.EDIT_MATERIALS, delete_batch).value

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _set_quantity(self, batch: Batch, quantity: int, actor: Actor) -> None:
        """Overwrite quantity only while it still holds the value read above."""
        expected = batch.quantity
        result = self.session.execute(
            update(Batch)
            .where(Batch.id == batch.id, Batch.quantity == expected)
            .values(quantity=quantity, updated_by_id=actor.user_id)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 1:
            return

        logger.warning(
            "batch_quantity_conflict",
            extra={"batch_id": str(batch.id), "expected": expected, "requested": quantity},
        )
        raise ConstraintViolationError(
            f"quantity of batch {batch.id} changed from {expected} during the update"
        )

    @staticmethod
    def _check_bounds(quantity: int, initial: int) -> None:
        if quantity < 0:
            raise InvalidQuantityError(quantity, "must not be negative")
        if quantity > initial:
            raise InvalidQuantityError(
                quantity, f"must not exceed initial quantity {initial}"
            )

    def _view(self, material: Material) -> MaterialView:
        summary = classify_stock(material.batches, self.clock.now(), self._policy)
        return MaterialView.from_model(material, summary)

    def _material(self, material_id) -> Material:
        return self._get_or_raise(Material, coerce_uuid(material_id, "material_id"), "Material")

    def _batch(self, batch_id) -> Batch:
        return self._get_or_raise(Batch, coerce_uuid(batch_id, "batch_id"), "Batch")

    def _brand(self, brand_id) -> Brand:
        return self._get_or_raise(Brand, coerce_uuid(brand_id, "brand_id"), "Brand")

    def _material_type(self, material_type_id) -> MaterialType:
        return self._get_or_raise(
            MaterialType, coerce_uuid(material_type_id, "material_type_id"), "MaterialType"
        )

    def _vendor(self, vendor_id) -> Vendor:
        return self._get_or_raise(Vendor, coerce_uuid(vendor_id, "vendor_id"), "Vendor")

    def _document(self, document_id) -> Document:
        return self._get_or_raise(Document, coerce_uuid(document_id, "document_id"), "Document")
