"""
UsageService -- recording consumption of batch stock.

Responsibility:
    Creates, updates, and deletes UsageRecords while keeping the consumed
    batch's quantity in step, through MutationGuard (capability: Record
    Usage).

Architecture position:
    Kernel > Services -- imperative shell.  Called by InventoryOrchestrator.

Invariants enforced:
    - Non-negative stock under concurrency.  Stock leaves a batch only via a
      conditional decrement:

          UPDATE batches SET quantity = quantity - :n
           WHERE id = :id AND quantity >= :n

      Zero affected rows means the batch is missing or short; a follow-up
      read tells which.  No read-then-write race exists because the check
      and the write are one statement.
    - Stock returns to a batch only via a conditional increment that keeps
      quantity <= initial_quantity.
    - The quantity change and the UsageRecord insert/update/delete run in the
      same transaction (the guard's savepoint).

Failure modes:
    - InvalidQuantityError: quantity <= 0 or not an integer.
    - ValidationError: missing procedure fields.
    - NotFoundError: batch or usage record does not exist.
    - InsufficientQuantityError: requested more than the batch holds.

Audit relevance:
    One DataLog row per call, table "UsageRecord", snapshots include the
    material name so the log reads without joins.
"""

from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from supply_kernel.domain.clock import Clock
from supply_kernel.domain.dtos import ChangeRecord, ProcedureContext, UsageView
from supply_kernel.domain.permissions import Capability
from supply_kernel.domain.values import snapshot
from supply_kernel.exceptions import (
    InsufficientQuantityError,
    InvalidQuantityError,
    NotFoundError,
)
from supply_kernel.logging_config import get_logger
from supply_kernel.models.material import Batch
from supply_kernel.models.usage import UsageRecord
from supply_kernel.services.base import (
    BaseService,
    coerce_datetime,
    coerce_int,
    coerce_uuid,
    reject_unknown_fields,
    require_fields,
)
from supply_kernel.services.mutation_guard import Actor, Mutation, MutationGuard

logger = get_logger("services.usage")

CONTEXT_FIELDS = (
    "patient_name",
    "patient_id",
    "procedure_name",
    "procedure_date",
    "physician",
)

USAGE_FIELDS = CONTEXT_FIELDS + ("batch_id", "quantity")


def usage_snapshot(record: UsageRecord) -> dict[str, Any]:
    data = snapshot(record, USAGE_FIELDS)
    data["material_name"] = record.batch.material.name
    return data


def parse_procedure_context(fields: ProcedureContext | Mapping[str, Any]) -> ProcedureContext:
    """Validate and normalize procedure fields."""
    if isinstance(fields, ProcedureContext):
        fields = {name: getattr(fields, name) for name in CONTEXT_FIELDS}
    fields = dict(fields)
    reject_unknown_fields(fields, CONTEXT_FIELDS)
    require_fields(fields, CONTEXT_FIELDS)
    return ProcedureContext(
        patient_name=str(fields["patient_name"]).strip(),
        patient_id=str(fields["patient_id"]).strip(),
        procedure_name=str(fields["procedure_name"]).strip(),
        procedure_date=coerce_datetime(fields["procedure_date"], "procedure_date"),
        physician=str(fields["physician"]).strip(),
    )


def positive_quantity(value: Any) -> int:
    quantity = coerce_int(value, "quantity")
    if quantity <= 0:
        raise InvalidQuantityError(quantity, "must be greater than zero")
    return quantity


class UsageService(BaseService):
    """
    Usage mutations with atomic stock bookkeeping.

    Contract:
        After any successful call, for every affected batch:
        0 <= quantity <= initial_quantity, and the sum of its usage plus its
        quantity is unchanged unless the call moved usage between batches.

    Non-goals:
        - Locks held across calls.  Each call is independent.
    """

    def __init__(self, session: Session, guard: MutationGuard, clock: Clock | None = None):
        super().__init__(session, clock)
        self._guard = guard

    def record_usage(
        self,
        batch_id: UUID | str,
        quantity: Any,
        context: ProcedureContext | Mapping[str, Any],
        user_id: UUID | str,
    ) -> UsageView:
        """
        Consume ``quantity`` units of a batch for one procedure.

        Raises:
            InvalidQuantityError: quantity <= 0.
            InsufficientQuantityError: batch holds fewer than quantity units.
        """
        quantity = positive_quantity(quantity)
        procedure = parse_procedure_context(context)
        batch_key = coerce_uuid(batch_id, "batch_id")

        def record_usage(actor: Actor) -> Mutation[UsageView]:
            self._decrement(batch_key, quantity, actor)
            record = UsageRecord(
                batch_id=batch_key,
                quantity=quantity,
                recorded_by_id=actor.user_id,
                created_by_id=actor.user_id,
                **_context_values(procedure),
            )
            self.session.add(record)
            self.session.flush()

            view = self._view(record)
            logger.info(
                "usage_recorded",
                extra={
                    "usage_id": str(record.id),
                    "batch_id": str(batch_key),
                    "quantity": quantity,
                    "remaining": view.batch_quantity_after,
                },
            )
            return Mutation(
                result=view,
                change=ChangeRecord(
                    action="CREATE",
                    table_name="UsageRecord",
                    record_id=str(record.id),
                    new_values=usage_snapshot(record),
                    description=(
                        f"Usage recorded for patient {procedure.patient_name} "
                        f"({procedure.patient_id}) - {quantity} units of "
                        f"{view.material_name} used in {procedure.procedure_name}"
                    ),
                ),
            )

        return self._guard.execute(user_id, Capability.RECORD_USAGE, record_usage).value

    def update_usage(
        self,
        usage_id: UUID | str,
        fields: Mapping[str, Any],
        user_id: UUID | str,
    ) -> UsageView:
        """
        Edit a usage record.  Omitted fields keep their values.

        Same batch: the batch is adjusted by the quantity difference.
        Different batch: the old batch gets its units back and the new batch
        is decremented by the full new quantity.
        """
        fields = dict(fields)
        reject_unknown_fields(fields, USAGE_FIELDS)
        new_quantity = positive_quantity(fields["quantity"]) if "quantity" in fields else None
        new_batch = coerce_uuid(fields["batch_id"], "batch_id") if "batch_id" in fields else None

        def update_usage(actor: Actor) -> Mutation[UsageView]:
            record = self._usage(usage_id)
            before = usage_snapshot(record)

            merged = {name: getattr(record, name) for name in CONTEXT_FIELDS}
            merged.update({k: v for k, v in fields.items() if k in CONTEXT_FIELDS})
            procedure = parse_procedure_context(merged)

            old_batch, old_quantity = record.batch_id, record.quantity
            target_batch = new_batch or old_batch
            target_quantity = new_quantity or old_quantity

            if target_batch == old_batch:
                difference = target_quantity - old_quantity
                if difference > 0:
                    self._decrement(old_batch, difference, actor)
                elif difference < 0:
                    self._increment(old_batch, -difference, actor)
            else:
                self._increment(old_batch, old_quantity, actor)
                self._decrement(target_batch, target_quantity, actor)

            for name, value in _context_values(procedure).items():
                setattr(record, name, value)
            record.quantity = target_quantity
            if target_batch != old_batch:
                record.batch = self.session.get(Batch, target_batch)
            record.updated_by_id = actor.user_id
            self.session.flush()

            view = self._view(record)
            return Mutation(
                result=view,
                change=ChangeRecord(
                    action="UPDATE",
                    table_name="UsageRecord",
                    record_id=str(record.id),
                    old_values=before,
                    new_values=usage_snapshot(record),
                    description=(
                        f"Usage record updated for patient {procedure.patient_name} "
                        f"({procedure.patient_id}) - {target_quantity} units of "
                        f"{view.material_name} used in {procedure.procedure_name}"
                    ),
                ),
            )

        return self._guard.execute(user_id, Capability.RECORD_USAGE, update_usage).value

    def delete_usage(self, usage_id: UUID | str, user_id: UUID | str) -> UsageView:
        """Delete a usage record and return its units to the batch."""

        def delete_usage(actor: Actor) -> Mutation[UsageView]:
            record = self._usage(usage_id)
            before = usage_snapshot(record)
            self._increment(record.batch_id, record.quantity, actor)
            view = self._view(record)
            self.session.delete(record)
            self.session.flush()

            return Mutation(
                result=view,
                change=ChangeRecord(
                    action="DELETE",
                    table_name="UsageRecord",
                    record_id=str(view.id),
                    old_values=before,
                    description=(
                        f"Usage record deleted for patient {view.patient_name} "
                        f"({view.patient_id}) - {view.quantity} units of "
                        f"{view.material_name} restored to inventory"
                    ),
                ),
            )

        return self._guard.execute(user_id, Capability.RECORD_USAGE, delete_usage).value

    # -------------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------------

    def _decrement(self, batch_id: UUID, quantity: int, actor: Actor) -> None:
        """Conditionally remove units.  Raises if the batch is missing or short."""
        result = self.session.execute(
            update(Batch)
            .where(Batch.id == batch_id, Batch.quantity >= quantity)
            .values(quantity=Batch.quantity - quantity, updated_by_id=actor.user_id)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 1:
            return

        available = self.session.scalar(select(Batch.quantity).where(Batch.id == batch_id))
        if available is None:
            raise NotFoundError("Batch", str(batch_id))
        logger.warning(
            "insufficient_quantity",
            extra={"batch_id": str(batch_id), "requested": quantity, "available": available},
        )
        raise InsufficientQuantityError(str(batch_id), quantity, available)

    def _increment(self, batch_id: UUID, quantity: int, actor: Actor) -> None:
        """Conditionally return units, never above initial_quantity."""
        result = self.session.execute(
            update(Batch)
            .where(
                Batch.id == batch_id,
                Batch.quantity + quantity <= Batch.initial_quantity,
            )
            .values(quantity=Batch.quantity + quantity, updated_by_id=actor.user_id)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 1:
            return

        batch = self.session.get(Batch, batch_id)
        if batch is None:
            raise NotFoundError("Batch", str(batch_id))
        raise InvalidQuantityError(
            batch.quantity + quantity,
            f"restoring {quantity} units would exceed initial quantity {batch.initial_quantity}",
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _usage(self, usage_id) -> UsageRecord:
        return self._get_or_raise(UsageRecord, coerce_uuid(usage_id, "usage_id"), "UsageRecord")

    def _view(self, record: UsageRecord) -> UsageView:
        batch = self.session.get(Batch, record.batch_id)
        self.session.refresh(batch, attribute_names=["quantity"])
        return UsageView.from_model(record)


def _context_values(procedure: ProcedureContext) -> dict[str, Any]:
    return {name: getattr(procedure, name) for name in CONTEXT_FIELDS}
