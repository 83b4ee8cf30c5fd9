"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The data log is the accountability record of the ledger.  If a row could be
edited after the fact, no change history would be trustworthy.  Likewise a
batch's received quantity is the upper bound of its stock: letting it move
would make the 0 <= quantity <= initial_quantity rule meaningless.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events:

    session.flush()
         |
         v
    [before_update event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

The database CHECK constraints on batches catch anything that bypasses the
ORM (bulk UPDATE statements such as UsageService's conditional decrement).

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity   | What is protected                         | Error
---------|-------------------------------------------|-----------------------------
DataLog  | Every column, forever; no DELETE          | ImmutabilityViolationError
Batch    | initial_quantity, added_by_id after INSERT| ImmutabilityViolationError
Batch    | 0 <= quantity <= initial_quantity         | InvalidQuantityError

===============================================================================
USAGE
===============================================================================

    from supply_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    # ... do forbidden operation ...
    register_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from supply_kernel.exceptions import ImmutabilityViolationError, InvalidQuantityError
from supply_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


# =============================================================================
# DataLog: append-only
# =============================================================================


def _check_data_log_update(mapper, connection, target):
    """Prevent any update to DataLog rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "DataLog",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="DataLog",
        entity_id=str(target.id),
        reason="Data log entries are immutable and cannot be modified",
    )


def _check_data_log_delete(mapper, connection, target):
    """Prevent deletion of DataLog rows."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "DataLog",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="DataLog",
        entity_id=str(target.id),
        reason="Data log entries cannot be deleted",
    )


# =============================================================================
# Batch: frozen receipt fields and quantity bounds
# =============================================================================

_BATCH_FROZEN_FIELDS = ("initial_quantity", "added_by_id")


def _check_batch_update(mapper, connection, target):
    """
    Reject changes to frozen Batch fields and out-of-range quantities.

    Uses attribute history, so only fields actually changed in this flush
    are considered.
    """
    for field in _BATCH_FROZEN_FIELDS:
        history = get_history(target, field)
        if history.has_changes() and history.deleted:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Batch",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": field,
                },
            )
            raise ImmutabilityViolationError(
                entity_type="Batch",
                entity_id=str(target.id),
                reason=f"{field} cannot be changed after the batch is received",
            )

    quantity = target.quantity
    if quantity is None or quantity < 0 or quantity > target.initial_quantity:
        logger.error(
            "batch_quantity_out_of_range",
            extra={
                "batch_id": str(target.id),
                "quantity": quantity,
                "initial_quantity": target.initial_quantity,
            },
        )
        raise InvalidQuantityError(
            quantity,
            f"must satisfy 0 <= quantity <= {target.initial_quantity}",
        )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are not added twice.
    """
    from supply_kernel.models.data_log import DataLog
    from supply_kernel.models.material import Batch

    for target, event_name, listener_fn in _listeners(DataLog, Batch):
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _listeners(data_log_cls, batch_cls):
    return (
        (data_log_cls, "before_update", _check_data_log_update),
        (data_log_cls, "before_delete", _check_data_log_delete),
        (batch_cls, "before_update", _check_batch_update),
    )


def _safe_remove_listener(target, event_name, listener_fn):
    """
    Safely remove an event listener, ignoring if not registered.

    This prevents errors when unregistering listeners that may not have been
    registered (e.g., in test scenarios with custom setup/teardown).
    """
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    from supply_kernel.models.data_log import DataLog
    from supply_kernel.models.material import Batch

    for target, event_name, listener_fn in _listeners(DataLog, Batch):
        _safe_remove_listener(target, event_name, listener_fn)
