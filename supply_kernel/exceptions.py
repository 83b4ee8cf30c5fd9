"""
Typed Exception Hierarchy for the Supply Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (an HTTP layer, a CLI, a batch job) must map failures to
responses without parsing messages. Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA (not just a message string)

Example:
    try:
        orchestrator.record_usage(batch_id, 3, context, user_id=user_id)
    except InsufficientQuantityError as e:
        return {"error": e.code, "available": e.available}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SupplyLedgerError (base)
    |
    +-- AuthError
    |   +-- UnauthenticatedError
    |   +-- ForbiddenError
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- DuplicateNameError
    |   +-- EntityInUseError
    |   +-- ConstraintViolationError
    |
    +-- NotFoundError
    |
    +-- InsufficientQuantityError
    |
    +-- StoreUnavailableError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                    | When Raised
------------------------|-----------------------------------------------------
UNAUTHENTICATED         | No acting identity, or identity is inactive
FORBIDDEN               | Identity lacks the required permission
VALIDATION_ERROR        | Missing/invalid field, unknown facet value
INVALID_QUANTITY        | Quantity <= 0, or outside 0 <= q <= initial
DUPLICATE_NAME          | Unique name/number already taken
ENTITY_IN_USE           | Delete refused while the row is still referenced
CONSTRAINT_VIOLATION    | Store rejected the write (IntegrityError)
NOT_FOUND               | Referenced row does not exist
INSUFFICIENT_QUANTITY   | Usage exceeds the batch's on-hand quantity
STORE_UNAVAILABLE       | Store failed for a non-integrity reason
IMMUTABILITY_VIOLATION  | Attempted change to an append-only or frozen field

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Audit-log failures are NOT exceptions. The Audit Logger returns a
   LogAppendResult; see services/audit_logger.py.

2. to_dict() never includes tracebacks or store internals. It is the shape
   an outer layer may hand to a client verbatim.
"""

from typing import Any


class SupplyLedgerError(Exception):
    """
    Base exception for all supply ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SUPPLY_LEDGER_ERROR"

    def to_dict(self) -> dict[str, Any]:
        """Client-safe representation: stable code plus message."""
        return {"error": self.code, "message": str(self)}


# Authentication / authorization


class AuthError(SupplyLedgerError):
    """Base exception for identity and permission failures."""

    code: str = "AUTH_ERROR"


class UnauthenticatedError(AuthError):
    """No acting identity could be resolved."""

    code: str = "UNAUTHENTICATED"

    def __init__(self, user_id: str | None = None, reason: str = "no identity"):
        self.user_id = user_id
        self.reason = reason
        super().__init__(f"Unauthenticated: {reason}")


class ForbiddenError(AuthError):
    """Identity resolved but lacks the required permission."""

    code: str = "FORBIDDEN"

    def __init__(self, user_id: str, required_permission: str):
        self.user_id = user_id
        self.required_permission = required_permission
        super().__init__(
            f"User {user_id} lacks permission: {required_permission}"
        )


# Validation


class ValidationError(SupplyLedgerError):
    """Input failed validation before reaching the store."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidQuantityError(ValidationError):
    """Quantity is non-positive or violates 0 <= quantity <= initial."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: Any, reason: str, field: str = "quantity"):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity!r}: {reason}", field=field)


class DuplicateNameError(ValidationError):
    """A unique name (or document number) is already in use."""

    code: str = "DUPLICATE_NAME"

    def __init__(self, entity_type: str, name: str, field: str = "name"):
        self.entity_type = entity_type
        self.name = name
        super().__init__(f"{entity_type} '{name}' already exists", field=field)


class EntityInUseError(ValidationError):
    """
    Delete refused because other rows still reference the entity.

    Vendors referenced by batches, materials whose batches have usage, and
    similar restrict-on-delete relationships raise this.
    """

    code: str = "ENTITY_IN_USE"

    def __init__(self, entity_type: str, entity_id: str, reference_count: int, referenced_by: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reference_count = reference_count
        self.referenced_by = referenced_by
        super().__init__(
            f"Cannot delete {entity_type} {entity_id}: "
            f"referenced by {reference_count} {referenced_by} record(s)"
        )


class ConstraintViolationError(ValidationError):
    """The store rejected a write with an integrity error."""

    code: str = "CONSTRAINT_VIOLATION"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Constraint violation: {detail}")


# Lookup


class NotFoundError(SupplyLedgerError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Stock


class InsufficientQuantityError(SupplyLedgerError):
    """Requested usage exceeds the batch's current quantity."""

    code: str = "INSUFFICIENT_QUANTITY"

    def __init__(self, batch_id: str, requested: int, available: int):
        self.batch_id = batch_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient quantity in batch {batch_id}: "
            f"requested {requested}, available {available}"
        )


# Store


class StoreUnavailableError(SupplyLedgerError):
    """The ledger store failed for a reason other than an integrity error."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store unavailable during {operation}: {detail}")


class ImmutabilityViolationError(SupplyLedgerError):
    """
    Attempted to modify or delete an immutable record or field.

    DataLog rows are append-only; Batch.initial_quantity and Batch.added_by_id
    are frozen after insert.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
