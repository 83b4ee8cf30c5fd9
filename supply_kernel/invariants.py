"""
Kernel Invariants Contract.

These invariants are structural law. They are enforced by the services,
ORM listeners, and database CHECK constraints. No setting in supply_config
may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across UsageService, MaterialService,
MutationGuard, AuditLogger, and db/immutability.py.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel.

    Configuration may tune thresholds and page sizes, but never *whether*
    these rules apply.
    """

    NON_NEGATIVE_QUANTITY = "non_negative_quantity"
    """0 <= batch.quantity <= batch.initial_quantity at all times. Enforced
    by service validation, the conditional decrement in UsageService, the
    Batch before_update listener, and DB CHECK constraints."""

    PURE_CLASSIFICATION = "pure_classification"
    """Stock status is a pure function of (batches, now, policy). It is
    never persisted (domain/stock.py)."""

    GUARDED_MUTATION = "guarded_mutation"
    """Every create/update/delete resolves identity and checks permission
    before any write. Enforced by MutationGuard."""

    AUDITED_MUTATION = "audited_mutation"
    """Every successful mutation attempts exactly one DataLog append.
    Enforced by MutationGuard + AuditLogger."""

    APPEND_ONLY_LOG = "append_only_log"
    """DataLog rows are never updated or deleted. Enforced by ORM
    listeners (db/immutability.py)."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "supply_config",
    "scripts",
)
