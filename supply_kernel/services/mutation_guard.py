"""
MutationGuard -- identity, permission, write, audit.

Responsibility:
    Wraps every state-changing operation in the same four steps:

        1. resolve the acting identity      -> UnauthenticatedError
        2. check the required capability    -> ForbiddenError
        3. perform the write (in a SAVEPOINT)
                                            -> ConstraintViolationError /
                                               StoreUnavailableError /
                                               domain errors from the write
        4. append the data log row          -> LogAppendResult (never raises)

Architecture position:
    Kernel > Services -- the single entry point for guarded writes.  Domain
    services (MaterialService, UsageService, ...) hand their write closures
    to ``execute()``; they never check permissions themselves.

Invariants enforced:
    - Authorization precedes any store write.  A Forbidden call leaves no
      row changed and no log row.
    - A failed write leaves no partial state: its savepoint is rolled back,
      and no log row is appended.
    - Permission comparison goes through domain/permissions.has_permission
      only.

Failure modes:
    - UnauthenticatedError: unknown or inactive user id.
    - ForbiddenError: identity lacks the capability.
    - ConstraintViolationError: IntegrityError from the store.
    - StoreUnavailableError: any other SQLAlchemyError from the store.

Audit relevance:
    Every successful guarded write is followed by exactly one append
    attempt.  Append failures are visible through
    ``AuditLogger.failure_count`` and the ``data_log_append_failed`` log.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from supply_kernel.domain.dtos import ChangeRecord, LogAppendResult
from supply_kernel.domain.permissions import Capability, has_permission
from supply_kernel.exceptions import (
    ConstraintViolationError,
    ForbiddenError,
    StoreUnavailableError,
    UnauthenticatedError,
)
from supply_kernel.logging_config import LogContext, get_logger
from supply_kernel.models.user import User
from supply_kernel.services.audit_logger import AuditLogger

logger = get_logger("services.mutation_guard")

T = TypeVar("T")


@dataclass(frozen=True)
class Actor:
    """A resolved, active identity and the permission names it holds."""

    user_id: UUID
    username: str
    permissions: frozenset[str]

    def can(self, capability: Capability | str) -> bool:
        return has_permission(self.permissions, capability)


class IdentityResolver(ABC):
    """Turns a caller-supplied user id into an Actor."""

    @abstractmethod
    def resolve(self, user_id: UUID | str | None) -> Actor | None:
        """Return the Actor, or None if there is no usable identity."""
        ...


class UserIdentityResolver(IdentityResolver):
    """Resolves identities from the users table.  Inactive users resolve to None."""

    def __init__(self, session: Session):
        self._session = session

    def resolve(self, user_id: UUID | str | None) -> Actor | None:
        if user_id is None:
            return None
        try:
            key = user_id if isinstance(user_id, UUID) else UUID(str(user_id))
        except ValueError:
            return None
        user = self._session.get(User, key)
        if user is None or not user.is_active:
            return None
        return Actor(
            user_id=user.id,
            username=user.username,
            permissions=user.permission_names,
        )


@dataclass(frozen=True)
class Mutation(Generic[T]):
    """What a write closure returns: its result and the change to log."""

    result: T
    change: ChangeRecord


@dataclass(frozen=True)
class GuardedResult(Generic[T]):
    value: T
    log: LogAppendResult


class MutationGuard:
    """
    Permission-checked, audited write executor.

    Contract:
        ``execute(user_id, capability, write)`` calls ``write(actor)`` only
        after authorization succeeds, then appends the returned ChangeRecord.

    Guarantees:
        - ``write`` runs inside ``session.begin_nested()``.
        - Domain errors raised by ``write`` propagate unchanged.

    Non-goals:
        - Does NOT commit.  The caller's transaction decides durability.
    """

    def __init__(
        self,
        session: Session,
        audit_logger: AuditLogger,
        identity_resolver: IdentityResolver | None = None,
    ):
        self._session = session
        self._audit_logger = audit_logger
        self._resolver = identity_resolver or UserIdentityResolver(session)

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    def authorize(self, user_id: UUID | str | None, capability: Capability | str) -> Actor:
        """
        Resolve the identity and check one capability.

        Raises:
            UnauthenticatedError: No usable identity.
            ForbiddenError: Capability missing.
        """
        required = capability.value if isinstance(capability, Capability) else capability
        actor = self._resolver.resolve(user_id)
        if actor is None:
            logger.warning(
                "authentication_failed",
                extra={"user_id": str(user_id) if user_id else None, "required": required},
            )
            raise UnauthenticatedError(
                str(user_id) if user_id else None,
                reason="unknown or inactive user" if user_id else "no identity",
            )
        if not actor.can(required):
            logger.warning(
                "permission_denied",
                extra={
                    "user_id": str(actor.user_id),
                    "username": actor.username,
                    "required": required,
                },
            )
            raise ForbiddenError(str(actor.user_id), required)
        return actor

    def execute(
        self,
        user_id: UUID | str | None,
        capability: Capability | str,
        write: Callable[[Actor], Mutation[T]],
        operation: str | None = None,
    ) -> GuardedResult[T]:
        """
        Authorize, write, and log.

        Args:
            user_id: Acting user id supplied by the caller.
            capability: Capability the operation requires.
            write: Closure performing the store write; receives the Actor.
            operation: Name for log context (defaults to the closure name).

        Returns:
            GuardedResult with the write's result and the audit outcome.
        """
        operation = operation or getattr(write, "__name__", "mutation")
        actor = self.authorize(user_id, capability)

        with LogContext.bind(actor_id=str(actor.user_id), operation=operation):
            try:
                with self._session.begin_nested():
                    mutation = write(actor)
                    self._session.flush()
            except IntegrityError as exc:
                logger.warning(
                    "mutation_constraint_violation",
                    extra={"detail": str(exc.orig)},
                )
                raise ConstraintViolationError(str(exc.orig)) from exc
            except SQLAlchemyError as exc:
                logger.error("mutation_store_failure", exc_info=True)
                raise StoreUnavailableError(operation, str(exc)) from exc

            change = mutation.change
            logger.info(
                "mutation_applied",
                extra={
                    "action": change.action,
                    "log_table": change.table_name,
                    "log_record_id": change.record_id,
                },
            )
            log_result = self._audit_logger.record(change, actor.user_id)

        return GuardedResult(value=mutation.result, log=log_result)
