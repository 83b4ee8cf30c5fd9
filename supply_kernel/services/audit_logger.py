"""
AuditLogger -- best-effort append of immutable data log rows.

Responsibility:
    Appends one DataLog row per mutation, capturing action, table, record id,
    before/after snapshots, the acting user, and a description.

Architecture position:
    Kernel > Services -- imperative shell, called only by MutationGuard
    (and by bootstrap code that has no guard, such as
    UserService.bootstrap_admin).

Invariants enforced:
    - Append-only: rows are added, never updated or deleted (the DataLog
      model is also protected by ORM listeners).
    - Best-effort: ``append`` never raises.  The row is written inside a
      SAVEPOINT; on any failure only the savepoint is rolled back, so the
      caller's primary write stays intact.
    - Snapshots are serialized to JSON primitives before insert
      (domain/values.py:snapshot), so old rows never depend on current
      entity shapes.

Failure modes:
    - Returns LogAppendResult.FAILED(reason) and emits a
      ``data_log_append_failed`` ERROR record.  ``failure_count`` counts
      these; the gap is a successful mutation with no log row.

Audit relevance:
    This IS the audit writer.  Every DataLog row in the system flows through
    ``_write_entry()``.
"""

from typing import Any, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import ChangeRecord, LogAppendResult
from supply_kernel.domain.values import snapshot
from supply_kernel.logging_config import get_logger
from supply_kernel.models.data_log import DataLog, DataLogAction

logger = get_logger("services.audit_logger")


class AuditLogger:
    """
    Writer for the append-only data log.

    Contract:
        ``append`` returns OK(log_id) when the row was flushed, FAILED(reason)
        otherwise.  It never raises and never rolls back work outside its own
        savepoint.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT retry.  A failed append is reported, not repeated.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._failure_count = 0

    @property
    def failure_count(self) -> int:
        """Number of appends that returned FAILED on this instance."""
        return self._failure_count

    def append(
        self,
        action: DataLogAction | str,
        table_name: str,
        record_id: Any,
        user_id: UUID,
        old_values: Mapping[str, Any] | None = None,
        new_values: Mapping[str, Any] | None = None,
        description: str | None = None,
    ) -> LogAppendResult:
        """
        Append one data log row.

        Args:
            action: CREATE, UPDATE, or DELETE.
            table_name: Logical table of the changed row ("Material", "Batch", ...).
            record_id: Primary key of the changed row.
            user_id: Acting user.
            old_values: State before the change (None for CREATE).
            new_values: State after the change (None for DELETE).
            description: Human-readable summary.

        Returns:
            LogAppendResult -- OK with log_id, or FAILED with reason.
        """
        try:
            entry = DataLog(
                action=DataLogAction(action),
                table_name=table_name,
                record_id=str(record_id),
                old_values=snapshot(old_values) if old_values is not None else None,
                new_values=snapshot(new_values) if new_values is not None else None,
                user_id=user_id,
                description=description,
                timestamp=self._clock.now(),
            )
            with self._session.begin_nested():
                self._write_entry(entry)
        except Exception as exc:
            self._failure_count += 1
            logger.error(
                "data_log_append_failed",
                extra={
                    "action": str(getattr(action, "value", action)),
                    "log_table": table_name,
                    "log_record_id": str(record_id),
                    "user_id": str(user_id),
                    "failure_count": self._failure_count,
                },
                exc_info=True,
            )
            return LogAppendResult.failed(f"{type(exc).__name__}: {exc}")

        logger.info(
            "data_log_appended",
            extra={
                "log_id": str(entry.id),
                "action": entry.action.value,
                "log_table": table_name,
                "log_record_id": entry.record_id,
            },
        )
        return LogAppendResult.ok(entry.id)

    def record(self, change: ChangeRecord, user_id: UUID) -> LogAppendResult:
        """Append the row described by a ChangeRecord."""
        return self.append(
            change.action,
            change.table_name,
            change.record_id,
            user_id,
            old_values=change.old_values,
            new_values=change.new_values,
            description=change.description,
        )

    def log_create(
        self,
        table_name: str,
        record_id: Any,
        user_id: UUID,
        new_values: Mapping[str, Any],
        description: str | None = None,
    ) -> LogAppendResult:
        return self.append(
            DataLogAction.CREATE,
            table_name,
            record_id,
            user_id,
            new_values=new_values,
            description=description or f"Created {table_name}",
        )

    def log_update(
        self,
        table_name: str,
        record_id: Any,
        user_id: UUID,
        old_values: Mapping[str, Any],
        new_values: Mapping[str, Any],
        description: str | None = None,
    ) -> LogAppendResult:
        return self.append(
            DataLogAction.UPDATE,
            table_name,
            record_id,
            user_id,
            old_values=old_values,
            new_values=new_values,
            description=description or f"Updated {table_name}",
        )

    def log_delete(
        self,
        table_name: str,
        record_id: Any,
        user_id: UUID,
        old_values: Mapping[str, Any],
        description: str | None = None,
    ) -> LogAppendResult:
        return self.append(
            DataLogAction.DELETE,
            table_name,
            record_id,
            user_id,
            old_values=old_values,
            description=description or f"Deleted {table_name}",
        )

    def _write_entry(self, entry: DataLog) -> None:
        """Persist the row.  Runs inside the append savepoint."""
        self._session.add(entry)
        self._session.flush()
