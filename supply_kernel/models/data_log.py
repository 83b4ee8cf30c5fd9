"""
Module: supply_kernel.models.data_log
Responsibility: ORM persistence for the append-only change log.  One row per
    create/update/delete performed through MutationGuard.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: ORM before_update/before_delete listeners raise
      ImmutabilityViolationError (db/immutability.py).
    - Rows are written only by services/audit_logger.py.
    - old_values/new_values are JSON snapshots produced by
      domain/values.py:snapshot(); they are never re-validated on read, so
      rows written under an older entity shape stay readable.

Audit relevance:
    This table is the accountability record of the ledger: who changed
    which row, when, from what, to what.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from supply_kernel.db.base import Base, UUIDString
from supply_kernel.models.user import User


class DataLogAction(str, Enum):
    """Kind of change recorded."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class DataLog(Base):
    """
    Immutable record of a single mutation.

    Contract:
        Never updated or deleted once flushed.

    Guarantees:
        - timestamp comes from the injected Clock, not the database.
        - old_values is NULL for CREATE, new_values is NULL for DELETE.
    """

    __tablename__ = "data_logs"
    __table_args__ = (
        Index("idx_data_log_timestamp", "timestamp"),
        Index("idx_data_log_table", "table_name"),
        Index("idx_data_log_record", "table_name", "record_id"),
        Index("idx_data_log_user", "user_id"),
    )

    action: Mapped[DataLogAction] = mapped_column(String(10), nullable=False)

    table_name: Mapped[str] = mapped_column(String(50), nullable=False)

    record_id: Mapped[str] = mapped_column(String(36), nullable=False)

    old_values: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    new_values: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(nullable=False)

    user: Mapped[User] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<DataLog {self.action} {self.table_name}:{self.record_id}>"
