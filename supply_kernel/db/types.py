"""
Module: supply_kernel.db.types
Responsibility: Column types and annotated aliases shared by every model.
    Centralizes timestamp normalization so that every stored and loaded
    datetime is timezone-aware UTC, regardless of backend.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Timestamps are UTC.  Naive values are interpreted as UTC on bind and
      tagged as UTC on load, so SQLite (which has no timezone storage) and
      PostgreSQL (timestamptz) return identical values.
    - Quantities are integers.  Stock is counted in units, never fractions.

Failure modes:
    - TypeError from process_bind_param when a non-datetime value is bound
      to a UTCDateTime column.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated

from sqlalchemy import DateTime, Integer, Numeric, String, Text
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored in UTC.

    Contract:
        Binds any datetime (naive = UTC) and always returns an aware UTC
        datetime.

    Guarantees:
        - PostgreSQL receives an aware UTC value (timestamptz).
        - SQLite receives a naive UTC value; ISO ordering in SQLite then
          matches chronological ordering.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, datetime):
            raise TypeError(f"UTCDateTime expects datetime, got {type(value).__name__}")
        value = _as_utc(value)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return _as_utc(value)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Cost of a batch (currency-agnostic, 2 decimal places)
Money = Annotated[Decimal, Numeric(12, 2)]

# Unit count for batches and usage
Quantity = Annotated[int, Integer]

# Short names (reference data, enum values)
ShortName = Annotated[str, String(100)]

# General names and identifiers
Name = Annotated[str, String(255)]

# Free-form descriptions
LongText = Annotated[str, Text]
