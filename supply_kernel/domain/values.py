"""
Values -- Time normalization and JSON snapshot helpers.

Responsibility:
    Provides the UTC helpers used for every time comparison in the kernel
    (expiring windows, inclusive day ranges, month buckets) and the snapshot
    serializer that turns entity state into JSON-safe dicts for the data log.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - All time arithmetic happens on aware UTC datetimes.
    - Snapshots contain only JSON primitives (str, int, float, bool, None,
      list, dict).  UUID, datetime, date, Decimal, and Enum values become
      strings, so stored snapshots never depend on Python types.

Failure modes:
    - TypeError from to_json_value on an unsupported object type.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping
from uuid import UUID

# Last representable millisecond of a day (inclusive upper bound of a date range)
END_OF_DAY = time(23, 59, 59, 999000)


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC.  Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def utc_day_end(day: date) -> datetime:
    return datetime.combine(day, END_OF_DAY, tzinfo=timezone.utc)


def utc_day(value: datetime) -> date:
    """Calendar day of a timestamp, in UTC."""
    return to_utc(value).date()


def month_start(value: datetime) -> datetime:
    value = to_utc(value)
    return datetime(value.year, value.month, 1, tzinfo=timezone.utc)


def shift_months(start: datetime, months: int) -> datetime:
    """First instant of the month ``months`` away from ``start``'s month."""
    index = start.year * 12 + (start.month - 1) + months
    return datetime(index // 12, index % 12 + 1, 1, tzinfo=timezone.utc)


def days_ago(now: datetime, days: int) -> datetime:
    return to_utc(now) - timedelta(days=days)


def to_json_value(value: Any) -> Any:
    """Convert a single value to a JSON-safe primitive (recursing into containers)."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return to_json_value(value.value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return to_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if is_dataclass(value) and not isinstance(value, type):
        return to_json_value(asdict(value))
    if isinstance(value, Mapping):
        return {str(k): to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_json_value(v) for v in value]
    raise TypeError(f"Cannot snapshot value of type {type(value).__name__}")


def snapshot(source: Any, fields: Iterable[str] | None = None) -> dict[str, Any]:
    """
    Build a JSON-safe snapshot of an entity or mapping.

    Args:
        source: A mapping, a dataclass instance, or an object with attributes
            (ORM model).
        fields: Attribute names to capture.  Required for plain objects;
            optional for mappings and dataclasses (all keys by default).

    Returns:
        dict of field name to JSON primitive.
    """
    if isinstance(source, Mapping):
        data = dict(source)
    elif is_dataclass(source) and not isinstance(source, type):
        data = asdict(source)
    else:
        if fields is None:
            raise TypeError("snapshot() needs explicit fields for non-mapping sources")
        data = {name: getattr(source, name) for name in fields}

    if fields is not None:
        data = {name: data.get(name) for name in fields}
    return {key: to_json_value(val) for key, val in data.items()}
