"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    write-side service.  Services receive a SQLAlchemy ``Session`` and use
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or rollback themselves.  The caller
      (``session_scope()``, a web request, or a test fixture) owns them.
"""

from abc import ABC
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from supply_kernel.db.base import Base
from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.values import to_utc, utc_day_start
from supply_kernel.exceptions import InvalidQuantityError, NotFoundError, ValidationError


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a Session and a Clock from the caller.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Query-only methods.  Those belong in ``supply_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    def _get_or_raise(self, model: type[Base], entity_id, entity_type: str | None = None):
        """Load a row by primary key or raise NotFoundError."""
        instance = self.session.get(model, entity_id) if entity_id is not None else None
        if instance is None:
            raise NotFoundError(entity_type or model.__name__, str(entity_id))
        return instance

    def _count(self, column, *criteria) -> int:
        return self.session.scalar(select(func.count(column)).where(*criteria)) or 0


def require_fields(fields: dict, required: tuple[str, ...]) -> None:
    """Raise ValidationError naming the first missing or blank required field."""
    for name in required:
        value = fields.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{name} is required", field=name)


def reject_unknown_fields(fields: dict, allowed: tuple[str, ...] | frozenset[str]) -> None:
    unknown = sorted(set(fields) - set(allowed))
    if unknown:
        raise ValidationError(
            f"Unknown field(s): {', '.join(unknown)}", field=unknown[0]
        )


def coerce_uuid(value, field: str) -> UUID:
    """Accept a UUID or its string form; raise ValidationError otherwise."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} is not a valid id: {value!r}", field=field) from exc


def coerce_datetime(value, field: str) -> datetime:
    """
    Accept a datetime, a date (midnight UTC), or an ISO-8601 string.

    Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return utc_day_start(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_utc(datetime.fromisoformat(text))
        except ValueError as exc:
            raise ValidationError(f"{field} is not a valid date: {value!r}", field=field) from exc
    raise ValidationError(f"{field} is not a valid date: {value!r}", field=field)


def coerce_date(value, field: str) -> date:
    """
    Accept a date, a datetime (its UTC calendar day), or an ISO-8601 string.
    """
    if isinstance(value, datetime):
        return to_utc(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return coerce_datetime(value, field).date()
    raise ValidationError(f"{field} is not a valid date: {value!r}", field=field)


def coerce_text(value, field: str) -> str:
    """Return the stripped string; non-strings and blanks are rejected."""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be text, got {type(value).__name__}", field=field)
    text = value.strip()
    if not text:
        raise ValidationError(f"{field} is required", field=field)
    return text


def coerce_int(value, field: str) -> int:
    """Accept an int (not bool) or an integral string."""
    if isinstance(value, bool):
        raise InvalidQuantityError(value, "must be an integer", field=field)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise InvalidQuantityError(value, "must be an integer", field=field)


def coerce_decimal(value, field: str) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"{field} is not a valid amount: {value!r}", field=field) from exc
    if not result.is_finite() or result < 0:
        raise ValidationError(f"{field} must be a non-negative amount", field=field)
    return result
