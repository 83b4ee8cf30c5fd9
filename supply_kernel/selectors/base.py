"""
Module: supply_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side of the kernel: listings, lookups, the
    dashboard, and the data log.
Architecture position: Kernel > Selectors.  May import from models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - DTO return convention: selectors return frozen dataclasses from
      domain/dtos.py, never ORM instances.
    - Session ownership: the caller owns the session and its transaction.

Failure modes:
    - NotFoundError from single-entity lookups; listings return empty
      results instead of raising.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from supply_kernel.db.base import Base
from supply_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session (and optionally a Clock) from the caller,
        perform read-only queries, and return DTOs.

    Non-goals:
        - BaseSelector does NOT define any query methods.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source for time-relative reads (defaults to system).
        """
        self.session = session
        self.clock = clock or SystemClock()
