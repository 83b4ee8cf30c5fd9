"""
Stock Classifier -- Pure derivation of stock state from a batch set.

Responsibility:
    Maps a material's batches to an aggregate on-hand quantity and a set of
    non-exclusive stock statuses.  Used by the inventory listing (status
    facet, per-material badges) and by property tests.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Callers pass ``now``
    from an injected Clock; this module never reads the system time.

Invariants enforced:
    - Classification is a pure function of (batches, now, policy).  Calling
      it twice with the same inputs returns equal results, and nothing is
      persisted.
    - "out of stock" and "in stock" are mutually exclusive; "low stock"
      implies "in stock"; "expiring soon" is independent of both.

Rules (threshold and window come from StockPolicy):

    Status        | Rule
    --------------|-----------------------------------------------------------
    out of stock  | total == 0
    low stock     | 0 < total < low_stock_threshold
    in stock      | total > 0
    expiring soon | any batch with quantity > 0 and
                  | expiration_date <= now + expiring_window_days

    A batch that has already expired but still holds stock counts as
    expiring soon here.  The dashboard's expiring-soon alert list is
    narrower (now < expiration) -- see selectors/aggregate_queries.py.

Failure modes:
    - ValueError from StockPolicy on a non-positive threshold or negative
      window.
    - ValidationError from StockStatus.parse on an unknown status string.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Protocol

from supply_kernel.domain.values import to_utc
from supply_kernel.exceptions import ValidationError


class StockStatus(str, Enum):
    """Derived stock state.  Values are the wire strings used by facets."""

    IN_STOCK = "in stock"
    LOW_STOCK = "low stock"
    OUT_OF_STOCK = "out of stock"
    EXPIRING_SOON = "expiring soon"

    @classmethod
    def parse(cls, value: str | StockStatus) -> StockStatus:
        """Case-insensitive lookup.  Raises ValidationError on unknown values."""
        if isinstance(value, StockStatus):
            return value
        wanted = " ".join(str(value).split()).casefold()
        for status in cls:
            if status.value == wanted:
                return status
        raise ValidationError(
            f"Unknown stock status '{value}'. "
            f"Expected one of: {', '.join(s.value for s in cls)}",
            field="stock_status",
        )


# Canonical presentation order
STATUS_ORDER: tuple[StockStatus, ...] = (
    StockStatus.IN_STOCK,
    StockStatus.LOW_STOCK,
    StockStatus.OUT_OF_STOCK,
    StockStatus.EXPIRING_SOON,
)


class StockedBatch(Protocol):
    """Anything with a quantity and an expiration date (ORM Batch, BatchView)."""

    quantity: int
    expiration_date: datetime


@dataclass(frozen=True)
class StockPolicy:
    """
    Tunable thresholds for classification.

    Contract:
        low_stock_threshold >= 1; expiring_window_days >= 0.
    """

    low_stock_threshold: int = 5
    expiring_window_days: int = 30

    def __post_init__(self) -> None:
        if self.low_stock_threshold < 1:
            raise ValueError(
                f"low_stock_threshold must be >= 1, got {self.low_stock_threshold}"
            )
        if self.expiring_window_days < 0:
            raise ValueError(
                f"expiring_window_days must be >= 0, got {self.expiring_window_days}"
            )

    @property
    def expiring_window(self) -> timedelta:
        return timedelta(days=self.expiring_window_days)

    def expiring_cutoff(self, now: datetime) -> datetime:
        """Latest expiration date that still counts as expiring soon."""
        return to_utc(now) + self.expiring_window


DEFAULT_STOCK_POLICY = StockPolicy()


@dataclass(frozen=True)
class StockSummary:
    """
    Result of classifying one material's batch set.

    Guarantees:
        - statuses is non-empty: it always holds exactly one of
          "in stock" / "out of stock".
    """

    total_quantity: int
    statuses: frozenset[StockStatus]

    def has(self, status: StockStatus | str) -> bool:
        return StockStatus.parse(status) in self.statuses

    @property
    def ordered_statuses(self) -> tuple[StockStatus, ...]:
        return tuple(s for s in STATUS_ORDER if s in self.statuses)

    @property
    def primary_status(self) -> StockStatus:
        """Single badge for display: out, else low, else in stock."""
        if StockStatus.OUT_OF_STOCK in self.statuses:
            return StockStatus.OUT_OF_STOCK
        if StockStatus.LOW_STOCK in self.statuses:
            return StockStatus.LOW_STOCK
        return StockStatus.IN_STOCK


def is_expiring_soon(
    batch: StockedBatch,
    now: datetime,
    policy: StockPolicy = DEFAULT_STOCK_POLICY,
) -> bool:
    """True if the batch holds stock and expires within the policy window."""
    return batch.quantity > 0 and to_utc(batch.expiration_date) <= policy.expiring_cutoff(now)


def classify_stock(
    batches: Iterable[StockedBatch],
    now: datetime,
    policy: StockPolicy = DEFAULT_STOCK_POLICY,
) -> StockSummary:
    """
    Classify a material's batch set.

    Args:
        batches: The material's batches (possibly already facet-filtered).
        now: Current time from the caller's Clock.
        policy: Threshold and window.

    Returns:
        StockSummary with the aggregate quantity and status set.
    """
    batches = list(batches)
    total = sum(b.quantity for b in batches)

    statuses: set[StockStatus] = set()
    if total == 0:
        statuses.add(StockStatus.OUT_OF_STOCK)
    else:
        statuses.add(StockStatus.IN_STOCK)
        if total < policy.low_stock_threshold:
            statuses.add(StockStatus.LOW_STOCK)

    if any(is_expiring_soon(b, now, policy) for b in batches):
        statuses.add(StockStatus.EXPIRING_SOON)

    return StockSummary(total_quantity=total, statuses=frozenset(statuses))
