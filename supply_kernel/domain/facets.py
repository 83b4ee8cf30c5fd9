"""
Facets -- Enumerated filter criteria for the read side.

Responsibility:
    Defines the fixed facet sets accepted by the inventory listing, the usage
    listing, and the data log, plus page requests.  Facets are validated on
    construction so selectors never see malformed input.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - stock_status, when given, is one of the four StockStatus values
      (case-insensitive).  Anything else raises ValidationError.
    - purchase_type compares case-insensitively.
    - Date ranges are whole UTC days, inclusive at both ends.
    - page >= 1 and page_size >= 1.

Non-goals:
    - A general query language.  New facets are added here explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from supply_kernel.domain.stock import StockStatus
from supply_kernel.domain.values import utc_day_end, utc_day_start
from supply_kernel.exceptions import ValidationError


def _clean(value: str | None) -> str | None:
    """Blank strings are treated as absent facets."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def _check_range(date_from: date | None, date_to: date | None) -> None:
    if date_from is not None and date_to is not None and date_from > date_to:
        raise ValidationError(
            f"date_from {date_from} is after date_to {date_to}",
            field="date_from",
        )


@dataclass(frozen=True)
class InventoryFacets:
    """
    Material listing criteria.

    search/brand/type are applied in the store (stage 1); vendor and
    purchase type filter each material's batches in memory (stage 2); stock
    status is evaluated last, on the filtered batches.
    """

    search: str | None = None
    brand_id: UUID | None = None
    material_type_id: UUID | None = None
    vendor_id: UUID | None = None
    purchase_type: str | None = None
    stock_status: StockStatus | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "search", _clean(self.search))
        object.__setattr__(self, "purchase_type", _clean(self.purchase_type))
        if isinstance(self.stock_status, str):
            status = _clean(self.stock_status)
            object.__setattr__(
                self, "stock_status", StockStatus.parse(status) if status else None
            )

    @property
    def has_batch_facets(self) -> bool:
        """True if stage 2 filters batches (and may drop batch-less materials)."""
        return self.vendor_id is not None or self.purchase_type is not None

    def matches_purchase_type(self, purchase_type: str) -> bool:
        if self.purchase_type is None:
            return True
        value = getattr(purchase_type, "value", purchase_type)
        return str(value).casefold() == self.purchase_type.casefold()


@dataclass(frozen=True)
class UsageFacets:
    """Usage listing criteria."""

    search: str | None = None
    physician: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    material_type_id: UUID | None = None
    material_id: UUID | None = None
    batch_id: UUID | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "search", _clean(self.search))
        object.__setattr__(self, "physician", _clean(self.physician))
        _check_range(self.date_from, self.date_to)

    @property
    def start(self) -> datetime | None:
        return utc_day_start(self.date_from) if self.date_from else None

    @property
    def end(self) -> datetime | None:
        return utc_day_end(self.date_to) if self.date_to else None


@dataclass(frozen=True)
class DataLogFacets:
    """
    Data log listing criteria.

    date_from/date_to cover whole UTC days: an entry timestamped at
    date_to 23:59:59.999 is included.
    """

    action: str | None = None
    table_name: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    user_search: str | None = None

    def __post_init__(self) -> None:
        action = _clean(self.action)
        object.__setattr__(self, "action", action.upper() if action else None)
        object.__setattr__(self, "table_name", _clean(self.table_name))
        object.__setattr__(self, "user_search", _clean(self.user_search))
        _check_range(self.date_from, self.date_to)

    @property
    def start(self) -> datetime | None:
        return utc_day_start(self.date_from) if self.date_from else None

    @property
    def end(self) -> datetime | None:
        return utc_day_end(self.date_to) if self.date_to else None


@dataclass(frozen=True)
class PageRequest:
    """1-based page request."""

    page: int = 1
    page_size: int = 50

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValidationError(f"page must be >= 1, got {self.page}", field="page")
        if self.page_size < 1:
            raise ValidationError(
                f"page_size must be >= 1, got {self.page_size}", field="page_size"
            )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size
