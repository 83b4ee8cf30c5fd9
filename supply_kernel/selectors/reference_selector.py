"""Read access to reference data (brands, material types, vendors, physicians)."""

from sqlalchemy import select

from supply_kernel.domain.dtos import ReferenceView
from supply_kernel.domain.values import snapshot
from supply_kernel.exceptions import NotFoundError, ValidationError
from supply_kernel.models.reference import REFERENCE_KINDS, ReferenceKind
from supply_kernel.selectors.base import BaseSelector


def resolve_kind(kind: str) -> ReferenceKind:
    try:
        return REFERENCE_KINDS[kind]
    except KeyError:
        raise ValidationError(
            f"Unknown reference kind '{kind}'. Expected one of: {', '.join(REFERENCE_KINDS)}",
            field="kind",
        ) from None


def reference_view(kind: ReferenceKind, row) -> ReferenceView:
    values = snapshot(row, kind.fields)
    name = values.pop("name")
    return ReferenceView(id=row.id, kind=kind.key, name=name, attributes=values)


class ReferenceSelector(BaseSelector):
    def list(self, kind: str) -> tuple[ReferenceView, ...]:
        """All rows of one kind, ordered by name."""
        kind_def = resolve_kind(kind)
        rows = self.session.scalars(select(kind_def.model).order_by(kind_def.model.name, kind_def.model.id))
        return tuple(reference_view(kind_def, row) for row in rows)

    def get(self, kind: str, record_id) -> ReferenceView:
        kind_def = resolve_kind(kind)
        row = self.session.get(kind_def.model, record_id)
        if row is None:
            raise NotFoundError(kind_def.table_name, str(record_id))
        return reference_view(kind_def, row)
