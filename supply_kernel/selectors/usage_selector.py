"""
Module: supply_kernel.selectors.usage_selector
Responsibility: Read access to usage records: the filtered usage listing
    and the rows belonging to one procedure.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Date facets cover whole UTC days, inclusive at both ends.
    - A procedure is identified by patient name, patient id, procedure name,
      and the UTC day of procedure_date.
"""

from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import joinedload

from supply_kernel.domain.dtos import UsageView
from supply_kernel.domain.facets import UsageFacets
from supply_kernel.domain.values import utc_day, utc_day_end, utc_day_start
from supply_kernel.exceptions import NotFoundError
from supply_kernel.models.material import Batch, Material
from supply_kernel.models.usage import UsageRecord
from supply_kernel.selectors.base import BaseSelector


def _with_material():
    return joinedload(UsageRecord.batch).joinedload(Batch.material)


class UsageSelector(BaseSelector[UsageRecord]):
    def list_usage(self, facets: UsageFacets | None = None) -> tuple[UsageView, ...]:
        """Usage rows matching ``facets``, most recent procedure first."""
        facets = facets or UsageFacets()
        stmt = (
            select(UsageRecord)
            .join(UsageRecord.batch)
            .join(Batch.material)
            .options(_with_material())
        )
        if facets.search:
            term = facets.search
            stmt = stmt.where(
                UsageRecord.patient_name.icontains(term, autoescape=True)
                | UsageRecord.patient_id.icontains(term, autoescape=True)
                | UsageRecord.procedure_name.icontains(term, autoescape=True)
                | Material.name.icontains(term, autoescape=True)
            )
        if facets.physician:
            stmt = stmt.where(UsageRecord.physician == facets.physician)
        if facets.start is not None:
            stmt = stmt.where(UsageRecord.procedure_date >= facets.start)
        if facets.end is not None:
            stmt = stmt.where(UsageRecord.procedure_date <= facets.end)
        if facets.material_type_id is not None:
            stmt = stmt.where(Material.material_type_id == facets.material_type_id)
        if facets.batch_id is not None:
            stmt = stmt.where(UsageRecord.batch_id == facets.batch_id)
        elif facets.material_id is not None:
            stmt = stmt.where(Batch.material_id == facets.material_id)

        stmt = stmt.order_by(UsageRecord.procedure_date.desc(), UsageRecord.id)
        return tuple(UsageView.from_model(r) for r in self.session.scalars(stmt).unique())

    def procedure_records(
        self,
        patient_name: str,
        patient_id: str,
        procedure_name: str,
        procedure_date: date | datetime,
    ) -> tuple[UsageView, ...]:
        """
        All usage rows of one procedure, oldest first.

        Raises:
            NotFoundError: No usage rows match.
        """
        day = utc_day(procedure_date) if isinstance(procedure_date, datetime) else procedure_date
        records = self.session.scalars(
            select(UsageRecord)
            .where(
                UsageRecord.patient_name == patient_name,
                UsageRecord.patient_id == patient_id,
                UsageRecord.procedure_name == procedure_name,
                UsageRecord.procedure_date >= utc_day_start(day),
                UsageRecord.procedure_date <= utc_day_end(day),
            )
            .options(_with_material())
            .order_by(UsageRecord.created_at, UsageRecord.id)
        ).unique().all()
        if not records:
            raise NotFoundError(
                "Procedure", f"{patient_id}/{procedure_name}/{day.isoformat()}"
            )
        return tuple(UsageView.from_model(r) for r in records)
