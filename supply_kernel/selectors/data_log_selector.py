"""
Module: supply_kernel.selectors.data_log_selector
Responsibility: Paged, filtered reads of the append-only data log.
Architecture position: Kernel > Selectors.  Authorization (Manage Settings)
    is applied by the orchestrator before this selector is called.

Invariants enforced:
    - Ordering is timestamp descending, id descending as tie-break.
    - date_to is inclusive through 23:59:59.999 UTC of that day.
    - total counts every matching row, independent of the page.
    - page_size is clamped to max_page_size.
"""

from sqlalchemy import func, select

from supply_kernel.domain.dtos import DataLogPage, DataLogView
from supply_kernel.domain.facets import DataLogFacets, PageRequest
from supply_kernel.logging_config import get_logger
from supply_kernel.models.data_log import DataLog
from supply_kernel.models.user import User
from supply_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.data_log")

DEFAULT_MAX_PAGE_SIZE = 200


class DataLogSelector(BaseSelector[DataLog]):
    def __init__(self, session, clock=None, max_page_size: int = DEFAULT_MAX_PAGE_SIZE):
        super().__init__(session, clock)
        self.max_page_size = max_page_size

    def list(self, facets: DataLogFacets | None = None, page: PageRequest | None = None) -> DataLogPage:
        facets = facets or DataLogFacets()
        page = page or PageRequest()
        if page.page_size > self.max_page_size:
            logger.debug(
                "data_log_page_size_clamped",
                extra={"requested": page.page_size, "max_page_size": self.max_page_size},
            )
            page = PageRequest(page=page.page, page_size=self.max_page_size)

        criteria = []
        if facets.action:
            criteria.append(DataLog.action == facets.action)
        if facets.table_name:
            criteria.append(DataLog.table_name == facets.table_name)
        if facets.start is not None:
            criteria.append(DataLog.timestamp >= facets.start)
        if facets.end is not None:
            criteria.append(DataLog.timestamp <= facets.end)
        if facets.user_search:
            criteria.append(
                DataLog.user_id.in_(
                    select(User.id).where(
                        User.username.icontains(facets.user_search, autoescape=True)
                    )
                )
            )

        total = self.session.scalar(select(func.count(DataLog.id)).where(*criteria)) or 0
        rows = self.session.scalars(
            select(DataLog)
            .where(*criteria)
            .order_by(DataLog.timestamp.desc(), DataLog.id.desc())
            .offset(page.offset)
            .limit(page.page_size)
        ).unique()
        return DataLogPage(
            logs=tuple(DataLogView.from_model(r) for r in rows),
            total=total,
            page=page.page,
            page_size=page.page_size,
        )

    def table_names(self) -> tuple[str, ...]:
        """Distinct table names present in the log, ascending."""
        return tuple(
            self.session.scalars(
                select(DataLog.table_name).distinct().order_by(DataLog.table_name)
            )
        )
