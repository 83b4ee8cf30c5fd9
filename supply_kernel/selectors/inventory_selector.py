"""
Module: supply_kernel.selectors.inventory_selector
Responsibility: The material listing with its two-stage facet filter, plus
    material/batch lookups and the option lists a filter UI needs.
Architecture position: Kernel > Selectors.  Uses the pure stock classifier
    from domain/stock.py; never writes.

Invariants enforced:
    - Stage 1 (store) applies search, brand, and material type.  The store
      count of stage 1 is total_count unless ListingOptions says otherwise.
    - Stage 2 (memory) filters each material's batches by vendor and
      purchase type, drops materials left without batches when either of
      those facets is set, then evaluates the stock-status facet on the
      filtered batches.
    - Ordering is material name ascending with id as tie-break; batches
      within a material are ordered by expiration ascending.

Failure modes:
    - ValidationError from InventoryFacets on an unknown stock status.
    - NotFoundError from get_material / list_batches on an absent material.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, contains_eager, selectinload

from supply_kernel.domain.clock import Clock
from supply_kernel.domain.dtos import BatchView, FilterOptions, MaterialListing, MaterialView, OptionItem
from supply_kernel.domain.facets import InventoryFacets
from supply_kernel.domain.stock import DEFAULT_STOCK_POLICY, STATUS_ORDER, StockPolicy, classify_stock
from supply_kernel.exceptions import NotFoundError
from supply_kernel.logging_config import get_logger
from supply_kernel.models.material import Batch, Material, PurchaseType
from supply_kernel.models.reference import Brand, MaterialType, Vendor
from supply_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.inventory")


@dataclass(frozen=True)
class ListingOptions:
    """
    Listing behaviour switches.

    total_count_includes_batch_facets:
        False (default): total_count counts stage-1 matches only, so it may
        exceed the number of materials returned when vendor, purchase type,
        or stock status facets are set.
        True: total_count equals the number of materials returned.
    """

    total_count_includes_batch_facets: bool = False


class InventorySelector(BaseSelector[Material]):
    """
    Read access to materials and batches.

    Guarantees:
        - Stock statuses are derived on every call from the batches in the
          returned view; nothing is cached or stored.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: StockPolicy = DEFAULT_STOCK_POLICY,
        options: ListingOptions | None = None,
    ):
        super().__init__(session, clock)
        self.policy = policy
        self.options = options or ListingOptions()

    def list_materials(self, facets: InventoryFacets | None = None) -> MaterialListing:
        facets = facets or InventoryFacets()
        criteria = self._store_criteria(facets)

        total_count = self.session.scalar(
            select(func.count(Material.id))
            .join(Material.brand)
            .join(Material.material_type)
            .where(*criteria)
        ) or 0

        stmt = (
            select(Material)
            .join(Material.brand)
            .join(Material.material_type)
            .where(*criteria)
            .options(
                contains_eager(Material.brand),
                contains_eager(Material.material_type),
                selectinload(Material.batches),
            )
            .order_by(Material.name, Material.id)
        )
        materials = self.session.scalars(stmt).unique().all()

        now = self.clock.now()
        views = []
        for material in materials:
            batches = [
                b
                for b in material.batches
                if (facets.vendor_id is None or b.vendor_id == facets.vendor_id)
                and facets.matches_purchase_type(b.purchase_type)
            ]
            if facets.has_batch_facets and not batches:
                continue
            summary = classify_stock(batches, now, self.policy)
            if facets.stock_status is not None and not summary.has(facets.stock_status):
                continue
            views.append(
                MaterialView.from_model(
                    material,
                    summary,
                    tuple(BatchView.from_model(b) for b in batches),
                )
            )

        if self.options.total_count_includes_batch_facets:
            total_count = len(views)

        logger.debug(
            "materials_listed",
            extra={"store_matches": len(materials), "returned": len(views), "total_count": total_count},
        )
        return MaterialListing(materials=tuple(views), total_count=total_count)

    def get_material(self, material_id: UUID) -> MaterialView:
        material = self._material(material_id)
        summary = classify_stock(material.batches, self.clock.now(), self.policy)
        return MaterialView.from_model(material, summary)

    def list_batches(self, material_id: UUID) -> tuple[BatchView, ...]:
        """Batches of one material, most recently added first."""
        self._material(material_id)
        batches = self.session.scalars(
            select(Batch)
            .where(Batch.material_id == material_id)
            .order_by(Batch.stock_added_date.desc(), Batch.id)
        ).all()
        return tuple(BatchView.from_model(b) for b in batches)

    def filter_options(self) -> FilterOptions:
        def options(model) -> tuple[OptionItem, ...]:
            rows = self.session.execute(select(model.id, model.name).order_by(model.name, model.id))
            return tuple(OptionItem(id=row.id, name=row.name) for row in rows)

        return FilterOptions(
            brands=options(Brand),
            material_types=options(MaterialType),
            vendors=options(Vendor),
            purchase_types=tuple(p.value for p in PurchaseType),
            stock_statuses=tuple(s.value for s in STATUS_ORDER),
        )

    def _material(self, material_id: UUID) -> Material:
        material = self.session.get(Material, material_id)
        if material is None:
            raise NotFoundError("Material", str(material_id))
        return material

    @staticmethod
    def _store_criteria(facets: InventoryFacets) -> list:
        criteria = []
        if facets.search:
            term = facets.search
            vendor_match = (
                select(Batch.id)
                .join(Batch.vendor)
                .where(
                    Batch.material_id == Material.id,
                    Vendor.name.icontains(term, autoescape=True),
                )
                .exists()
            )
            criteria.append(
                Material.name.icontains(term, autoescape=True)
                | Brand.name.icontains(term, autoescape=True)
                | MaterialType.name.icontains(term, autoescape=True)
                | vendor_match
            )
        if facets.brand_id is not None:
            criteria.append(Material.brand_id == facets.brand_id)
        if facets.material_type_id is not None:
            criteria.append(Material.material_type_id == facets.material_type_id)
        return criteria
