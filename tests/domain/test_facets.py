"""Tests for facet validation (supply_kernel/domain/facets.py)."""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from supply_kernel.domain.facets import DataLogFacets, InventoryFacets, PageRequest, UsageFacets
from supply_kernel.domain.stock import StockStatus
from supply_kernel.exceptions import ValidationError


class TestInventoryFacets:
    def test_blank_values_are_absent(self):
        facets = InventoryFacets(search="   ", purchase_type="", stock_status=" ")
        assert facets.search is None
        assert facets.purchase_type is None
        assert facets.stock_status is None
        assert not facets.has_batch_facets

    def test_stock_status_parsed(self):
        assert InventoryFacets(stock_status="Expiring Soon").stock_status is StockStatus.EXPIRING_SOON

    def test_unknown_stock_status(self):
        with pytest.raises(ValidationError):
            InventoryFacets(stock_status="backordered")

    def test_batch_facets(self):
        assert InventoryFacets(vendor_id=uuid4()).has_batch_facets
        assert InventoryFacets(purchase_type="advance").has_batch_facets

    def test_purchase_type_case_insensitive(self):
        facets = InventoryFacets(purchase_type="ADVANCE")
        assert facets.matches_purchase_type("Advance")
        assert not facets.matches_purchase_type("Purchased")


class TestDateRanges:
    def test_inclusive_end_of_day(self):
        facets = DataLogFacets(date_from=date(2024, 6, 1), date_to=date(2024, 6, 15))
        assert facets.start == datetime(2024, 6, 1, tzinfo=timezone.utc)
        assert facets.end == datetime(2024, 6, 15, 23, 59, 59, 999000, tzinfo=timezone.utc)

    def test_reversed_range_rejected(self):
        with pytest.raises(ValidationError):
            UsageFacets(date_from=date(2024, 6, 2), date_to=date(2024, 6, 1))

    def test_action_uppercased(self):
        assert DataLogFacets(action=" create ").action == "CREATE"


class TestPageRequest:
    def test_offset(self):
        assert PageRequest(page=3, page_size=20).offset == 40

    @pytest.mark.parametrize("page,page_size", [(0, 10), (1, 0)])
    def test_rejects_non_positive(self, page, page_size):
        with pytest.raises(ValidationError):
            PageRequest(page=page, page_size=page_size)
