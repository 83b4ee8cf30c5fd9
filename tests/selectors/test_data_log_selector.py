"""Tests for the paged, filtered data log listing."""

from datetime import date, datetime, timezone

import pytest

from supply_kernel.exceptions import ForbiddenError, UnauthenticatedError, ValidationError


@pytest.fixture
def history(ledger, admin, make_user, deterministic_clock):
    """Brands created on 2024-06-14 at 23:59:59.5, 2024-06-15, and 2024-06-16 00:00."""
    nurse = make_user("nurse.kim", ["ManageSettings"])
    deterministic_clock.set_time(datetime(2024, 6, 14, 23, 59, 59, 500000, tzinfo=timezone.utc))
    ledger.create_reference("brand", {"name": "Late Night"}, admin.id)
    deterministic_clock.set_time(datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc))
    ledger.create_reference("brand", {"name": "Midday"}, nurse.id)
    deterministic_clock.set_time(datetime(2024, 6, 16, 0, 0, tzinfo=timezone.utc))
    ledger.create_reference("brand", {"name": "Next Day"}, admin.id)
    return nurse


def _descriptions(page):
    return [log.description for log in page.logs]


class TestDataLogListing:
    def test_requires_manage_settings(self, ledger, editor):
        with pytest.raises(ForbiddenError):
            ledger.list_data_log(user_id=editor.id)

    def test_requires_identity(self, ledger):
        with pytest.raises(UnauthenticatedError):
            ledger.list_data_log()

    def test_date_range_is_inclusive(self, ledger, admin, history):
        page = ledger.list_data_log(
            {"table_name": "Brand", "date_from": date(2024, 6, 14), "date_to": date(2024, 6, 14)},
            user_id=admin.id,
        )
        assert _descriptions(page) == ["Created Brand: Late Night"]

    def test_iso_date_strings(self, ledger, admin, history):
        page = ledger.list_data_log(
            {"table_name": "Brand", "date_from": "2024-06-14", "date_to": "2024-06-14"},
            user_id=admin.id,
        )
        assert _descriptions(page) == ["Created Brand: Late Night"]

    def test_datetime_bound_uses_its_day(self, ledger, admin, history):
        page = ledger.list_data_log(
            {"table_name": "Brand",
             "date_to": datetime(2024, 6, 15, 8, 30, tzinfo=timezone.utc)},
            user_id=admin.id,
        )
        assert _descriptions(page) == ["Created Brand: Midday", "Created Brand: Late Night"]

    @pytest.mark.parametrize("value", ["14/06/2024", "2024-13-01", 20240614])
    def test_malformed_date(self, ledger, admin, value):
        with pytest.raises(ValidationError) as exc_info:
            ledger.list_data_log({"date_from": value}, user_id=admin.id)
        assert exc_info.value.field == "date_from"

    def test_newest_first(self, ledger, admin, history):
        page = ledger.list_data_log({"table_name": "Brand"}, user_id=admin.id)
        assert _descriptions(page) == [
            "Created Brand: Next Day",
            "Created Brand: Midday",
            "Created Brand: Late Night",
        ]

    def test_user_search(self, ledger, admin, history):
        page = ledger.list_data_log({"user_search": "KIM"}, user_id=admin.id)
        assert _descriptions(page) == ["Created Brand: Midday"]
        assert page.logs[0].username == "nurse.kim"

    def test_action_filter(self, ledger, admin, history):
        page = ledger.list_data_log({"action": "delete"}, user_id=admin.id)
        assert page.total == 0

    def test_pagination(self, ledger, admin, history):
        first = ledger.list_data_log({"table_name": "Brand"}, page=1, page_size=2, user_id=admin.id)
        second = ledger.list_data_log({"table_name": "Brand"}, page=2, page_size=2, user_id=admin.id)

        assert first.total == second.total == 3
        assert len(first.logs) == 2
        assert _descriptions(second) == ["Created Brand: Late Night"]

    def test_page_size_clamped(self, ledger, admin, history):
        page = ledger.list_data_log(page_size=10_000, user_id=admin.id)
        assert page.page_size == 200

    def test_invalid_page(self, ledger, admin):
        with pytest.raises(ValidationError):
            ledger.list_data_log(page=0, user_id=admin.id)

    def test_table_names(self, ledger, admin, history):
        assert ledger.data_log_table_names(admin.id) == ("Brand", "User")
