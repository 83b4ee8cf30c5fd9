"""Tests for user administration and the administrator bootstrap."""

import pytest
from sqlalchemy import select

from supply_kernel.domain.permissions import SEED_PERMISSIONS
from supply_kernel.exceptions import DuplicateNameError, ForbiddenError, ValidationError
from supply_kernel.models.user import Permission


class TestBootstrap:
    def test_admin_holds_every_permission(self, admin):
        assert admin.role == "admin"
        assert admin.is_active
        assert set(admin.permissions) == {name for name, _ in SEED_PERMISSIONS.values()}

    def test_bootstrap_logged_as_self(self, admin, data_log_rows):
        rows = data_log_rows("User", admin.id)
        assert len(rows) == 1
        assert rows[0].user_id == admin.id

    def test_only_once(self, ledger, admin):
        with pytest.raises(ValidationError):
            ledger.bootstrap_admin("second", "second@example.com")

    @pytest.mark.parametrize(
        "username, email, field",
        [(42, "admin@example.com", "username"), ("admin", "  ", "email")],
    )
    def test_invalid_identity_writes_nothing(self, session, ledger, username, email, field):
        with pytest.raises(ValidationError) as exc_info:
            ledger.bootstrap_admin(username, email)
        assert exc_info.value.field == field
        assert session.scalars(select(Permission)).all() == []

    def test_seed_permissions_idempotent(self, session, ledger, admin):
        assert ledger.users.seed_permissions() == []
        count = len(session.scalars(select(Permission)).all())
        assert count == len(SEED_PERMISSIONS)


class TestCreateUser:
    def test_permissions_in_any_spelling(self, ledger, admin):
        user = ledger.create_user(
            {"username": "nurse", "email": "nurse@example.com"},
            admin.id,
            permissions=["record usage", "VIEW_ONLY"],
        )
        assert user.permissions == ("RecordUsage", "ViewOnly")

    def test_unknown_permission(self, ledger, admin):
        with pytest.raises(ValidationError) as exc_info:
            ledger.create_user(
                {"username": "nurse", "email": "nurse@example.com"}, admin.id, ["Approve Invoices"]
            )
        assert exc_info.value.field == "permissions"

    def test_duplicate_username(self, make_user):
        make_user("nurse")
        with pytest.raises(DuplicateNameError) as exc_info:
            make_user("nurse")
        assert exc_info.value.field == "username"

    def test_requires_manage_users(self, ledger, editor):
        with pytest.raises(ForbiddenError):
            ledger.create_user({"username": "x", "email": "x@example.com"}, editor.id)


class TestUpdateUser:
    def test_grant_takes_effect(self, ledger, admin, viewer, brand, material_type):
        ledger.set_user_permissions(viewer.id, ["EditMaterials"], admin.id)
        material = ledger.create_material(
            {"name": "Sheath", "brand_id": brand.id, "material_type_id": material_type.id},
            viewer.id,
        )
        assert material.name == "Sheath"

    def test_permission_change_logged(self, ledger, admin, viewer, data_log_rows):
        ledger.set_user_permissions(viewer.id, ["ViewOnly", "RecordUsage"], admin.id)
        update = [r for r in data_log_rows("User", viewer.id) if r.action == "UPDATE"][0]
        assert update.old_values["permissions"] == ["ViewOnly"]
        assert update.new_values["permissions"] == ["RecordUsage", "ViewOnly"]

    def test_deactivate(self, ledger, admin, viewer):
        updated = ledger.update_user(viewer.id, {"is_active": False}, admin.id)
        assert not updated.is_active
