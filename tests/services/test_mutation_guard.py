"""
Tests for MutationGuard: authorization before any write, one data log row
per successful write, and store error mapping.
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from supply_kernel.domain.dtos import ChangeRecord
from supply_kernel.domain.permissions import Capability
from supply_kernel.exceptions import (
    ConstraintViolationError,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
)
from supply_kernel.models.data_log import DataLog
from supply_kernel.models.material import Material
from supply_kernel.models.reference import Brand
from supply_kernel.services.mutation_guard import Actor, IdentityResolver, Mutation, MutationGuard


def _count(session, model) -> int:
    return session.scalar(select(func.count(model.id)))


class TestAuthentication:
    def test_missing_identity(self, ledger, brand, material_type):
        with pytest.raises(UnauthenticatedError) as exc_info:
            ledger.create_material(
                {"name": "Balloon", "brand_id": brand.id, "material_type_id": material_type.id},
                None,
            )
        assert exc_info.value.code == "UNAUTHENTICATED"

    def test_unknown_user(self, ledger, brand, material_type):
        with pytest.raises(UnauthenticatedError):
            ledger.create_material(
                {"name": "Balloon", "brand_id": brand.id, "material_type_id": material_type.id},
                uuid4(),
            )

    def test_malformed_user_id(self, ledger, brand, material_type):
        with pytest.raises(UnauthenticatedError):
            ledger.create_material(
                {"name": "Balloon", "brand_id": brand.id, "material_type_id": material_type.id},
                "not-a-uuid",
            )

    def test_inactive_user_rejected(self, ledger, admin, editor, brand, material_type):
        ledger.update_user(editor.id, {"is_active": False}, admin.id)
        with pytest.raises(UnauthenticatedError):
            ledger.create_material(
                {"name": "Balloon", "brand_id": brand.id, "material_type_id": material_type.id},
                editor.id,
            )


class TestAuthorization:
    def test_forbidden_writes_nothing(self, session, ledger, viewer, brand, material_type):
        materials_before = _count(session, Material)
        logs_before = _count(session, DataLog)

        with pytest.raises(ForbiddenError) as exc_info:
            ledger.create_material(
                {"name": "Balloon", "brand_id": brand.id, "material_type_id": material_type.id},
                viewer.id,
            )

        assert exc_info.value.required_permission == "Edit Materials"
        assert _count(session, Material) == materials_before
        assert _count(session, DataLog) == logs_before

    def test_closure_not_called_when_forbidden(self, session, ledger, clerk):
        calls = []

        def write(actor):
            calls.append(actor)
            raise AssertionError("write must not run")

        with pytest.raises(ForbiddenError):
            ledger.guard.execute(clerk.id, Capability.EDIT_MATERIALS, write)
        assert calls == []

    def test_denial_is_logged(self, ledger, clerk, captured_logs):
        with pytest.raises(ForbiddenError):
            ledger.guard.authorize(clerk.id, Capability.MANAGE_USERS)
        denied = [r for r in captured_logs() if r["message"] == "permission_denied"]
        assert denied and denied[0]["required"] == "Manage Users"

    def test_authorize_returns_actor(self, ledger, editor):
        actor = ledger.guard.authorize(editor.id, "edit_materials")
        assert actor.user_id == editor.id
        assert actor.username == "editor"


class TestExecute:
    def test_one_log_row_per_write(self, session, ledger, admin):
        def write(actor):
            brand = Brand(name="Abbott", created_by_id=actor.user_id)
            session.add(brand)
            session.flush()
            return Mutation(
                result=brand.id,
                change=ChangeRecord(
                    action="CREATE",
                    table_name="Brand",
                    record_id=str(brand.id),
                    new_values={"name": "Abbott"},
                ),
            )

        outcome = ledger.guard.execute(admin.id, Capability.MANAGE_SETTINGS, write)

        assert outcome.log.is_ok
        entry = session.get(DataLog, outcome.log.log_id)
        assert entry.record_id == str(outcome.value)
        assert entry.user_id == admin.id
        assert entry.new_values == {"name": "Abbott"}

    def test_domain_error_rolls_back_savepoint(self, session, ledger, admin):
        def write(actor):
            session.add(Brand(name="Boston Scientific", created_by_id=actor.user_id))
            session.flush()
            raise NotFoundError("Material", "missing")

        with pytest.raises(NotFoundError):
            ledger.guard.execute(admin.id, Capability.MANAGE_SETTINGS, write)
        assert session.scalar(select(Brand).where(Brand.name == "Boston Scientific")) is None

    def test_integrity_error_mapped(self, session, ledger, admin, brand):
        def write(actor):
            session.add(Brand(name=brand.name, created_by_id=actor.user_id))
            session.flush()
            raise AssertionError("flush should have failed")

        with pytest.raises(ConstraintViolationError) as exc_info:
            ledger.guard.execute(admin.id, Capability.MANAGE_SETTINGS, write)
        assert exc_info.value.code == "CONSTRAINT_VIOLATION"

        # The outer transaction is still usable after the failed savepoint
        assert ledger.list_reference("brand")[0].name == brand.name


class StaticResolver(IdentityResolver):
    def __init__(self, actor):
        self.actor = actor

    def resolve(self, user_id):
        return self.actor


class TestIdentityResolver:
    def test_custom_resolver_is_used(self, session, ledger):
        actor = Actor(user_id=uuid4(), username="service", permissions=frozenset({"ViewOnly"}))
        guard = MutationGuard(session, ledger.audit_logger, StaticResolver(actor))
        assert guard.authorize("anything", Capability.VIEW_ONLY) is actor
        with pytest.raises(ForbiddenError):
            guard.authorize("anything", Capability.RECORD_USAGE)

    def test_resolver_returning_none(self, session, ledger):
        guard = MutationGuard(session, ledger.audit_logger, StaticResolver(None))
        with pytest.raises(UnauthenticatedError):
            guard.authorize(uuid4(), Capability.VIEW_ONLY)
