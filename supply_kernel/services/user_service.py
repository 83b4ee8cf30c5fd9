"""
UserService -- users, permission grants, and first-run bootstrap.

Responsibility:
    Seeds the permissions table, creates the first administrator, and lets
    holders of Manage Users create users, edit them, and change their grants.

Invariants enforced:
    - seed_permissions() is idempotent and matches existing rows by
      normalized name, so a permission stored as "Edit Materials" is not
      duplicated as "EditMaterials".
    - Users are deactivated, never deleted.
    - Granted names must resolve to a seeded permission (ValidationError).

Audit relevance:
    Guarded calls log through MutationGuard, table "User".  bootstrap_admin
    has no acting identity yet; the new admin is recorded as its own creator
    and the row is logged through AuditLogger directly.
"""

from typing import Any, Iterable, Mapping
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from supply_kernel.domain.clock import Clock
from supply_kernel.domain.dtos import ChangeRecord, UserView
from supply_kernel.domain.permissions import (
    SEED_PERMISSIONS,
    Capability,
    normalize_permission_name,
)
from supply_kernel.domain.values import snapshot
from supply_kernel.exceptions import DuplicateNameError, ValidationError
from supply_kernel.logging_config import get_logger
from supply_kernel.models.user import Permission, User
from supply_kernel.services.base import (
    BaseService,
    coerce_text,
    coerce_uuid,
    reject_unknown_fields,
    require_fields,
)
from supply_kernel.services.mutation_guard import Actor, Mutation, MutationGuard

logger = get_logger("services.user")

USER_FIELDS = ("username", "email", "role", "is_active")


def user_snapshot(user: User) -> dict[str, Any]:
    data = snapshot(user, USER_FIELDS)
    data["permissions"] = sorted(user.permission_names)
    return data


class UserService(BaseService):
    def __init__(self, session: Session, guard: MutationGuard, clock: Clock | None = None):
        super().__init__(session, clock)
        self._guard = guard

    def seed_permissions(self) -> list[str]:
        """Insert any missing seed permissions.  Returns the names inserted."""
        existing = {
            normalize_permission_name(name)
            for name in self.session.scalars(select(Permission.name))
        }
        inserted = []
        for name, description in SEED_PERMISSIONS.values():
            if normalize_permission_name(name) in existing:
                continue
            self.session.add(Permission(name=name, description=description))
            inserted.append(name)
        self.session.flush()
        if inserted:
            logger.info("permissions_seeded", extra={"inserted": inserted})
        return inserted

    def bootstrap_admin(self, username: str, email: str) -> UserView:
        """
        Create the first active user holding every permission.

        Raises:
            ValidationError: Users already exist, or username/email is blank.
        """
        if self._count(User.id):
            raise ValidationError("bootstrap_admin requires an empty users table")
        username = coerce_text(username, "username")
        email = coerce_text(email, "email")
        self.seed_permissions()

        admin_id = uuid4()
        admin = User(
            id=admin_id,
            username=username,
            email=email,
            role="admin",
            is_active=True,
            created_by_id=admin_id,
        )
        admin.permissions = list(self.session.scalars(select(Permission)))
        self.session.add(admin)
        self.session.flush()

        logger.info("admin_bootstrapped", extra={"user_id": str(admin_id), "username": admin.username})
        self._guard.audit_logger.log_create(
            "User",
            admin_id,
            admin_id,
            user_snapshot(admin),
            description=f"Bootstrapped administrator: {admin.username}",
        )
        return UserView.from_model(admin)

    def create_user(
        self,
        fields: Mapping[str, Any],
        user_id: UUID | str,
        permissions: Iterable[str] = (),
    ) -> UserView:
        fields = {k: (v.strip() if isinstance(v, str) else v) for k, v in dict(fields).items()}
        reject_unknown_fields(fields, USER_FIELDS)
        require_fields(fields, ("username", "email"))
        names = list(permissions)

        def create_user(actor: Actor) -> Mutation[UserView]:
            self._check_unique(fields)
            user = User(created_by_id=actor.user_id, **fields)
            user.permissions = self._resolve_permissions(names)
            self.session.add(user)
            self.session.flush()
            return Mutation(
                result=UserView.from_model(user),
                change=ChangeRecord(
                    action="CREATE",
                    table_name="User",
                    record_id=str(user.id),
                    new_values=user_snapshot(user),
                    description=f"Created user: {user.username}",
                ),
            )

        return self._guard.execute(user_id, Capability.MANAGE_USERS, create_user).value

    def update_user(
        self,
        target_id: UUID | str,
        fields: Mapping[str, Any],
        user_id: UUID | str,
    ) -> UserView:
        """Edit profile fields.  Setting is_active False deactivates the user."""
        fields = {k: (v.strip() if isinstance(v, str) else v) for k, v in dict(fields).items()}
        reject_unknown_fields(fields, USER_FIELDS)
        require_fields(fields, tuple(f for f in ("username", "email") if f in fields))

        def update_user(actor: Actor) -> Mutation[UserView]:
            user = self._user(target_id)
            before = user_snapshot(user)
            changed = {k: v for k, v in fields.items() if getattr(user, k) != v}
            self._check_unique(changed)
            for name, value in changed.items():
                setattr(user, name, value)
            user.updated_by_id = actor.user_id
            self.session.flush()
            return Mutation(
                result=UserView.from_model(user),
                change=ChangeRecord(
                    action="UPDATE",
                    table_name="User",
                    record_id=str(user.id),
                    old_values=before,
                    new_values=user_snapshot(user),
                    description=f"Updated user: {user.username}",
                ),
            )

        return self._guard.execute(user_id, Capability.MANAGE_USERS, update_user).value

    def set_user_permissions(
        self,
        target_id: UUID | str,
        permissions: Iterable[str],
        user_id: UUID | str,
    ) -> UserView:
        """Replace the target user's grants with ``permissions`` (any spelling)."""
        names = list(permissions)

        def set_user_permissions(actor: Actor) -> Mutation[UserView]:
            user = self._user(target_id)
            before = user_snapshot(user)
            user.permissions = self._resolve_permissions(names)
            user.updated_by_id = actor.user_id
            self.session.flush()
            return Mutation(
                result=UserView.from_model(user),
                change=ChangeRecord(
                    action="UPDATE",
                    table_name="User",
                    record_id=str(user.id),
                    old_values=before,
                    new_values=user_snapshot(user),
                    description=f"Updated permissions for user: {user.username}",
                ),
            )

        return self._guard.execute(user_id, Capability.MANAGE_USERS, set_user_permissions).value

    def _user(self, target_id) -> User:
        return self._get_or_raise(User, coerce_uuid(target_id, "user_id"), "User")

    def _resolve_permissions(self, names: list[str]) -> list[Permission]:
        by_key = {
            normalize_permission_name(p.name): p
            for p in self.session.scalars(select(Permission))
        }
        resolved: dict[UUID, Permission] = {}
        for name in names:
            permission = by_key.get(normalize_permission_name(name))
            if permission is None:
                raise ValidationError(f"Unknown permission '{name}'", field="permissions")
            resolved[permission.id] = permission
        return sorted(resolved.values(), key=lambda p: p.name)

    def _check_unique(self, fields: Mapping[str, Any]) -> None:
        for name, column in (("username", User.username), ("email", User.email)):
            if name in fields and self._count(User.id, column == fields[name]):
                raise DuplicateNameError("User", fields[name], field=name)
