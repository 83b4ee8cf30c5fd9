"""
Module: supply_kernel.models.user
Responsibility: ORM persistence for users and their granted permissions.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Permission.name is unique.  Stored names keep whatever spelling the
      seeding code used ("EditMaterials"); comparison against required
      capabilities is normalization-tolerant (domain/permissions.py).
    - username and email are unique.

Audit relevance:
    Every DataLog row references the acting User.  Users are deactivated,
    never deleted, so historical log rows keep a resolvable actor.
"""

from sqlalchemy import Boolean, Column, ForeignKey, String, Table, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from supply_kernel.db.base import Base, TrackedBase, UUIDString


user_permissions = Table(
    "user_permissions",
    Base.metadata,
    Column("user_id", UUIDString(), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "permission_id",
        UUIDString(),
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Permission(Base):
    """A named capability that may be granted to users."""

    __tablename__ = "permissions"
    __table_args__ = (UniqueConstraint("name", name="uq_permission_name"),)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<Permission {self.name}>"


class User(TrackedBase):
    """
    An identity that can perform guarded mutations.

    Contract:
        An inactive user resolves to no identity (UnauthenticatedError).

    Non-goals:
        - Credentials.  Authentication happens outside the kernel; the kernel
          receives an already-authenticated user id.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("username", name="uq_user_username"),
        UniqueConstraint("email", name="uq_user_email"),
    )

    username: Mapped[str] = mapped_column(String(100), nullable=False)

    email: Mapped[str] = mapped_column(String(255), nullable=False)

    # Free-text role label ("admin", "staff"); authority comes from permissions
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="staff")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    permissions: Mapped[list[Permission]] = relationship(
        secondary=user_permissions,
        lazy="selectin",
        order_by=Permission.name,
    )

    @property
    def permission_names(self) -> frozenset[str]:
        return frozenset(p.name for p in self.permissions)

    def __repr__(self) -> str:
        return f"<User {self.username}>"
