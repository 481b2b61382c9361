"""SQLAlchemy models for RBAC: scoped roles and their assignment to users."""
from __future__ import annotations

import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clearing_api.database import Base
from clearing_api.models.base import ObjectIdPrimaryKeyMixin, utcnow
from clearing_api.rbac import Scope

if TYPE_CHECKING:
    from clearing_api.models.user import User


class Role(ObjectIdPrimaryKeyMixin, Base):
    """A named bundle of permissions owned by one scope.

    Roles are never deleted; ``disabled`` is the only removal path so that
    assignment history stays intact.
    """
    __tablename__ = "roles"
    __table_args__ = (
        CheckConstraint(
            "(scope = 'clearer' AND organization_id IS NULL AND desk_id IS NULL)"
            " OR (scope IN ('organization', 'desk_multi')"
            " AND organization_id IS NOT NULL AND desk_id IS NULL)"
            " OR (scope = 'desk' AND desk_id IS NOT NULL AND organization_id IS NULL)",
            name="ck_roles_scope_owner",
        ),
        # One default ("owner") role per organization and per desk
        Index(
            "uq_roles_default_organization",
            "organization_id",
            unique=True,
            sqlite_where=text("is_default AND scope = 'organization'"),
            postgresql_where=text("is_default AND scope = 'organization'"),
        ),
        Index(
            "uq_roles_default_desk",
            "desk_id",
            unique=True,
            sqlite_where=text("is_default AND scope = 'desk'"),
            postgresql_where=text("is_default AND scope = 'desk'"),
        ),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    scope: Mapped[Scope] = mapped_column(
        Enum(
            Scope,
            native_enum=False,
            length=20,
            values_callable=lambda scopes: [s.value for s in scopes],
        ),
        nullable=False,
        index=True,
    )
    organization_id: Mapped[str | None] = mapped_column(
        String(24), ForeignKey("organizations.id"), index=True
    )
    desk_id: Mapped[str | None] = mapped_column(
        String(24), ForeignKey("desks.id"), index=True
    )
    permissions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    owner_id: Mapped[str | None] = mapped_column(
        String(24), ForeignKey("users.id")
    )
    disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        state = "disabled" if self.disabled else "active"
        return f"<Role {self.name!r} {self.scope.value} {state}>"


class RoleAssignment(ObjectIdPrimaryKeyMixin, Base):
    """Link between a user and a shared role, with who/when metadata."""
    __tablename__ = "role_assignments"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_role_assignments_user_role"),
    )

    user_id: Mapped[str] = mapped_column(
        String(24),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_id: Mapped[str] = mapped_column(
        String(24),
        ForeignKey("roles.id"),
        nullable=False,
        index=True,
    )
    assigned_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    assigned_by_id: Mapped[str | None] = mapped_column(
        String(24), ForeignKey("users.id")
    )

    # ------ relationships ------
    user: Mapped[User] = relationship(
        "User",
        back_populates="role_assignments",
        foreign_keys=[user_id],
    )
    role: Mapped[Role] = relationship("Role", lazy="selectin")

    def __repr__(self) -> str:
        return f"<RoleAssignment role={self.role_id} user={self.user_id}>"
