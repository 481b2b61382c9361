"""User model: organization affiliation and role assignments."""
from __future__ import annotations

import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clearing_api.database import Base
from clearing_api.models.base import ObjectIdPrimaryKeyMixin, utcnow

if TYPE_CHECKING:
    from clearing_api.models.role import RoleAssignment


class User(ObjectIdPrimaryKeyMixin, Base):
    """A platform user.  Clearer operators have no organization."""
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False
    )
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(200))
    # Set once at registration; users are never moved between organizations
    organization_id: Mapped[str | None] = mapped_column(
        String(24),
        ForeignKey("organizations.id"),
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    # ------ relationships ------
    role_assignments: Mapped[list[RoleAssignment]] = relationship(
        "RoleAssignment",
        back_populates="user",
        foreign_keys="RoleAssignment.user_id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User {self.username!r} org={self.organization_id}>"
