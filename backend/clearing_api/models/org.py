"""Organizational structure models: organizations and their desks."""
from __future__ import annotations

import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from clearing_api.database import Base
from clearing_api.models.base import ObjectIdPrimaryKeyMixin, utcnow


class Organization(ObjectIdPrimaryKeyMixin, Base):
    """A tenant of the clearing platform."""
    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Organization {self.id} {self.name!r}>"


class Desk(ObjectIdPrimaryKeyMixin, Base):
    """Operating desk within exactly one organization."""
    __tablename__ = "desks"

    organization_id: Mapped[str] = mapped_column(
        String(24),
        ForeignKey("organizations.id"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<Desk {self.id} {self.name!r} org={self.organization_id}>"
