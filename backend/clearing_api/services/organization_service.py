"""Organization, desk and user bootstrapping.

Creating an organization or a desk also creates its default role and
grants it to the creator; both happen in the caller's transaction so a
failure leaves neither behind.
"""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clearing_api.errors import ConflictError, NotFoundError, RbacError, ValidationFailedError
from clearing_api.models.base import is_object_id
from clearing_api.models.org import Desk, Organization
from clearing_api.models.role import Role, RoleAssignment
from clearing_api.models.user import User
from clearing_api.pagination import Page, PaginationRequest, paginate
from clearing_api.services.role_service import RoleService

logger = logging.getLogger(__name__)


def organization_to_dict(organization: Organization) -> dict:
    return {
        "id": organization.id,
        "name": organization.name,
        "created_at": organization.created_at.isoformat() if organization.created_at else None,
    }


def desk_to_dict(desk: Desk) -> dict:
    return {
        "id": desk.id,
        "organization_id": desk.organization_id,
        "name": desk.name,
        "created_at": desk.created_at.isoformat() if desk.created_at else None,
    }


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name,
        "email": user.email,
        "organization_id": user.organization_id,
        "is_active": user.is_active,
        "roles": [
            {
                "role_id": a.role_id,
                "assigned_at": a.assigned_at.isoformat() if a.assigned_at else None,
                "assigned_by": a.assigned_by_id,
            }
            for a in user.role_assignments
        ],
    }


def _clean_name(name: str, what: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationFailedError(f"{what} name must not be blank")
    return cleaned


class OrganizationService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.roles = RoleService(session)

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    async def create_organization(self, name: str, creating_user: User) -> Organization:
        """Create an organization together with its default role, atomically."""
        organization = Organization(name=_clean_name(name, "Organization"))
        try:
            self.session.add(organization)
            await self.session.flush()
            await self.roles.create_default_organization_role(organization, creating_user)
        except (RbacError, IntegrityError):
            await self.session.rollback()
            logger.error("Organization creation rolled back: default role could not be created")
            raise
        logger.info("Created organization %s (%r) by user %s", organization.id, organization.name, creating_user.id)
        return organization

    async def get_organization(self, organization_id: str) -> Organization:
        if not is_object_id(organization_id):
            raise ValidationFailedError("Invalid Id", details=[organization_id])
        organization = await self.session.get(Organization, organization_id)
        if organization is None:
            raise NotFoundError("Organization has not been found")
        return organization

    async def update_organization(self, organization: Organization, name: str | None = None) -> Organization:
        if name is not None:
            organization.name = _clean_name(name, "Organization")
            await self.session.flush()
        return organization

    async def list_organizations(self, pagination: PaginationRequest) -> Page:
        return await paginate(
            self.session, select(Organization), Organization, pagination,
            search_columns=[Organization.name],
        )

    # ------------------------------------------------------------------
    # Desks
    # ------------------------------------------------------------------

    async def create_desk(self, organization: Organization, name: str, creating_user: User) -> Desk:
        """Create a desk in *organization* with its default role, atomically."""
        desk = Desk(organization_id=organization.id, name=_clean_name(name, "Desk"))
        try:
            self.session.add(desk)
            await self.session.flush()
            await self.roles.create_default_desk_role(desk, creating_user)
        except (RbacError, IntegrityError):
            await self.session.rollback()
            logger.error("Desk creation rolled back: default role could not be created")
            raise
        logger.info("Created desk %s in organization %s", desk.id, organization.id)
        return desk

    async def get_desk(self, organization: Organization, desk_id: str) -> Desk:
        """Return the desk only if it belongs to *organization*."""
        if not is_object_id(desk_id):
            raise ValidationFailedError("Invalid Id", details=[desk_id])
        desk = await self.session.get(Desk, desk_id)
        if desk is None or desk.organization_id != organization.id:
            raise NotFoundError("Desk has not been found")
        return desk

    async def list_desks(self, organization: Organization, pagination: PaginationRequest) -> Page:
        stmt = select(Desk).where(Desk.organization_id == organization.id)
        return await paginate(self.session, stmt, Desk, pagination, search_columns=[Desk.name])

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(
        self,
        username: str,
        display_name: str,
        email: str | None = None,
        organization: Organization | None = None,
    ) -> User:
        existing = await self.session.execute(select(User.id).where(User.username == username))
        if existing.first() is not None:
            raise ConflictError("Username already exists")
        user = User(
            username=_clean_name(username, "User"),
            display_name=display_name,
            email=email,
            organization_id=organization.id if organization is not None else None,
            is_active=True,
            role_assignments=[],
        )
        self.session.add(user)
        await self.session.flush()
        return user

    async def create_organization_user(
        self,
        organization: Organization,
        username: str,
        display_name: str,
        email: str | None,
        assigned_by: User,
    ) -> User:
        """Register a user in *organization* holding the organization's default role."""
        default_role = await self.roles.get_default_organization_role(organization)
        user = await self.create_user(username, display_name, email, organization)
        await self.roles.assign_role(user, default_role, assigned_by=assigned_by)
        logger.info("Created user %s in organization %s", user.id, organization.id)
        return user

    async def get_user(self, user_id: str) -> User:
        if not is_object_id(user_id):
            raise ValidationFailedError("Invalid Id", details=[user_id])
        result = await self.session.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User has not been found")
        return user

    async def get_organization_user(self, organization: Organization, user_id: str) -> User:
        """Return the user only if it belongs to *organization*."""
        user = await self.get_user(user_id)
        if user.organization_id != organization.id:
            raise NotFoundError("User has not been found")
        return user

    async def list_organization_users(self, organization: Organization, pagination: PaginationRequest) -> Page:
        stmt = select(User).where(User.organization_id == organization.id)
        return await paginate(
            self.session, stmt, User, pagination,
            search_columns=[User.username, User.display_name],
        )

    async def list_desk_users(self, desk: Desk, pagination: PaginationRequest) -> Page:
        """Users holding at least one role owned by *desk*."""
        holders = (
            select(RoleAssignment.user_id)
            .join(Role, Role.id == RoleAssignment.role_id)
            .where(Role.desk_id == desk.id)
        )
        stmt = select(User).where(User.id.in_(holders))
        return await paginate(
            self.session, stmt, User, pagination,
            search_columns=[User.username, User.display_name],
        )

    async def update_user(
        self,
        user: User,
        display_name: str | None = None,
        email: str | None = None,
        is_active: bool | None = None,
    ) -> User:
        if display_name is not None:
            user.display_name = _clean_name(display_name, "Display")
        if email is not None:
            user.email = email.strip() or None
        if is_active is not None and is_active != user.is_active:
            user.is_active = is_active
            logger.info("User %s %s", user.id, "activated" if is_active else "deactivated")
        await self.session.flush()
        return user
