"""Role administration: scoped role CRUD, default roles, assignment.

Every mutation validates permission strings against the catalog for the
role's scope and keeps the scope ↔ owner-resource invariant.  Methods only
flush; the caller owns the transaction and commits.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clearing_api.errors import ConflictError, NotFoundError, ValidationFailedError
from clearing_api.models.base import is_object_id, utcnow
from clearing_api.models.org import Desk, Organization
from clearing_api.models.role import Role, RoleAssignment
from clearing_api.models.user import User
from clearing_api.pagination import Page, PaginationRequest, paginate
from clearing_api.rbac import (
    DEFAULT_ROLE_NAMES,
    DEFAULT_ROLE_PERMISSIONS,
    Scope,
    invalid_permissions,
    permission_value,
)

logger = logging.getLogger(__name__)


def role_to_dict(role: Role) -> dict:
    return {
        "id": role.id,
        "name": role.name,
        "scope": role.scope.value,
        "organization_id": role.organization_id,
        "desk_id": role.desk_id,
        "permissions": sorted(role.permissions),
        "owner_id": role.owner_id,
        "disabled": role.disabled,
        "is_default": role.is_default,
        "created_at": role.created_at.isoformat() if role.created_at else None,
        "updated_at": role.updated_at.isoformat() if role.updated_at else None,
    }


class RoleService:
    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _clean_permissions(scope: Scope, permissions: Iterable) -> list[str]:
        values = [permission_value(p) for p in permissions]
        invalid = invalid_permissions(scope, values)
        if invalid:
            raise ValidationFailedError(
                f"Permissions not allowed for {scope.value} roles: {', '.join(invalid)}",
                details=invalid,
            )
        return sorted(set(values))

    @staticmethod
    def _clean_name(name: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationFailedError("Role name must not be blank")
        return cleaned

    async def _flush(self, what: str) -> None:
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("Integrity error while saving %s: %s", what, e.orig)
            raise ConflictError(f"Conflicting {what}") from e

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_role(
        self,
        scope: Scope | str,
        name: str,
        permissions: Iterable,
        creating_user: User,
        organization: Organization | None = None,
        desk: Desk | None = None,
        *,
        is_default: bool = False,
    ) -> Role:
        """Create a role owned by *organization* / *desk* according to *scope*."""
        scope = Scope(scope)

        if scope is Scope.CLEARER and (organization is not None or desk is not None):
            raise ConflictError("Clearer roles cannot reference an organization or desk")
        if scope in (Scope.ORGANIZATION, Scope.DESK_MULTI):
            if organization is None or desk is not None:
                raise ConflictError(f"{scope.value} roles must reference exactly one organization")
        if scope is Scope.DESK and (desk is None or organization is not None):
            raise ConflictError("desk roles must reference exactly one desk")

        name = self._clean_name(name)
        cleaned = self._clean_permissions(scope, permissions)

        # Owner resources must exist in storage, not only in memory
        if organization is not None and await self.session.get(Organization, organization.id) is None:
            raise NotFoundError("Organization has not been found")
        if desk is not None and await self.session.get(Desk, desk.id) is None:
            raise NotFoundError("Desk has not been found")

        role = Role(
            name=name,
            scope=scope,
            organization_id=organization.id if organization is not None else None,
            desk_id=desk.id if desk is not None else None,
            permissions=cleaned,
            owner_id=creating_user.id,
            disabled=False,
            is_default=is_default,
        )
        self.session.add(role)
        await self._flush("role")
        logger.info(
            "Created %s role %s (%r) owner=%s by user %s",
            scope.value, role.id, role.name,
            role.organization_id or role.desk_id, creating_user.id,
        )
        return role

    async def create_default_organization_role(
        self, organization: Organization, creating_user: User
    ) -> Role:
        """Create the full-permission owner role of *organization* and grant it to *creating_user*."""
        existing = await self.session.execute(
            select(Role.id).where(
                Role.scope == Scope.ORGANIZATION,
                Role.organization_id == organization.id,
                Role.is_default.is_(True),
            )
        )
        if existing.first() is not None:
            raise ValidationFailedError("Organization already has a default role")

        role = await self.create_role(
            Scope.ORGANIZATION,
            DEFAULT_ROLE_NAMES[Scope.ORGANIZATION],
            DEFAULT_ROLE_PERMISSIONS[Scope.ORGANIZATION],
            creating_user,
            organization=organization,
            is_default=True,
        )
        # The creator owns the new resource even when operating from outside the organization
        await self._attach(creating_user, role, assigned_by=creating_user)
        return role

    async def create_default_desk_role(self, desk: Desk, creating_user: User) -> Role:
        """Create the full-permission owner role of *desk* and grant it to *creating_user*."""
        existing = await self.session.execute(
            select(Role.id).where(
                Role.scope == Scope.DESK,
                Role.desk_id == desk.id,
                Role.is_default.is_(True),
            )
        )
        if existing.first() is not None:
            raise ValidationFailedError("Desk already has a default role")

        role = await self.create_role(
            Scope.DESK,
            DEFAULT_ROLE_NAMES[Scope.DESK],
            DEFAULT_ROLE_PERMISSIONS[Scope.DESK],
            creating_user,
            desk=desk,
            is_default=True,
        )
        # The creator owns the new resource even when operating from outside the organization
        await self._attach(creating_user, role, assigned_by=creating_user)
        return role

    async def get_default_organization_role(self, organization: Organization) -> Role:
        result = await self.session.execute(
            select(Role).where(
                Role.scope == Scope.ORGANIZATION,
                Role.organization_id == organization.id,
                Role.is_default.is_(True),
            )
        )
        role = result.scalar_one_or_none()
        if role is None:
            raise NotFoundError("Organization default role has not been found")
        return role

    # ------------------------------------------------------------------
    # Update (Active <-> Disabled is the only state change)
    # ------------------------------------------------------------------

    async def update_role(
        self,
        role: Role,
        name: str | None = None,
        permissions: Iterable | None = None,
        disabled: bool | None = None,
    ) -> Role:
        changes: dict = {}
        if name is not None:
            role.name = self._clean_name(name)
            changes["name"] = role.name
        if permissions is not None:
            role.permissions = self._clean_permissions(role.scope, permissions)
            changes["permissions"] = role.permissions
        if disabled is not None and disabled != role.disabled:
            role.disabled = disabled
            changes["disabled"] = disabled
        if changes:
            role.updated_at = utcnow()
            await self._flush("role")
            logger.info("Updated role %s: %s", role.id, ", ".join(sorted(changes)))
        return role

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_role_by_id(self, role_id: str) -> Role:
        if not is_object_id(role_id):
            raise ValidationFailedError("Invalid Id", details=[role_id])
        role = await self.session.get(Role, role_id)
        if role is None:
            raise NotFoundError("Role has not been found")
        return role

    async def _get_scoped(self, role_id: str, scope: Scope, **owner: str) -> Role:
        # A role of another scope or tenant is reported exactly like a missing one
        try:
            role = await self.get_role_by_id(role_id)
        except NotFoundError:
            role = None
        if role is None or role.scope is not scope or any(
            getattr(role, column) != value for column, value in owner.items()
        ):
            raise NotFoundError(f"{scope.value.replace('_', '-').capitalize()} role has not been found")
        return role

    async def get_role_clearer_by_id(self, role_id: str) -> Role:
        return await self._get_scoped(role_id, Scope.CLEARER)

    async def get_role_organization_by_id(self, role_id: str, organization: Organization) -> Role:
        return await self._get_scoped(role_id, Scope.ORGANIZATION, organization_id=organization.id)

    async def get_role_desk_multi_by_id(self, role_id: str, organization: Organization) -> Role:
        return await self._get_scoped(role_id, Scope.DESK_MULTI, organization_id=organization.id)

    async def get_role_desk_by_id(self, role_id: str, desk: Desk) -> Role:
        return await self._get_scoped(role_id, Scope.DESK, desk_id=desk.id)

    async def list_roles(
        self,
        scope: Scope | str,
        pagination: PaginationRequest,
        organization_id: str | None = None,
        desk_id: str | None = None,
    ) -> Page:
        scope = Scope(scope)
        stmt = select(Role).where(Role.scope == scope)
        if scope in (Scope.ORGANIZATION, Scope.DESK_MULTI):
            stmt = stmt.where(Role.organization_id == organization_id)
        elif scope is Scope.DESK:
            stmt = stmt.where(Role.desk_id == desk_id)
        return await paginate(self.session, stmt, Role, pagination, search_columns=[Role.name])

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    async def role_organization_id(self, role: Role) -> str | None:
        """Organization owning *role*; desk roles are owned through their desk."""
        if role.scope is Scope.DESK:
            desk = await self.session.get(Desk, role.desk_id)
            return desk.organization_id if desk is not None else None
        return role.organization_id

    async def _ensure_same_tenant(self, user: User, role: Role) -> None:
        # A user of another organization is reported exactly like a missing one
        if role.scope is Scope.CLEARER:
            return
        if user.organization_id != await self.role_organization_id(role):
            raise NotFoundError("User has not been found")

    async def _attach(self, user: User, role: Role, assigned_by: User | None) -> RoleAssignment:
        if any(a.role_id == role.id for a in user.role_assignments):
            raise ConflictError("Role is already assigned to this user")

        assignment = RoleAssignment(
            role=role,
            role_id=role.id,
            assigned_at=utcnow(),
            assigned_by_id=assigned_by.id if assigned_by is not None else None,
        )
        user.role_assignments.append(assignment)
        await self._flush("role assignment")
        logger.info(
            "Assigned role %s to user %s by %s",
            role.id, user.id, assigned_by.id if assigned_by is not None else "system",
        )
        return assignment

    async def assign_role(self, user: User, role: Role, assigned_by: User | None) -> RoleAssignment:
        """Grant *role* to *user*; non-clearer roles only within their own organization."""
        await self._ensure_same_tenant(user, role)
        if role.disabled:
            raise ValidationFailedError("Disabled roles cannot be assigned")
        return await self._attach(user, role, assigned_by)

    async def revoke_role(self, user: User, role: Role) -> None:
        await self._ensure_same_tenant(user, role)
        for assignment in list(user.role_assignments):
            if assignment.role_id == role.id:
                user.role_assignments.remove(assignment)
                await self._flush("role assignment")
                logger.info("Revoked role %s from user %s", role.id, user.id)
                return
        raise NotFoundError("Role assignment has not been found")
