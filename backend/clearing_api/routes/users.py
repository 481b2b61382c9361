"""User routes -- role grants and effective permissions."""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clearing_api.database import get_db
from clearing_api.errors import ValidationFailedError
from clearing_api.middleware.auth import (
    build_target,
    ensure_authorized,
    ensure_second_factor,
    get_current_user,
)
from clearing_api.models.base import OBJECT_ID_PATTERN
from clearing_api.models.org import Desk
from clearing_api.models.role import Role
from clearing_api.rbac import PermissionClearer, PermissionOrganization, Scope, permission_description
from clearing_api.services.guard import requirement
from clearing_api.services.organization_service import OrganizationService
from clearing_api.services.permission_resolver import ResolutionTarget, resolve_permissions
from clearing_api.services.role_service import RoleService

router = APIRouter(prefix="/api/v1/user", tags=["user"])

ObjectId = Annotated[str, Path(pattern=OBJECT_ID_PATTERN)]

USER_UPDATE = requirement(PermissionClearer.USER_UPDATE, PermissionOrganization.USER_UPDATE)


async def _role_target(db: AsyncSession, role: Role) -> ResolutionTarget:
    """Target a grant is authorized against: the organization owning *role*."""
    scope = Scope(role.scope)
    if scope is Scope.CLEARER:
        return ResolutionTarget.clearer()
    if scope is Scope.DESK:
        desk = await db.get(Desk, role.desk_id)
        return ResolutionTarget.for_organization(desk.organization_id)
    return ResolutionTarget.for_organization(role.organization_id)


async def _load_grant(db: AsyncSession, current_user: dict, user_id: str, role_id: str):
    ensure_second_factor(current_user)
    roles = RoleService(db)
    role = await roles.get_role_by_id(role_id)
    ensure_authorized(current_user, USER_UPDATE, await _role_target(db, role))
    user = await OrganizationService(db).get_user(user_id)
    return roles, user, role


@router.post("/{user_id}/role/{role_id}", status_code=201)
async def assign_role(
    user_id: ObjectId,
    role_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    roles, user, role = await _load_grant(db, current_user, user_id, role_id)
    await roles.assign_role(user, role, assigned_by=current_user["user"])
    await db.commit()
    return {"user_id": user.id, "role_id": role.id, "status": "assigned"}


@router.delete("/{user_id}/role/{role_id}")
async def revoke_role(
    user_id: ObjectId,
    role_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    roles, user, role = await _load_grant(db, current_user, user_id, role_id)
    await roles.revoke_role(user, role)
    await db.commit()
    return {"user_id": user.id, "role_id": role.id, "status": "revoked"}


@router.get("/me/permissions")
async def my_permissions(
    organization_id: str | None = Query(None),
    desk_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """Effective permissions of the caller for the clearer, an organization or a desk."""
    if desk_id is not None and organization_id is None:
        raise ValidationFailedError("desk_id requires organization_id")
    target = await build_target(db, organization_id, desk_id)
    permissions = sorted(resolve_permissions(current_user["user"], target))
    return {
        "user_id": current_user["user_id"],
        "scope": target.scope.value,
        "organization_id": target.organization_id,
        "desk_id": target.desk_id,
        "permissions": permissions,
        "descriptions": {p: permission_description(p) for p in permissions},
    }
