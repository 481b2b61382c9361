"""Role routes -- clearer, organization, multi-desk and desk roles."""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from clearing_api.database import get_db
from clearing_api.middleware.auth import require_permission
from clearing_api.models.base import OBJECT_ID_PATTERN
from clearing_api.pagination import PaginationRequest, pagination_params
from clearing_api.rbac import (
    PermissionClearer,
    PermissionDesk,
    PermissionDeskMulti,
    PermissionOrganization,
    Scope,
)
from clearing_api.services.organization_service import OrganizationService
from clearing_api.services.role_service import RoleService, role_to_dict

router = APIRouter(prefix="/api/v1/organization", tags=["role"])

ObjectId = Annotated[str, Path(pattern=OBJECT_ID_PATTERN)]


class RoleCreate(BaseModel):
    name: str
    permissions: list[str] = []


class RoleUpdate(BaseModel):
    name: str | None = None
    permissions: list[str] | None = None
    disabled: bool | None = None


async def _update(service: RoleService, role, body: RoleUpdate, db: AsyncSession) -> dict:
    await service.update_role(
        role,
        name=body.name,
        permissions=body.permissions,
        disabled=body.disabled,
    )
    await db.commit()
    return {"id": role.id, "status": "updated"}


# ---------------------------------------------------------------------------
# CLEARER ROLES (registered first so "clearer" never matches {organization_id})
# ---------------------------------------------------------------------------


@router.get("/clearer/role", tags=["clearer"])
async def list_clearer_roles(
    pagination: PaginationRequest = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(PermissionClearer.ROLE_READ)),
):
    page = await RoleService(db).list_roles(Scope.CLEARER, pagination)
    return page.to_dict(role_to_dict)


@router.post("/clearer/role", status_code=201, tags=["clearer"])
async def create_clearer_role(
    body: RoleCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(PermissionClearer.ROLE_CREATE)),
):
    role = await RoleService(db).create_role(Scope.CLEARER, body.name, body.permissions, user["user"])
    await db.commit()
    return {"id": role.id}


@router.get("/clearer/role/{role_id}", tags=["clearer"])
async def get_clearer_role(
    role_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(PermissionClearer.ROLE_READ)),
):
    return role_to_dict(await RoleService(db).get_role_clearer_by_id(role_id))


@router.patch("/clearer/role/{role_id}", tags=["clearer"])
async def update_clearer_role(
    body: RoleUpdate,
    role_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(PermissionClearer.ROLE_UPDATE)),
):
    service = RoleService(db)
    role = await service.get_role_clearer_by_id(role_id)
    return await _update(service, role, body, db)


# ---------------------------------------------------------------------------
# ORGANIZATION ROLES
# ---------------------------------------------------------------------------

ORG_ROLE_READ = (PermissionClearer.ROLE_READ, PermissionOrganization.ROLE_READ)
ORG_ROLE_CREATE = (PermissionClearer.ROLE_CREATE, PermissionOrganization.ROLE_CREATE)
ORG_ROLE_UPDATE = (PermissionClearer.ROLE_UPDATE, PermissionOrganization.ROLE_UPDATE)


@router.get("/{organization_id}/role", tags=["organization"])
async def list_organization_roles(
    organization_id: ObjectId,
    pagination: PaginationRequest = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(*ORG_ROLE_READ)),
):
    organization = await OrganizationService(db).get_organization(organization_id)
    page = await RoleService(db).list_roles(Scope.ORGANIZATION, pagination, organization_id=organization.id)
    return page.to_dict(role_to_dict)


@router.post("/{organization_id}/role", status_code=201, tags=["organization"])
async def create_organization_role(
    body: RoleCreate,
    organization_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(*ORG_ROLE_CREATE)),
):
    organization = await OrganizationService(db).get_organization(organization_id)
    role = await RoleService(db).create_role(
        Scope.ORGANIZATION, body.name, body.permissions, user["user"], organization=organization
    )
    await db.commit()
    return {"id": role.id}


@router.get("/{organization_id}/role/{role_id}", tags=["organization"])
async def get_organization_role(
    organization_id: ObjectId,
    role_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(*ORG_ROLE_READ)),
):
    organization = await OrganizationService(db).get_organization(organization_id)
    return role_to_dict(await RoleService(db).get_role_organization_by_id(role_id, organization))


@router.patch("/{organization_id}/role/{role_id}", tags=["organization"])
async def update_organization_role(
    body: RoleUpdate,
    organization_id: ObjectId,
    role_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(*ORG_ROLE_UPDATE)),
):
    organization = await OrganizationService(db).get_organization(organization_id)
    service = RoleService(db)
    role = await service.get_role_organization_by_id(role_id, organization)
    return await _update(service, role, body, db)


# ---------------------------------------------------------------------------
# MULTI-DESK ROLES
# ---------------------------------------------------------------------------


@router.get("/{organization_id}/role-multi", tags=["organization"])
async def list_desk_multi_roles(
    organization_id: ObjectId,
    pagination: PaginationRequest = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(*ORG_ROLE_READ)),
):
    organization = await OrganizationService(db).get_organization(organization_id)
    page = await RoleService(db).list_roles(Scope.DESK_MULTI, pagination, organization_id=organization.id)
    return page.to_dict(role_to_dict)


@router.post("/{organization_id}/role-multi", status_code=201, tags=["organization"])
async def create_desk_multi_role(
    body: RoleCreate,
    organization_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(*ORG_ROLE_CREATE)),
):
    organization = await OrganizationService(db).get_organization(organization_id)
    role = await RoleService(db).create_role(
        Scope.DESK_MULTI, body.name, body.permissions, user["user"], organization=organization
    )
    await db.commit()
    return {"id": role.id}


@router.get("/{organization_id}/role-multi/{role_id}", tags=["organization"])
async def get_desk_multi_role(
    organization_id: ObjectId,
    role_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(*ORG_ROLE_READ)),
):
    organization = await OrganizationService(db).get_organization(organization_id)
    return role_to_dict(await RoleService(db).get_role_desk_multi_by_id(role_id, organization))


@router.patch("/{organization_id}/role-multi/{role_id}", tags=["organization"])
async def update_desk_multi_role(
    body: RoleUpdate,
    organization_id: ObjectId,
    role_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(*ORG_ROLE_UPDATE)),
):
    organization = await OrganizationService(db).get_organization(organization_id)
    service = RoleService(db)
    role = await service.get_role_desk_multi_by_id(role_id, organization)
    return await _update(service, role, body, db)


# ---------------------------------------------------------------------------
# DESK ROLES
# ---------------------------------------------------------------------------

DESK_ROLE_READ = (PermissionOrganization.ROLE_READ, PermissionDesk.ROLE_READ, PermissionDeskMulti.ROLE_READ)
DESK_ROLE_CREATE = (PermissionOrganization.ROLE_CREATE, PermissionDesk.ROLE_CREATE, PermissionDeskMulti.ROLE_CREATE)
DESK_ROLE_UPDATE = (PermissionOrganization.ROLE_UPDATE, PermissionDesk.ROLE_UPDATE, PermissionDeskMulti.ROLE_UPDATE)


@router.get("/{organization_id}/desk/{desk_id}/role", tags=["desk"])
async def list_desk_roles(
    organization_id: ObjectId,
    desk_id: ObjectId,
    pagination: PaginationRequest = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(*DESK_ROLE_READ)),
):
    orgs = OrganizationService(db)
    desk = await orgs.get_desk(await orgs.get_organization(organization_id), desk_id)
    page = await RoleService(db).list_roles(Scope.DESK, pagination, desk_id=desk.id)
    return page.to_dict(role_to_dict)


@router.post("/{organization_id}/desk/{desk_id}/role", status_code=201, tags=["desk"])
async def create_desk_role(
    body: RoleCreate,
    organization_id: ObjectId,
    desk_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(*DESK_ROLE_CREATE)),
):
    orgs = OrganizationService(db)
    desk = await orgs.get_desk(await orgs.get_organization(organization_id), desk_id)
    role = await RoleService(db).create_role(Scope.DESK, body.name, body.permissions, user["user"], desk=desk)
    await db.commit()
    return {"id": role.id}


@router.get("/{organization_id}/desk/{desk_id}/role/{role_id}", tags=["desk"])
async def get_desk_role(
    organization_id: ObjectId,
    desk_id: ObjectId,
    role_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(*DESK_ROLE_READ)),
):
    orgs = OrganizationService(db)
    desk = await orgs.get_desk(await orgs.get_organization(organization_id), desk_id)
    return role_to_dict(await RoleService(db).get_role_desk_by_id(role_id, desk))


@router.patch("/{organization_id}/desk/{desk_id}/role/{role_id}", tags=["desk"])
async def update_desk_role(
    body: RoleUpdate,
    organization_id: ObjectId,
    desk_id: ObjectId,
    role_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(*DESK_ROLE_UPDATE)),
):
    orgs = OrganizationService(db)
    desk = await orgs.get_desk(await orgs.get_organization(organization_id), desk_id)
    service = RoleService(db)
    role = await service.get_role_desk_by_id(role_id, desk)
    return await _update(service, role, body, db)
