"""Organization routes -- organizations, desks, organization users."""
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
)
from clearing_api.services.organization_service import (
    OrganizationService,
    desk_to_dict,
    organization_to_dict,
    user_to_dict,
)

router = APIRouter(prefix="/api/v1", tags=["organization"])

ObjectId = Annotated[str, Path(pattern=OBJECT_ID_PATTERN)]


class OrganizationCreate(BaseModel):
    name: str


class OrganizationUpdate(BaseModel):
    name: str | None = None


class DeskCreate(BaseModel):
    name: str


class OrganizationUserCreate(BaseModel):
    username: str
    display_name: str
    email: str | None = None


class OrganizationUserUpdate(BaseModel):
    display_name: str | None = None
    email: str | None = None
    is_active: bool | None = None


# ---------------------------------------------------------------------------
# ORGANIZATIONS
# ---------------------------------------------------------------------------


@router.post("/clearer/organization", status_code=201, tags=["clearer"])
async def create_organization(
    body: OrganizationCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(PermissionClearer.ORGANIZATION_CREATE)),
):
    organization = await OrganizationService(db).create_organization(body.name, user["user"])
    await db.commit()
    return {"id": organization.id}


@router.get("/organization")
async def list_organizations(
    pagination: PaginationRequest = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(PermissionClearer.ORGANIZATION_READ)),
):
    page = await OrganizationService(db).list_organizations(pagination)
    return page.to_dict(organization_to_dict)


@router.get("/organization/{organization_id}")
async def get_organization(
    organization_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(
        PermissionClearer.ORGANIZATION_READ,
        PermissionOrganization.ORGANIZATION_READ,
    )),
):
    return organization_to_dict(await OrganizationService(db).get_organization(organization_id))


@router.patch("/organization/{organization_id}")
async def update_organization(
    body: OrganizationUpdate,
    organization_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(
        PermissionClearer.ORGANIZATION_UPDATE,
        PermissionOrganization.ORGANIZATION_UPDATE,
    )),
):
    service = OrganizationService(db)
    organization = await service.get_organization(organization_id)
    await service.update_organization(organization, name=body.name)
    await db.commit()
    return {"id": organization.id, "status": "updated"}


# ---------------------------------------------------------------------------
# DESKS
# ---------------------------------------------------------------------------


@router.post("/organization/{organization_id}/desk", status_code=201, tags=["desk"])
async def create_desk(
    body: DeskCreate,
    organization_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(
        PermissionClearer.ORGANIZATION_UPDATE,
        PermissionOrganization.DESK_CREATE,
    )),
):
    service = OrganizationService(db)
    organization = await service.get_organization(organization_id)
    desk = await service.create_desk(organization, body.name, user["user"])
    await db.commit()
    return {"id": desk.id}


@router.get("/organization/{organization_id}/desk", tags=["desk"])
async def list_desks(
    organization_id: ObjectId,
    pagination: PaginationRequest = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(
        PermissionClearer.ORGANIZATION_READ,
        PermissionOrganization.DESK_READ,
    )),
):
    service = OrganizationService(db)
    organization = await service.get_organization(organization_id)
    page = await service.list_desks(organization, pagination)
    return page.to_dict(desk_to_dict)


@router.get("/organization/{organization_id}/desk/{desk_id}", tags=["desk"])
async def get_desk(
    organization_id: ObjectId,
    desk_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(
        PermissionOrganization.DESK_READ,
        PermissionDesk.DESK_READ,
        PermissionDeskMulti.DESK_READ,
    )),
):
    service = OrganizationService(db)
    organization = await service.get_organization(organization_id)
    return desk_to_dict(await service.get_desk(organization, desk_id))


# ---------------------------------------------------------------------------
# ORGANIZATION USERS
# ---------------------------------------------------------------------------


USER_READ = (
    PermissionClearer.USER_READ,
    PermissionOrganization.USER_READ,
)

USER_UPDATE = (
    PermissionClearer.USER_UPDATE,
    PermissionOrganization.USER_UPDATE,
)


@router.post("/organization/{organization_id}/user", status_code=201, tags=["user"])
async def create_organization_user(
    body: OrganizationUserCreate,
    organization_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(
        PermissionClearer.USER_CREATE,
        PermissionOrganization.USER_CREATE,
    )),
):
    service = OrganizationService(db)
    organization = await service.get_organization(organization_id)
    created = await service.create_organization_user(
        organization, body.username, body.display_name, body.email, assigned_by=user["user"]
    )
    await db.commit()
    return user_to_dict(created)


@router.get("/organization/{organization_id}/user", tags=["user"])
async def list_organization_users(
    organization_id: ObjectId,
    pagination: PaginationRequest = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(*USER_READ)),
):
    service = OrganizationService(db)
    organization = await service.get_organization(organization_id)
    page = await service.list_organization_users(organization, pagination)
    return page.to_dict(user_to_dict)


@router.get("/organization/{organization_id}/user/{user_id}", tags=["user"])
async def get_organization_user(
    organization_id: ObjectId,
    user_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(*USER_READ)),
):
    service = OrganizationService(db)
    organization = await service.get_organization(organization_id)
    return user_to_dict(await service.get_organization_user(organization, user_id))


@router.patch("/organization/{organization_id}/user/{user_id}", tags=["user"])
async def update_organization_user(
    body: OrganizationUserUpdate,
    organization_id: ObjectId,
    user_id: ObjectId,
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(*USER_UPDATE)),
):
    service = OrganizationService(db)
    organization = await service.get_organization(organization_id)
    managed = await service.get_organization_user(organization, user_id)
    await service.update_user(
        managed, display_name=body.display_name, email=body.email, is_active=body.is_active
    )
    await db.commit()
    return user_to_dict(managed)


@router.get("/organization/{organization_id}/desk/{desk_id}/user", tags=["desk"])
async def list_desk_users(
    organization_id: ObjectId,
    desk_id: ObjectId,
    pagination: PaginationRequest = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _user: dict = Depends(require_permission(
        PermissionClearer.USER_READ,
        PermissionOrganization.USER_READ,
        PermissionDesk.USER_READ,
        PermissionDeskMulti.USER_READ,
    )),
):
    service = OrganizationService(db)
    organization = await service.get_organization(organization_id)
    desk = await service.get_desk(organization, desk_id)
    page = await service.list_desk_users(desk, pagination)
    return page.to_dict(user_to_dict)
