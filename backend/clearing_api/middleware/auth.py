"""Authentication and authorization dependencies for the clearing API.

Provides:
- JWT creation (development/tests) and validation
- ``get_current_user()`` dependency loading the caller with its roles
- ``require_permission()`` dependency factory evaluating OR-of-AND
  permission groups against the resource named in the request path
- second-factor enforcement from token claims
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clearing_api.config import settings
from clearing_api.database import get_db
from clearing_api.errors import ForbiddenError, ValidationFailedError
from clearing_api.models.base import is_object_id
from clearing_api.models.org import Desk
from clearing_api.models.user import User
from clearing_api.services.guard import (
    PermissionGroups,
    authorize,
    describe,
    requirement,
)
from clearing_api.services.permission_resolver import ResolutionTarget, resolve_permissions

logger = logging.getLogger(__name__)

SECOND_FACTOR_CLAIM = "isSecondFactorAuthenticated"

# ---------------------------------------------------------------------------
# JWT helpers
# ---------------------------------------------------------------------------


def create_access_token(data: dict[str, Any]) -> str:
    """Create a signed JWT containing *sub* (user id), optional claims and *exp*."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


bearer_scheme = HTTPBearer(auto_error=False)

# ---------------------------------------------------------------------------
# Current-user dependency
# ---------------------------------------------------------------------------


async def load_user(db: AsyncSession, user_id: str) -> User | None:
    """Load a user with its role assignments and their roles in one snapshot."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Decode the JWT, look up the user, and return a dict describing the caller.

    Raises ``HTTPException(401)`` when the token is invalid or the user cannot
    be found, ``HTTPException(403)`` when the account is deactivated.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise credentials_exception

    user_id = payload.get("sub")
    if not is_object_id(user_id):
        raise credentials_exception

    user = await load_user(db, user_id)
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return {
        "user_id": user.id,
        "username": user.username,
        "organization_id": user.organization_id,
        # Only a literal true counts; missing or any other value is "not authenticated"
        "second_factor_authenticated": payload.get(SECOND_FACTOR_CLAIM) is True,
        "user": user,
    }


def ensure_second_factor(current_user: dict[str, Any]) -> None:
    if not current_user["second_factor_authenticated"]:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Second factor authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )


# ---------------------------------------------------------------------------
# Target resolution from the request path
# ---------------------------------------------------------------------------


async def build_target(
    db: AsyncSession,
    organization_id: str | None = None,
    desk_id: str | None = None,
) -> ResolutionTarget:
    """Build the resolution target for an organization and/or desk id.

    The desk is looked up to learn which organization really owns it; an
    unknown desk leaves that owner empty so resolution fails closed.
    """
    malformed = [v for v in (organization_id, desk_id) if v is not None and not is_object_id(v)]
    if malformed:
        raise ValidationFailedError("Invalid Id", details=malformed)

    if desk_id is not None:
        desk = await db.get(Desk, desk_id)
        return ResolutionTarget.for_desk(
            organization_id,
            desk_id,
            desk.organization_id if desk is not None else None,
        )
    if organization_id is not None:
        return ResolutionTarget.for_organization(organization_id)
    return ResolutionTarget.clearer()


async def target_from_path(request: Request, db: AsyncSession) -> ResolutionTarget:
    # Dependencies run before path validation; build_target rejects malformed ids itself
    return await build_target(
        db,
        request.path_params.get("organization_id"),
        request.path_params.get("desk_id"),
    )


def ensure_authorized(
    current_user: dict[str, Any],
    required: PermissionGroups,
    target: ResolutionTarget,
) -> frozenset[str]:
    """Raise ``ForbiddenError`` unless the caller satisfies *required* for *target*."""
    resolved = resolve_permissions(current_user["user"], target)
    if not authorize(required, resolved, target.organization_id):
        logger.warning(
            "Permission denied for user %s on %s org=%s desk=%s; required %s",
            current_user["user_id"], target.scope.value,
            target.organization_id, target.desk_id, describe(required),
        )
        raise ForbiddenError(f"Missing permissions: {describe(required)}")
    return resolved


# ---------------------------------------------------------------------------
# Permission-checking dependency factory
# ---------------------------------------------------------------------------


def require_permission(*groups, second_factor: bool = True):
    """Return a FastAPI dependency that ensures the authenticated user holds
    every permission of at least one of *groups* for the path's resource.

    Usage::

        @router.get("/organization/{organization_id}")
        async def get_organization(
            organization_id: str,
            user: dict = Depends(require_permission(
                PermissionClearer.ORGANIZATION_READ,
                PermissionOrganization.ORGANIZATION_READ,
            )),
        ):
            ...
    """
    required = requirement(*groups)

    async def _check_permission(
        request: Request,
        current_user: dict[str, Any] = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> dict[str, Any]:
        if second_factor:
            ensure_second_factor(current_user)
        target = await target_from_path(request, db)
        ensure_authorized(current_user, required, target)
        return current_user

    return _check_permission
