"""Effective permission resolution.

``resolve_permissions`` is a pure function over already-loaded data: the
user, its role assignments and their roles must be materialized by the
caller (``middleware.auth.load_user`` loads them eagerly in one query).
Nothing here touches the database, so the function is safe to call
repeatedly and concurrently.
"""
from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from typing import Any

from clearing_api.rbac import Scope, render_permission


@dataclasses.dataclass(frozen=True)
class ResolutionTarget:
    """The scope chain a permission check is evaluated against.

    ``desk_organization_id`` is the organization that actually owns
    ``desk_id`` (as stored), which may differ from the organization named in
    the request path.
    """

    scope: Scope
    organization_id: str | None = None
    desk_id: str | None = None
    desk_organization_id: str | None = None

    @classmethod
    def clearer(cls) -> ResolutionTarget:
        return cls(Scope.CLEARER)

    @classmethod
    def for_organization(cls, organization_id: str) -> ResolutionTarget:
        return cls(Scope.ORGANIZATION, organization_id=organization_id)

    @classmethod
    def for_desk(
        cls,
        organization_id: str,
        desk_id: str,
        desk_organization_id: str | None,
    ) -> ResolutionTarget:
        return cls(
            Scope.DESK,
            organization_id=organization_id,
            desk_id=desk_id,
            desk_organization_id=desk_organization_id,
        )

    @property
    def is_consistent(self) -> bool:
        """False when the target names a desk outside its organization."""
        if self.scope in (Scope.DESK, Scope.DESK_MULTI) and self.desk_id is None:
            return False
        if self.scope is Scope.ORGANIZATION and self.organization_id is None:
            return False
        if self.desk_id is not None:
            return (
                self.organization_id is not None
                and self.desk_organization_id == self.organization_id
            )
        return True


def role_applies(role: Any, user: Any, target: ResolutionTarget) -> bool:
    """Whether an active *role* held by *user* contributes to *target*."""
    scope = Scope(role.scope)
    if scope is Scope.CLEARER:
        return True
    if scope is Scope.ORGANIZATION:
        return target.organization_id is not None and role.organization_id == target.organization_id
    if scope is Scope.DESK:
        return target.desk_id is not None and role.desk_id == target.desk_id
    if scope is Scope.DESK_MULTI:
        # Multi-desk roles only ever act for their owner, which must be the user's own organization
        return (
            target.desk_id is not None
            and role.organization_id == target.organization_id
            and role.organization_id == user.organization_id
        )
    return False


def role_permissions(role: Any) -> set[str]:
    """The role's permissions with multi-desk placeholders substituted."""
    if Scope(role.scope) is Scope.DESK_MULTI:
        return {render_permission(p, role.organization_id) for p in role.permissions}
    return set(role.permissions)


def active_roles(assignments: Iterable[Any]) -> list[Any]:
    return [a.role for a in assignments if a.role is not None and not a.role.disabled]


def resolve_permissions(user: Any, target: ResolutionTarget) -> frozenset[str]:
    """Compute the fully-substituted permission set *user* holds for *target*.

    Fails closed: an inconsistent target (a desk that does not belong to the
    requested organization, or a missing identifier for the target scope)
    resolves to the empty set.
    """
    if not target.is_consistent:
        return frozenset()

    resolved: set[str] = set()
    for role in active_roles(user.role_assignments):
        if role_applies(role, user, target):
            resolved |= role_permissions(role)
    return frozenset(resolved)
