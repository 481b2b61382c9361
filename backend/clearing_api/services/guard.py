"""Authorization decision point.

A requirement is an OR of AND-groups: the caller is allowed when every
permission of at least one group is held.  Groups are plain tuples so they
can be declared on a route, stored, or built at runtime alike::

    ORG_READ = requirement(
        PermissionClearer.ORGANIZATION_READ,
        PermissionOrganization.ORGANIZATION_READ,
    )
    BOTH = requirement((PermissionDesk.ROLE_READ, PermissionDesk.USER_READ))
"""
from __future__ import annotations

import enum
from collections.abc import Iterable, Set
from typing import Any, Union

from clearing_api.rbac import is_template, permission_value, render_permission
from clearing_api.services.permission_resolver import ResolutionTarget, resolve_permissions

PermissionGroup = tuple[str, ...]
PermissionGroups = tuple[PermissionGroup, ...]

GroupSpec = Union[str, Iterable[str]]


class Decision(str, enum.Enum):
    ALLOW = "allow"
    DENY = "deny"

    def __bool__(self) -> bool:
        return self is Decision.ALLOW


def requirement(*groups: GroupSpec) -> PermissionGroups:
    """Normalize alternatives into a tuple of AND-groups.

    A bare permission is a one-element group.  Empty groups and empty
    requirements are rejected: they would allow everyone or no one.
    """
    if not groups:
        raise ValueError("A requirement needs at least one permission group")
    normalized: list[PermissionGroup] = []
    for group in groups:
        if isinstance(group, str):
            members = (permission_value(group),)
        else:
            members = tuple(permission_value(p) for p in group)
        if not members:
            raise ValueError("Permission groups must not be empty")
        normalized.append(members)
    return tuple(normalized)


def render_group(group: PermissionGroup, organization_id: str | None) -> PermissionGroup | None:
    """Substitute placeholders in *group*; ``None`` when a template cannot be bound."""
    rendered = []
    for permission in group:
        if is_template(permission):
            if organization_id is None:
                return None
            permission = render_permission(permission, organization_id)
        rendered.append(permission)
    return tuple(rendered)


def authorize(
    required: PermissionGroups,
    resolved: Set[str],
    organization_id: str | None = None,
) -> Decision:
    """ALLOW iff some group of *required* is a subset of *resolved*."""
    for group in required:
        rendered = render_group(group, organization_id)
        if rendered is not None and all(p in resolved for p in rendered):
            return Decision.ALLOW
    return Decision.DENY


def authorize_user(
    required: PermissionGroups,
    user: Any,
    target: ResolutionTarget,
) -> Decision:
    """Resolve *user*'s permissions for *target* and decide."""
    resolved = resolve_permissions(user, target)
    return authorize(required, resolved, target.organization_id)


def describe(required: PermissionGroups) -> str:
    """Human-readable form, e.g. ``a+b | c``."""
    return " | ".join("+".join(group) for group in required)
