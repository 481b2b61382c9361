"""
RBAC Permission Catalog -- clearing organization service

Defines the closed set of permission strings each role scope may hold.
Role documents store these strings verbatim, so the catalog is part of the
deployed contract: adding a permission is backward compatible, removing or
renaming one requires migrating every stored role.

Multi-desk permissions may carry the ``#id#`` placeholder; it is replaced
with the owning organization's id when a user's permissions are resolved.
"""
from __future__ import annotations

import enum
from collections.abc import Iterable

CATALOG_VERSION = "2024.1"

PLACEHOLDER = "#id#"


class Scope(str, enum.Enum):
    CLEARER = "clearer"  # platform-wide, no owning resource
    ORGANIZATION = "organization"
    DESK = "desk"
    DESK_MULTI = "desk_multi"  # owned by an organization, applies to all its desks


# ---------------------------------------------------------------------------
# Permission strings per scope
# ---------------------------------------------------------------------------


class PermissionClearer(str, enum.Enum):
    ORGANIZATION_CREATE = "clearerOrganizationCreate"
    ORGANIZATION_READ = "clearerOrganizationRead"
    ORGANIZATION_UPDATE = "clearerOrganizationUpdate"
    ROLE_CREATE = "clearerRoleCreate"
    ROLE_READ = "clearerRoleRead"
    ROLE_UPDATE = "clearerRoleUpdate"
    USER_CREATE = "clearerUserCreate"
    USER_READ = "clearerUserRead"
    USER_UPDATE = "clearerUserUpdate"


class PermissionOrganization(str, enum.Enum):
    ORGANIZATION_READ = "organizationRead"
    ORGANIZATION_UPDATE = "organizationUpdate"
    ROLE_CREATE = "organizationRoleCreate"
    ROLE_READ = "organizationRoleRead"
    ROLE_UPDATE = "organizationRoleUpdate"
    DESK_CREATE = "organizationDeskCreate"
    DESK_READ = "organizationDeskRead"
    DESK_UPDATE = "organizationDeskUpdate"
    USER_CREATE = "organizationUserCreate"
    USER_READ = "organizationUserRead"
    USER_UPDATE = "organizationUserUpdate"


class PermissionDesk(str, enum.Enum):
    DESK_READ = "deskRead"
    DESK_UPDATE = "deskUpdate"
    ROLE_CREATE = "deskRoleCreate"
    ROLE_READ = "deskRoleRead"
    ROLE_UPDATE = "deskRoleUpdate"
    USER_READ = "deskUserRead"


class PermissionDeskMulti(str, enum.Enum):
    DESK_READ = "deskRead" + PLACEHOLDER
    DESK_UPDATE = "deskUpdate" + PLACEHOLDER
    ROLE_CREATE = "deskRoleCreate" + PLACEHOLDER
    ROLE_READ = "deskRoleRead" + PLACEHOLDER
    ROLE_UPDATE = "deskRoleUpdate" + PLACEHOLDER
    USER_READ = "deskUserRead" + PLACEHOLDER


def _values(*enums: type[enum.Enum]) -> frozenset[str]:
    return frozenset(member.value for e in enums for member in e)


PERMISSION_CATALOG: dict[Scope, frozenset[str]] = {
    Scope.CLEARER: _values(PermissionClearer),
    Scope.ORGANIZATION: _values(PermissionOrganization),
    Scope.DESK: _values(PermissionDesk),
    # A multi-desk role may hold plain desk permissions or org-bound templates
    Scope.DESK_MULTI: _values(PermissionDesk, PermissionDeskMulti),
}

ALL_PERMISSIONS: list[str] = sorted(set().union(*PERMISSION_CATALOG.values()))


# ---------------------------------------------------------------------------
# Default roles created with an organization or a desk
# ---------------------------------------------------------------------------

DEFAULT_ROLE_NAMES: dict[Scope, str] = {
    Scope.ORGANIZATION: "Organization Administrator",
    Scope.DESK: "Desk Administrator",
}

DEFAULT_ROLE_PERMISSIONS: dict[Scope, frozenset[str]] = {
    Scope.ORGANIZATION: PERMISSION_CATALOG[Scope.ORGANIZATION],
    Scope.DESK: PERMISSION_CATALOG[Scope.DESK],
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def permission_value(permission: str | enum.Enum) -> str:
    """Plain string form of a permission given as a string or catalog member."""
    return permission.value if isinstance(permission, enum.Enum) else str(permission)


def catalog_for(scope: Scope | str) -> frozenset[str]:
    """Return the permission strings a role of *scope* may hold."""
    return PERMISSION_CATALOG[Scope(scope)]


def invalid_permissions(scope: Scope | str, permissions: Iterable[str]) -> list[str]:
    """Return every entry of *permissions* outside the catalog of *scope*, in input order."""
    allowed = catalog_for(scope)
    invalid: list[str] = []
    for permission in permissions:
        if permission not in allowed and permission not in invalid:
            invalid.append(permission)
    return invalid


def is_template(permission: str) -> bool:
    return PLACEHOLDER in permission


def render_permission(permission: str, organization_id: str) -> str:
    """Replace every placeholder occurrence in *permission* with *organization_id*."""
    return permission.replace(PLACEHOLDER, organization_id)


def permission_description(permission: str) -> str:
    """Return a human-readable description for a permission string."""
    _DESCRIPTIONS: dict[str, str] = {
        "clearerOrganizationCreate": "Create organizations",
        "clearerOrganizationRead": "View every organization",
        "clearerOrganizationUpdate": "Edit every organization",
        "clearerRoleCreate": "Create clearer roles",
        "clearerRoleRead": "View clearer roles",
        "clearerRoleUpdate": "Edit or disable clearer roles",
        "clearerUserCreate": "Create users in any organization",
        "clearerUserRead": "View users of any organization",
        "clearerUserUpdate": "Grant/revoke roles for any user",
        "organizationRead": "View the organization",
        "organizationUpdate": "Edit the organization",
        "organizationRoleCreate": "Create organization, multi-desk and desk roles",
        "organizationRoleRead": "View the organization's roles",
        "organizationRoleUpdate": "Edit or disable the organization's roles",
        "organizationDeskCreate": "Create desks",
        "organizationDeskRead": "View desks",
        "organizationDeskUpdate": "Edit desks",
        "organizationUserCreate": "Create users in the organization",
        "organizationUserRead": "View users of the organization",
        "organizationUserUpdate": "Grant/revoke roles within the organization",
        "deskRead": "View the desk",
        "deskUpdate": "Edit the desk",
        "deskRoleCreate": "Create desk roles",
        "deskRoleRead": "View desk roles",
        "deskRoleUpdate": "Edit or disable desk roles",
        "deskUserRead": "View desk users",
    }
    if is_template(permission):
        base = permission.replace(PLACEHOLDER, "")
        if base in _DESCRIPTIONS:
            return f"{_DESCRIPTIONS[base]} (every desk of the owning organization)"
    return _DESCRIPTIONS.get(permission, permission)
