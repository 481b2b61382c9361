"""
Unit tests for effective-permission resolution over in-memory users and roles.
"""
from types import SimpleNamespace

from clearing_api.rbac import Scope
from clearing_api.services.permission_resolver import ResolutionTarget, resolve_permissions

ORG1 = "65a1b2c3d4e5f60718290001"
ORG2 = "65a1b2c3d4e5f60718290002"
DESK1 = "65a1b2c3d4e5f6071829d001"
DESK2 = "65a1b2c3d4e5f6071829d002"


def role(scope, permissions, organization_id=None, desk_id=None, disabled=False):
    return SimpleNamespace(
        scope=scope,
        permissions=list(permissions),
        organization_id=organization_id,
        desk_id=desk_id,
        disabled=disabled,
    )


def user(*roles, organization_id=ORG1):
    return SimpleNamespace(
        organization_id=organization_id,
        role_assignments=[SimpleNamespace(role=r) for r in roles],
    )


DESK1_TARGET = ResolutionTarget.for_desk(ORG1, DESK1, ORG1)


class TestScopeMatching:

    def test_organization_role_applies_only_to_its_organization(self):
        u = user(role(Scope.ORGANIZATION, ["organizationRead"], organization_id=ORG1))
        assert resolve_permissions(u, ResolutionTarget.for_organization(ORG1)) == {"organizationRead"}
        assert resolve_permissions(u, ResolutionTarget.for_organization(ORG2)) == frozenset()

    def test_organization_role_contributes_to_its_desks(self):
        u = user(role(Scope.ORGANIZATION, ["organizationDeskRead"], organization_id=ORG1))
        assert resolve_permissions(u, DESK1_TARGET) == {"organizationDeskRead"}

    def test_clearer_role_applies_everywhere(self):
        u = user(role(Scope.CLEARER, ["clearerRoleRead"]), organization_id=None)
        assert resolve_permissions(u, ResolutionTarget.clearer()) == {"clearerRoleRead"}
        assert resolve_permissions(u, ResolutionTarget.for_organization(ORG2)) == {"clearerRoleRead"}

    def test_desk_role_applies_only_to_its_desk(self):
        u = user(role(Scope.DESK, ["deskRead"], desk_id=DESK1))
        assert resolve_permissions(u, DESK1_TARGET) == {"deskRead"}
        assert resolve_permissions(u, ResolutionTarget.for_desk(ORG1, DESK2, ORG1)) == frozenset()
        assert resolve_permissions(u, ResolutionTarget.for_organization(ORG1)) == frozenset()

    def test_scope_given_as_stored_string(self):
        u = user(role("organization", ["organizationRead"], organization_id=ORG1))
        assert resolve_permissions(u, ResolutionTarget.for_organization(ORG1)) == {"organizationRead"}

    def test_permissions_are_unioned_across_roles(self):
        u = user(
            role(Scope.ORGANIZATION, ["organizationRead"], organization_id=ORG1),
            role(Scope.DESK, ["deskRead", "deskUserRead"], desk_id=DESK1),
            role(Scope.CLEARER, ["clearerUserRead"]),
        )
        assert resolve_permissions(u, DESK1_TARGET) == {
            "organizationRead", "deskRead", "deskUserRead", "clearerUserRead",
        }


class TestDeskMulti:

    def test_templates_are_rendered_with_the_owning_organization(self):
        u = user(role(Scope.DESK_MULTI, ["deskRead#id#", "deskUserRead"], organization_id=ORG1))
        assert resolve_permissions(u, DESK1_TARGET) == {"deskRead" + ORG1, "deskUserRead"}

    def test_multi_role_does_not_apply_to_an_organization_target(self):
        u = user(role(Scope.DESK_MULTI, ["deskRead#id#"], organization_id=ORG1))
        assert resolve_permissions(u, ResolutionTarget.for_organization(ORG1)) == frozenset()

    def test_multi_role_ignored_for_desks_of_another_organization(self):
        u = user(role(Scope.DESK_MULTI, ["deskRead#id#"], organization_id=ORG1))
        assert resolve_permissions(u, ResolutionTarget.for_desk(ORG2, DESK2, ORG2)) == frozenset()

    def test_multi_role_requires_the_user_to_belong_to_the_owner(self):
        u = user(role(Scope.DESK_MULTI, ["deskRead#id#"], organization_id=ORG1), organization_id=ORG2)
        assert resolve_permissions(u, DESK1_TARGET) == frozenset()


class TestFailClosed:

    def test_disabled_roles_contribute_nothing(self):
        u = user(role(Scope.ORGANIZATION, ["organizationRead"], organization_id=ORG1, disabled=True))
        assert resolve_permissions(u, ResolutionTarget.for_organization(ORG1)) == frozenset()

    def test_desk_outside_the_requested_organization_resolves_empty(self):
        u = user(
            role(Scope.CLEARER, ["clearerOrganizationRead"]),
            role(Scope.ORGANIZATION, ["organizationDeskRead"], organization_id=ORG1),
        )
        # DESK2 really belongs to ORG2
        assert resolve_permissions(u, ResolutionTarget.for_desk(ORG1, DESK2, ORG2)) == frozenset()

    def test_unknown_desk_resolves_empty(self):
        u = user(role(Scope.ORGANIZATION, ["organizationDeskRead"], organization_id=ORG1))
        assert resolve_permissions(u, ResolutionTarget.for_desk(ORG1, DESK1, None)) == frozenset()

    def test_organization_target_without_id_resolves_empty(self):
        u = user(role(Scope.CLEARER, ["clearerOrganizationRead"]))
        assert resolve_permissions(u, ResolutionTarget(Scope.ORGANIZATION)) == frozenset()

    def test_user_without_roles(self):
        assert resolve_permissions(user(), DESK1_TARGET) == frozenset()

    def test_resolution_is_repeatable(self):
        u = user(role(Scope.DESK_MULTI, ["deskRead#id#"], organization_id=ORG1))
        assert resolve_permissions(u, DESK1_TARGET) == resolve_permissions(u, DESK1_TARGET)
