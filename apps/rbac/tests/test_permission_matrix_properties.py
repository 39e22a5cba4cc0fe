"""
Property-based tests for the permission gate.

Property: for every (role, resource, action) the gate grants access
exactly when the role matrix, or the operational override table, holds a
capability for the pair. Nothing outside the matrix is ever allowed, a
missing identity is always a 401, and an unknown module is always a 400.
"""
import pytest
from hypothesis import given, settings, strategies as st

from apps.rbac.gates import (
    ModuleGate,
    OrganizationContext,
    PermissionGate,
    UserManagementGate,
)
from apps.rbac.identity import Identity
from apps.rbac.matrix import (
    DEVELOPER_RESERVED_RESOURCES,
    find_capability,
    is_operational,
)
from apps.rbac.roles import ActionType, ModuleType, ResourceType, UserRole

roles = st.sampled_from(list(UserRole))
resources = st.sampled_from(list(ResourceType))
actions = st.sampled_from(list(ActionType))

unknown_modules = st.text(min_size=1, max_size=20).filter(
    lambda value: value not in ModuleType.values
)
organization_ids = st.from_regex(r'org-[a-z0-9]{1,8}', fullmatch=True)


def identity_for(role, organization_id='org-home', modules=(ModuleType.K12,)):
    return Identity(
        id=42,
        role=role,
        username='someone',
        organization_id=organization_id,
        customer_id=organization_id,
        assigned_modules=tuple(modules),
    )


class TestMatrixIsTheOnlySourceOfGrants:

    @given(role=roles, resource=resources, action=actions)
    @settings(max_examples=200)
    def test_non_operational_roles_follow_the_matrix(self, role, resource, action):
        """Ordinary roles are allowed exactly what ROLE_MATRIX lists."""
        if is_operational(role):
            return
        decision = PermissionGate.decide(identity_for(role), resource, action)

        expected = find_capability(role, resource, action) is not None
        assert decision.allowed is expected
        if not expected:
            assert decision.status == 403
            assert decision.code == 'INSUFFICIENT_PERMISSIONS'
            assert decision.details['requiredPermission'] == f"{action.value}_{resource.value}"
            assert decision.details['currentRole'] == role.value

    @given(resource=resources, action=actions)
    def test_developer_is_allowed_everything(self, resource, action):
        assert PermissionGate.check_access(identity_for(UserRole.DEVELOPER), resource, action)

    @given(resource=resources, action=actions)
    def test_system_admin_bypass_stops_at_developer_resources(self, resource, action):
        allowed = PermissionGate.check_access(identity_for(UserRole.SYSTEM_ADMIN), resource, action)

        if resource in DEVELOPER_RESERVED_RESOURCES:
            expected = find_capability(UserRole.SYSTEM_ADMIN, resource, action) is not None
            assert allowed is expected
        else:
            assert allowed

    @given(resource=resources, action=actions)
    def test_missing_identity_is_unauthenticated(self, resource, action):
        decision = PermissionGate.decide(None, resource, action)

        assert not decision.allowed
        assert decision.status == 401
        assert decision.code == 'AUTHENTICATION_REQUIRED'


class TestModuleValidity:

    @given(role=roles, module=unknown_modules)
    @settings(max_examples=100)
    def test_unknown_module_is_a_client_error(self, role, module):
        """An unknown module is a 400 for every role, never a 403."""
        decision = ModuleGate.evaluate(identity_for(role), module)

        assert decision.status == 400
        assert decision.code == 'INVALID_MODULE'
        assert decision.details['requestedModule'] == module
        assert decision.details['validModules'] == list(ModuleType.values)

    @given(role=roles, module=st.sampled_from(list(ModuleType)))
    def test_known_module_allowed_iff_assigned_or_operational(self, role, module):
        identity = identity_for(role, modules=(ModuleType.K12,))
        decision = ModuleGate.evaluate(identity, module.value)

        if is_operational(role) or module == ModuleType.K12:
            assert decision.allowed
        else:
            assert decision.code in ('MODULE_ACCESS_DENIED', 'INSUFFICIENT_PERMISSIONS')


class TestOrganizationBoundary:

    @given(requested=organization_ids)
    def test_org_admin_never_crosses_into_another_organization(self, requested):
        identity = identity_for(UserRole.ORG_ADMIN, organization_id='org-home')
        decision = UserManagementGate().evaluate(identity, ActionType.VIEW, requested)

        if requested == 'org-home':
            assert decision.allowed
        else:
            assert decision.status == 403
            assert decision.code == 'ORGANIZATION_ACCESS_DENIED'
            assert decision.details == {
                'requestedOrganization': requested,
                'userOrganization': 'org-home',
            }

    @given(role=st.sampled_from([UserRole.DEVELOPER, UserRole.SYSTEM_ADMIN]), requested=organization_ids)
    def test_operational_roles_ignore_the_boundary(self, role, requested):
        decision = PermissionGate.decide(
            identity_for(role), ResourceType.USERS, ActionType.EDIT, OrganizationContext(requested)
        )
        assert decision.allowed


@pytest.mark.parametrize('alias, canonical', [('read', 'view'), ('update', 'edit')])
def test_crud_aliases_map_to_canonical_actions(alias, canonical):
    decision = PermissionGate.decide(identity_for(UserRole.SYSTEM_ADMIN), 'reports', alias)

    assert decision.allowed
    assert decision.action == canonical


def test_unknown_resource_is_rejected():
    decision = PermissionGate.decide(identity_for(UserRole.DEVELOPER), 'billing', 'view')

    assert decision.status == 400
    assert decision.code == 'INVALID_PERMISSION_TARGET'
    assert decision.details == {'requestedResource': 'billing', 'requestedAction': 'view'}


@given(role=roles, action=st.text(min_size=1, max_size=12).filter(
    lambda value: ActionType.parse(value) is None
))
def test_unknown_action_never_raises(role, action):
    identity = identity_for(role)

    decision = PermissionGate.decide(identity, ResourceType.REPORTS, action)

    assert decision.status == 400
    assert decision.code == 'INVALID_PERMISSION_TARGET'
    assert PermissionGate.check_access(identity, ResourceType.REPORTS, action) is False


def test_unknown_target_converts_to_a_400_error():
    error = PermissionGate.decide(identity_for(UserRole.ORG_ADMIN), 'billing', 'view').to_exception()

    assert error.status_code == 400
    assert error.as_payload()['requestedResource'] == 'billing'
