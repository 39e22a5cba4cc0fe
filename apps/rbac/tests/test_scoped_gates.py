"""
Tests for the scoped resource gates: modules, user management, reports,
system configuration and the demo quota.
"""
from types import SimpleNamespace

import pytest

from apps.core.exceptions import AccessDenied, InvalidInput
from apps.rbac.gates import (
    AdminGate,
    ModuleGate,
    PermissionGate,
    ReportGate,
    SystemConfigGate,
    UserManagementGate,
)
from apps.rbac.identity import Identity
from apps.rbac.matrix import Scope
from apps.rbac.roles import ActionType, ModuleType, ResourceType, UserRole


def make_identity(role, identity_id=1, organization_id='org-1', modules=(ModuleType.K12,), **extra):
    extra.setdefault('customer_id', organization_id)
    return Identity(
        id=identity_id,
        role=role,
        username=f"user-{identity_id}",
        organization_id=organization_id,
        assigned_modules=tuple(modules),
        **extra
    )


def make_case(owner_id=1, organization_id='org-1', customer_id='org-1'):
    return SimpleNamespace(
        created_by_id=owner_id,
        organization_id=organization_id,
        customer_id=customer_id,
    )


class TestModuleGate:

    def test_assigned_module_is_allowed(self):
        assert ModuleGate.evaluate(make_identity(UserRole.CUSTOMER), 'k12').allowed

    def test_unassigned_module_is_denied_with_assignment(self):
        decision = ModuleGate.evaluate(make_identity(UserRole.CUSTOMER), 'tutoring')

        assert decision.status == 403
        assert decision.code == 'MODULE_ACCESS_DENIED'
        assert decision.details == {
            'requestedModule': 'tutoring',
            'assignedModules': ['k12'],
        }

    def test_developer_reaches_every_module(self):
        identity = make_identity(UserRole.DEVELOPER, modules=())
        assert ModuleGate.evaluate(identity, 'tutoring').allowed

    def test_no_identity_is_401_before_validity(self):
        decision = ModuleGate.evaluate(None, 'not-a-module')
        assert decision.status == 401


class TestUserManagementGate:

    def test_customer_cannot_view_users(self):
        decision = UserManagementGate().evaluate(make_identity(UserRole.CUSTOMER), ActionType.VIEW)

        assert decision.status == 403
        assert decision.code == 'INSUFFICIENT_PERMISSIONS'
        assert decision.details['requiredPermission'] == 'view_users'

    def test_org_admin_inside_own_organization(self):
        decision = UserManagementGate().evaluate(
            make_identity(UserRole.ORG_ADMIN), ActionType.MANAGE, 'org-1'
        )
        assert decision.allowed

    def test_org_admin_denied_other_organization(self):
        decision = UserManagementGate().evaluate(
            make_identity(UserRole.ORG_ADMIN), ActionType.EDIT, 'org-2'
        )

        assert decision.code == 'ORGANIZATION_ACCESS_DENIED'
        assert decision.details['requestedOrganization'] == 'org-2'
        assert decision.details['userOrganization'] == 'org-1'

    def test_org_admin_without_organization_is_denied(self):
        identity = make_identity(UserRole.ORG_ADMIN, organization_id=None)
        decision = UserManagementGate().evaluate(identity, ActionType.VIEW, 'org-1')

        assert decision.code == 'ORGANIZATION_ACCESS_DENIED'
        assert decision.details['userOrganization'] is None

    def test_organization_resource_uses_same_boundary(self):
        gate = UserManagementGate(ResourceType.ORGANIZATIONS)
        identity = make_identity(UserRole.ORG_ADMIN)

        assert gate.evaluate(identity, ActionType.VIEW, 'org-1').allowed
        assert not gate.evaluate(identity, ActionType.VIEW, 'org-2').allowed
        # org admins hold no edit capability on organizations at all
        assert gate.evaluate(identity, ActionType.EDIT, 'org-1').code == 'INSUFFICIENT_PERMISSIONS'

    @pytest.mark.parametrize('role', ['developer', 'system_admin', 'org_admin'])
    def test_org_admin_cannot_hand_out_privileged_roles(self, role):
        decision = UserManagementGate.can_assign_role(make_identity(UserRole.ORG_ADMIN), role)

        assert decision.status == 403
        assert decision.code == 'ROLE_ASSIGNMENT_DENIED'
        assert decision.details['requestedRole'] == role

    @pytest.mark.parametrize('role', ['customer', 'tutor', 'demo'])
    def test_org_admin_can_assign_ordinary_roles(self, role):
        assert UserManagementGate.can_assign_role(make_identity(UserRole.ORG_ADMIN), role).allowed

    def test_system_admin_can_assign_developer(self):
        identity = make_identity(UserRole.SYSTEM_ADMIN, organization_id=None)
        assert UserManagementGate.can_assign_role(identity, 'developer').allowed

    def test_unknown_role_is_invalid(self):
        decision = UserManagementGate.can_assign_role(make_identity(UserRole.SYSTEM_ADMIN), 'superuser')

        assert decision.status == 400
        assert decision.code == 'INVALID_ROLE'
        assert 'tutor' in decision.details['validRoles']


class TestReportQuota:

    @pytest.fixture(autouse=True)
    def demo_limit(self, settings):
        settings.DEMO_REPORT_LIMIT = 5

    def test_demo_user_below_limit(self):
        identity = make_identity(UserRole.DEMO, report_count=4, max_reports=5)
        assert ReportGate.create(identity, 'k12').allowed

    def test_demo_user_at_limit(self):
        identity = make_identity(UserRole.DEMO, report_count=5, max_reports=5)
        decision = ReportGate.create(identity, 'k12')

        assert decision.status == 403
        assert decision.code == 'DEMO_LIMIT_EXCEEDED'
        assert decision.details == {
            'currentCount': 5,
            'maxReports': 5,
            'upgradeUrl': '/upgrade',
        }

    def test_demo_limit_comes_from_configuration(self, settings):
        settings.DEMO_REPORT_LIMIT = 2
        identity = make_identity(UserRole.DEMO, report_count=2, max_reports=50)

        assert ReportGate.create(identity, 'k12').code == 'DEMO_LIMIT_EXCEEDED'

    def test_customer_quota(self):
        identity = make_identity(UserRole.CUSTOMER, report_count=3, max_reports=3)
        decision = ReportGate.create(identity, 'k12')

        assert decision.code == 'REPORT_LIMIT_EXCEEDED'
        assert 'upgradeUrl' not in decision.details

    def test_unlimited_customer(self):
        identity = make_identity(UserRole.CUSTOMER, report_count=10_000, max_reports=-1)
        assert ReportGate.create(identity, 'k12').allowed

    def test_operational_roles_bypass_quota(self):
        identity = make_identity(UserRole.SYSTEM_ADMIN, report_count=9, max_reports=0)
        assert ReportGate.create(identity, 'tutoring').allowed

    def test_module_is_checked_before_quota(self):
        identity = make_identity(UserRole.DEMO, report_count=5, max_reports=5)
        decision = ReportGate.create(identity, 'tutoring')

        assert decision.code == 'MODULE_ACCESS_DENIED'


class TestReportAccess:

    def test_owner_may_view_own_report(self):
        identity = make_identity(UserRole.CUSTOMER, identity_id=7)
        assert ReportGate.access(identity, ActionType.VIEW, make_case(owner_id=7)).allowed

    def test_customer_cannot_view_colleague_report(self):
        identity = make_identity(UserRole.CUSTOMER, identity_id=7)
        decision = ReportGate.access(identity, ActionType.VIEW, make_case(owner_id=8))

        assert decision.code == 'REPORT_ACCESS_DENIED'

    def test_org_admin_views_reports_of_own_organization(self):
        identity = make_identity(UserRole.ORG_ADMIN, identity_id=7)

        assert ReportGate.access(identity, ActionType.EDIT, make_case(owner_id=8)).allowed
        decision = ReportGate.access(
            identity, ActionType.VIEW, make_case(owner_id=8, organization_id='org-2')
        )
        assert decision.code == 'REPORT_ACCESS_DENIED'

    def test_org_admin_cannot_delete_reports(self):
        identity = make_identity(UserRole.ORG_ADMIN)
        decision = ReportGate.access(identity, ActionType.DELETE, make_case())

        assert decision.code == 'INSUFFICIENT_PERMISSIONS'

    def test_scope_for(self):
        assert PermissionGate.scope_for(make_identity(UserRole.CUSTOMER), 'reports', 'view') == Scope.OWN
        assert PermissionGate.scope_for(make_identity(UserRole.ORG_ADMIN), 'reports', 'view') == Scope.ORGANIZATION
        assert PermissionGate.scope_for(make_identity(UserRole.SYSTEM_ADMIN), 'reports', 'view') == Scope.ANY
        assert PermissionGate.scope_for(make_identity(UserRole.CUSTOMER), 'users', 'view') is None
        assert PermissionGate.scope_for(None, 'reports', 'view') is None


class TestSystemConfigGate:

    def test_developer_views_and_edits(self):
        identity = make_identity(UserRole.DEVELOPER, organization_id=None)

        assert SystemConfigGate.can_view(identity)
        assert SystemConfigGate.can_edit(identity)

    def test_system_admin_is_kept_out(self):
        identity = make_identity(UserRole.SYSTEM_ADMIN, organization_id=None)
        decision = SystemConfigGate.view(identity)

        assert decision.status == 403
        assert decision.details['requiredPermission'] == 'view_system_config'
        assert not SystemConfigGate.can_edit(identity)

    def test_developer_only_is_a_role_check(self):
        decision = SystemConfigGate.developer_only(make_identity(UserRole.SYSTEM_ADMIN))

        assert decision.code == 'DEVELOPER_ACCESS_REQUIRED'
        assert decision.details == {'requiredRole': 'developer', 'currentRole': 'system_admin'}
        assert SystemConfigGate.developer_only(make_identity(UserRole.DEVELOPER)).allowed
        assert SystemConfigGate.developer_only(None).status == 401


class TestAdminGate:

    @pytest.mark.parametrize('role, allowed', [
        (UserRole.DEVELOPER, True),
        (UserRole.SYSTEM_ADMIN, True),
        (UserRole.ORG_ADMIN, False),
        (UserRole.CUSTOMER, False),
    ])
    def test_dashboard_and_analytics(self, role, allowed):
        identity = make_identity(role)

        assert AdminGate.dashboard(identity).allowed is allowed
        assert AdminGate.analytics(identity).allowed is allowed


class TestDecisionExceptions:

    def test_denial_becomes_access_denied(self):
        decision = ModuleGate.evaluate(make_identity(UserRole.CUSTOMER), 'tutoring')
        exc = decision.to_exception()

        assert isinstance(exc, AccessDenied)
        assert exc.status_code == 403
        assert exc.as_payload() == {
            'error': 'Module access denied',
            'code': 'MODULE_ACCESS_DENIED',
            'requestedModule': 'tutoring',
            'assignedModules': ['k12'],
        }

    def test_invalid_module_becomes_invalid_input(self):
        exc = ModuleGate.evaluate(make_identity(UserRole.CUSTOMER), 'graduate').to_exception()

        assert isinstance(exc, InvalidInput)
        assert exc.status_code == 400
