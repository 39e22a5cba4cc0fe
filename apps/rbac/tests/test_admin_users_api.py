"""
Tests for user administration within the organization boundary.
"""
import pytest

from apps.rbac.models import User


def result_ids(response):
    return {row['id'] for row in response.json()['results']}


@pytest.mark.django_db
class TestAdminUserList:
    """Test GET /api/admin/users."""

    def test_org_admin_sees_only_own_organization(self, api_client, login, org_admin, customer, other_customer):
        login(api_client, org_admin)

        response = api_client.get('/api/admin/users')

        assert response.status_code == 200
        assert result_ids(response) == {org_admin.id, customer.id}

    def test_org_admin_naming_other_organization(self, api_client, login, org_admin, other_organization,
                                                 security_events):
        login(api_client, org_admin)

        response = api_client.get('/api/admin/users', {'organizationId': 'org-2'})

        assert response.status_code == 403
        data = response.json()
        assert data['code'] == 'ORGANIZATION_ACCESS_DENIED'
        assert data['requestedOrganization'] == 'org-2'
        assert data['userOrganization'] == 'org-1'

        denied = security_events('permission_denied')
        assert len(denied) == 1
        assert denied[0].user_id == org_admin.id
        assert denied[0].resource == 'users'

    def test_system_admin_sees_every_organization(self, api_client, login, system_admin, customer, other_customer):
        login(api_client, system_admin)

        everyone = api_client.get('/api/admin/users')
        filtered = api_client.get('/api/admin/users', {'organizationId': 'org-2'})

        assert {customer.id, other_customer.id, system_admin.id} <= result_ids(everyone)
        assert result_ids(filtered) == {other_customer.id}

    def test_role_filter(self, api_client, login, system_admin, org_admin, customer):
        login(api_client, system_admin)

        response = api_client.get('/api/admin/users', {'role': 'org_admin'})

        assert result_ids(response) == {org_admin.id}

    def test_customer_is_denied(self, api_client, login, customer):
        login(api_client, customer)

        response = api_client.get('/api/admin/users')

        assert response.status_code == 403
        assert response.json()['requiredPermission'] == 'view_users'

    def test_pagination(self, api_client, login, system_admin, make_user):
        for _ in range(3):
            make_user('customer')
        login(api_client, system_admin)

        response = api_client.get('/api/admin/users', {'page_size': 2})

        data = response.json()
        assert data['count'] == 4
        assert len(data['results']) == 2
        assert data['next'] is not None


@pytest.mark.django_db
class TestAdminUserUpdate:
    """Test PATCH /api/admin/users/{id}."""

    def test_org_admin_changes_role_inside_organization(self, api_client, login, org_admin, customer):
        login(api_client, org_admin)

        response = api_client.patch(f'/api/admin/users/{customer.id}', {'role': 'tutor'}, format='json')

        assert response.status_code == 200
        data = response.json()
        assert data['role'] == 'tutor'
        assert data['assignedModules'] == ['k12', 'post_secondary']

    def test_org_admin_cannot_touch_other_organization(self, api_client, login, org_admin, other_customer):
        login(api_client, org_admin)

        response = api_client.patch(
            f'/api/admin/users/{other_customer.id}', {'isActive': False}, format='json'
        )

        assert response.status_code == 403
        assert response.json()['requestedOrganization'] == 'org-2'
        other_customer.refresh_from_db()
        assert other_customer.is_active is True

    def test_org_admin_cannot_grant_privileged_role(self, api_client, login, org_admin, customer):
        login(api_client, org_admin)

        response = api_client.patch(f'/api/admin/users/{customer.id}', {'role': 'system_admin'}, format='json')

        assert response.status_code == 403
        assert response.json()['code'] == 'ROLE_ASSIGNMENT_DENIED'
        customer.refresh_from_db()
        assert customer.role == 'customer'

    def test_unknown_role(self, api_client, login, system_admin, customer):
        login(api_client, system_admin)

        response = api_client.patch(f'/api/admin/users/{customer.id}', {'role': 'superuser'}, format='json')

        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_ROLE'

    def test_unknown_user(self, api_client, login, system_admin):
        login(api_client, system_admin)

        response = api_client.patch('/api/admin/users/987654', {'isActive': False}, format='json')

        assert response.status_code == 404
        assert response.json()['code'] == 'USER_NOT_FOUND'

    def test_explicit_modules_override_recomputed_ones(self, api_client, login, system_admin, customer):
        login(api_client, system_admin)

        response = api_client.patch(f'/api/admin/users/{customer.id}', {
            'role': 'tutor',
            'assignedModules': ['tutoring'],
        }, format='json')

        assert response.status_code == 200
        assert response.json()['assignedModules'] == ['tutoring']

    def test_invalid_modules(self, api_client, login, system_admin, customer):
        login(api_client, system_admin)

        response = api_client.patch(
            f'/api/admin/users/{customer.id}', {'assignedModules': ['graduate']}, format='json'
        )

        assert response.status_code == 400
        assert 'assignedModules' in response.json()['details']

    def test_system_admin_moves_user_between_organizations(self, api_client, login, system_admin,
                                                           customer, other_organization):
        login(api_client, system_admin)

        response = api_client.patch(
            f'/api/admin/users/{customer.id}', {'organizationId': 'org-2'}, format='json'
        )

        assert response.status_code == 200
        assert response.json()['organizationId'] == 'org-2'

    def test_org_admin_cannot_detach_user(self, api_client, login, org_admin, customer):
        login(api_client, org_admin)

        response = api_client.patch(
            f'/api/admin/users/{customer.id}', {'organizationId': None}, format='json'
        )

        assert response.status_code == 403
        customer.refresh_from_db()
        assert customer.organization_id == 'org-1'

    def test_move_to_missing_organization(self, api_client, login, system_admin, customer):
        login(api_client, system_admin)

        response = api_client.patch(
            f'/api/admin/users/{customer.id}', {'organizationId': 'org-missing'}, format='json'
        )

        assert response.status_code == 404
        assert response.json()['code'] == 'ORGANIZATION_NOT_FOUND'

    def test_update_is_audited(self, api_client, login, org_admin, customer, security_events):
        login(api_client, org_admin)

        api_client.patch(f'/api/admin/users/{customer.id}', {'maxReports': 3}, format='json')

        assert User.objects.get(pk=customer.id).max_reports == 3
        events = security_events('user_updated')
        assert len(events) == 1
        assert events[0].target_user_id == customer.id
        assert events[0].fields == ['maxReports']
