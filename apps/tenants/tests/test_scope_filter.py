"""
Tests for the resource scope filter and TenantScopeMiddleware.
"""
import pytest
from django.http import HttpResponse
from django.test import RequestFactory, TestCase

from apps.rbac.identity import Identity
from apps.rbac.models import User
from apps.rbac.roles import UserRole
from apps.tenants.middleware import TenantScopeMiddleware
from apps.tenants.models import Organization
from apps.tenants.scope import ScopeFilter


def identity(role, organization_id=None, customer_id=None):
    return Identity(id=1, role=role, organization_id=organization_id, customer_id=customer_id)


class TestScopeFilterDerivation:

    def test_operational_roles_are_unrestricted(self):
        for role in (UserRole.DEVELOPER, UserRole.SYSTEM_ADMIN):
            scope = ScopeFilter.for_identity(identity(role, organization_id='org-1'))
            assert scope == ScopeFilter(unrestricted=True)

    def test_organization_wins_over_customer_id(self):
        scope = ScopeFilter.for_identity(identity(UserRole.CUSTOMER, 'org-1', 'legacy-1'))
        assert scope == ScopeFilter(organization_id='org-1')

    def test_legacy_customer_id(self):
        scope = ScopeFilter.for_identity(identity(UserRole.DEMO, customer_id='demo-customer'))
        assert scope == ScopeFilter(customer_id='demo-customer')

    def test_nothing_to_scope_by(self):
        assert ScopeFilter.for_identity(identity(UserRole.CUSTOMER)).is_empty
        assert ScopeFilter.for_identity(None).is_empty


@pytest.mark.django_db
class TestScopeFilterQueries:

    def test_apply_narrows_to_organization(self, customer, other_customer, org_admin):
        queryset = ScopeFilter(organization_id='org-1').apply(User.objects.all())
        assert set(queryset) == {customer, org_admin}

    def test_apply_by_customer_id(self, make_user):
        legacy = make_user('customer', customer_id='legacy-1')
        make_user('customer', customer_id='legacy-2')

        queryset = ScopeFilter(customer_id='legacy-1').apply(User.objects.all())

        assert list(queryset) == [legacy]

    def test_apply_on_organization_table(self, organization, other_organization):
        queryset = ScopeFilter(organization_id='org-2').apply(
            Organization.objects.all(), organization_field='id'
        )
        assert list(queryset) == [other_organization]

    def test_empty_scope_matches_nothing(self, customer):
        assert not ScopeFilter().apply(User.objects.all()).exists()

    def test_unrestricted_scope_is_untouched(self, customer, other_customer):
        assert ScopeFilter(unrestricted=True).apply(User.objects.all()).count() == 2


@pytest.mark.django_db
class TenantScopeMiddlewareTestCase(TestCase):
    """Test TenantScopeMiddleware."""

    def setUp(self):
        self.factory = RequestFactory()
        self.middleware = TenantScopeMiddleware(lambda request: HttpResponse('ok'))

    def test_sets_filters_from_identity(self):
        request = self.factory.get('/api/assessment-cases')
        request.identity = identity(UserRole.ORG_ADMIN, organization_id='org-1')

        self.middleware.process_request(request)

        self.assertEqual(request.scope_filter, ScopeFilter(organization_id='org-1'))
        self.assertEqual(request.organization_filter, 'org-1')
        self.assertIsNone(request.customer_filter)

    def test_anonymous_request_gets_empty_scope(self):
        request = self.factory.get('/api/health')

        self.middleware.process_request(request)

        self.assertTrue(request.scope_filter.is_empty)
