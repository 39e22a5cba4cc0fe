"""
Admin API views for platform operators.

Provides endpoints for:
- Dashboard counters
- Usage analytics per module and organization

Both are narrowed by the request's scope filter like every other read.
"""
import logging

from django.db.models import Count
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.assessments.models import AssessmentCase
from apps.rbac.demo import DemoSandboxService
from apps.rbac.models import User
from apps.rbac.permissions import CanViewAdminDashboard, CanViewAnalytics
from apps.tenants.models import Organization

logger = logging.getLogger(__name__)


def _counts(queryset, field):
    return {
        row[field]: row['total']
        for row in queryset.values(field).annotate(total=Count('pk')).order_by(field)
    }


class AdminDashboardView(APIView):
    """
    GET /api/admin/dashboard
    """
    permission_classes = [CanViewAdminDashboard]

    @extend_schema(
        tags=['Admin'],
        summary='Admin dashboard',
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        scope = request.scope_filter
        users = scope.apply(User.objects.all())
        organizations = scope.apply(
            Organization.objects.all(), organization_field='id', customer_field='customer_id'
        )
        cases = scope.apply(AssessmentCase.objects.all())

        return Response({
            'users': {
                'total': users.count(),
                'active': users.filter(is_active=True).count(),
                'byRole': _counts(users, 'role'),
            },
            'organizations': {
                'total': organizations.count(),
                'active': organizations.filter(is_active=True).count(),
            },
            'assessmentCases': {
                'total': cases.count(),
                'byModule': _counts(cases, 'module_type'),
            },
        })


class AdminAnalyticsView(APIView):
    """
    GET /api/admin/analytics
    """
    permission_classes = [CanViewAnalytics]

    @extend_schema(
        tags=['Admin'],
        summary='Usage analytics',
        responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        scope = request.scope_filter
        cases = scope.apply(AssessmentCase.objects.all())
        demo_users = scope.apply(User.objects.filter(role='demo', is_active=True))

        return Response({
            'casesByStatus': _counts(cases, 'status'),
            'casesByModule': _counts(cases, 'module_type'),
            'casesByOrganization': _counts(cases.exclude(organization=None), 'organization_id'),
            'demo': {
                'activeUsers': demo_users.count(),
                'nearLimit': scope.apply(DemoSandboxService.users_near_limit()).count(),
                'expired': scope.apply(DemoSandboxService.expired_users()).count(),
            },
        })
