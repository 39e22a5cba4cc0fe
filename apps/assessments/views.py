"""
Assessment case API views.

Reads are always narrowed by the request's scope filter, and by owner for
roles whose report capability is limited to their own records. Creation
passes the module gate and the report quota; on demo deployments the
tenant id comes from the firewall, never from the caller.
"""
import dataclasses
import logging

from django.db import transaction
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.assessments.models import AssessmentCase
from apps.assessments.serializers import (
    AssessmentCaseCreateSerializer,
    AssessmentCaseSerializer,
    AssessmentCaseUpdateSerializer,
)
from apps.core.exceptions import AccessDenied, InvalidInput, ResourceNotFound
from apps.core.logging import SecurityLogger
from apps.rbac.demo import DemoSandboxService
from apps.rbac.gates import ModuleGate, PermissionGate, ReportGate
from apps.rbac.matrix import Scope
from apps.rbac.models import User
from apps.rbac.permissions import enforce_access, enforce_decision
from apps.rbac.roles import ActionType, ResourceType
from apps.rbac.views import StandardResultsSetPagination

logger = logging.getLogger(__name__)


def scoped_cases(request, action=ActionType.VIEW):
    """Cases the caller may see for ``action``."""
    identity = request.user
    queryset = request.scope_filter.apply(AssessmentCase.objects.all())
    if getattr(request, 'is_demo_operation', False):
        queryset = queryset.filter(customer_id=request.enforce_demo_customer)
    if PermissionGate.scope_for(identity, ResourceType.REPORTS, action) == Scope.OWN:
        queryset = queryset.owned_by(identity.id)
    if not identity.is_operational:
        queryset = queryset.for_modules(identity.assigned_modules)
    return queryset


def check_demo_tenant(request, case):
    """A demo operation may only touch records of the demo tenant."""
    if not getattr(request, 'is_demo_operation', False):
        return
    if case.customer_id != request.enforce_demo_customer:
        SecurityLogger.log_event(
            'demo_isolation_violation',
            level='error',
            method=request.method,
            path=request.path,
            case_id=case.case_id,
            demo_customer_enforced=request.enforce_demo_customer,
        )
        raise AccessDenied(
            'Demo operations may only target the demo tenant',
            code='DEMO_CUSTOMER_ISOLATION_VIOLATION',
            field='caseId',
        )


class AssessmentCaseListView(APIView):
    """
    GET  /api/assessment-cases
    POST /api/assessment-cases
    """

    def get_permissions(self):
        if self.request.method == 'POST':
            return [enforce_access(ResourceType.REPORTS, ActionType.CREATE)()]
        return [enforce_access(ResourceType.REPORTS, ActionType.VIEW)()]

    @extend_schema(
        tags=['Assessment Cases'],
        summary='List assessment cases',
        parameters=[OpenApiParameter(name='moduleType', type=str, required=False)],
        responses={200: AssessmentCaseSerializer(many=True)},
    )
    def get(self, request):
        queryset = scoped_cases(request)

        module = request.query_params.get('moduleType')
        if module:
            enforce_decision(request, ModuleGate.evaluate(request.user, module), source='moduleType')
            queryset = queryset.filter(module_type=module)

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = AssessmentCaseSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    @extend_schema(
        tags=['Assessment Cases'],
        summary='Create assessment case',
        description='''
Requires access to `moduleType` (400 `INVALID_MODULE` for unknown modules,
403 `MODULE_ACCESS_DENIED` for unassigned ones) and remaining report quota
(403 `DEMO_LIMIT_EXCEEDED` / `REPORT_LIMIT_EXCEEDED`).
        ''',
        request=AssessmentCaseCreateSerializer,
        responses={201: AssessmentCaseSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
    def post(self, request):
        identity = request.user
        serializer = AssessmentCaseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        enforce_decision(request, ReportGate.create(identity, data['moduleType']), source='quota')

        if getattr(request, 'is_demo_operation', False):
            customer_id = request.enforce_demo_customer
        else:
            customer_id = identity.customer_id or ''

        with transaction.atomic():
            # Re-check the quota against the locked row so parallel creates
            # cannot overshoot it.
            author = User.objects.select_for_update().get(pk=identity.id)
            current = dataclasses.replace(identity, report_count=author.report_count)
            enforce_decision(request, ReportGate.create(current, data['moduleType']), source='quota')

            case = AssessmentCase.objects.create(
                module_type=data['moduleType'],
                display_name=data.get('displayName', ''),
                customer_id=customer_id,
                organization_id=identity.organization_id,
                created_by_id=identity.id,
                data=data.get('data') or {},
            )
            author.increment_report_count()

        logger.info(
            "Assessment case created",
            extra={
                'case_id': case.case_id,
                'module_type': case.module_type,
                'customer_id': case.customer_id,
                'demo_operation': getattr(request, 'is_demo_operation', False),
            }
        )

        payload = AssessmentCaseSerializer(case).data
        if identity.is_demo:
            updated = dataclasses.replace(identity, report_count=author.report_count)
            payload['demo'] = DemoSandboxService.check_report_limit(updated)
        return Response(payload, status=status.HTTP_201_CREATED)


class AssessmentCaseDetailView(APIView):
    """
    GET   /api/assessment-cases/{case_id}
    PATCH /api/assessment-cases/{case_id}
    """

    def get_permissions(self):
        action = ActionType.EDIT if self.request.method == 'PATCH' else ActionType.VIEW
        return [enforce_access(ResourceType.REPORTS, action)()]

    def get_case(self, request, case_id, action):
        case = request.scope_filter.apply(AssessmentCase.objects.all()).filter(pk=case_id).first()
        if case is None:
            raise ResourceNotFound('Assessment case not found', code='CASE_NOT_FOUND')

        enforce_decision(request, ReportGate.access(request.user, action, case), source='report')
        enforce_decision(request, ModuleGate.evaluate(request.user, case.module_type), source='module')
        check_demo_tenant(request, case)
        return case

    @extend_schema(
        tags=['Assessment Cases'],
        summary='Get assessment case',
        responses={200: AssessmentCaseSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
    def get(self, request, case_id):
        case = self.get_case(request, case_id, ActionType.VIEW)
        return Response(AssessmentCaseSerializer(case).data)

    @extend_schema(
        tags=['Assessment Cases'],
        summary='Update assessment case',
        request=AssessmentCaseUpdateSerializer,
        responses={200: AssessmentCaseSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
    def patch(self, request, case_id):
        case = self.get_case(request, case_id, ActionType.EDIT)
        serializer = AssessmentCaseUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if case.is_finalized and 'data' in data:
            raise InvalidInput('Finalized cases cannot be edited', code='CASE_FINALIZED')

        if 'displayName' in data:
            case.display_name = data['displayName']
        if 'status' in data:
            case.status = data['status']
        if 'data' in data:
            case.data = data['data']
        case.save()

        logger.info(
            "Assessment case updated",
            extra={'case_id': case.case_id, 'fields': sorted(data.keys())}
        )
        return Response(AssessmentCaseSerializer(case).data)
