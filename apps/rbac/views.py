"""
RBAC REST API views.

Implements endpoints for:
- Module access (summary, per-module gate, switching)
- User administration within the organization boundary
- Demo quota status and upgrade prompts
"""
import logging

from django.db import transaction
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import InvalidInput, ResourceNotFound
from apps.core.logging import SecurityLogger
from apps.rbac.demo import DemoSandboxService
from apps.rbac.gates import (
    OrganizationContext,
    PermissionGate,
    UserManagementGate,
)
from apps.rbac.models import User
from apps.rbac.permissions import (
    IsAuthenticatedIdentity,
    RequiresModuleAccess,
    enforce_access,
    enforce_decision,
)
from apps.rbac.roles import ActionType, ModuleType, ResourceType, UserRole
from apps.rbac.serializers import (
    ModuleSwitchSerializer,
    UserSerializer,
    UserUpdateSerializer,
)
from apps.rbac.services import ModuleAssignmentService
from apps.tenants.models import Organization

logger = logging.getLogger(__name__)

ACTIVE_MODULE_SESSION_KEY = 'active_module'


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


# ===== MODULES =====

@extend_schema_view(
    get=extend_schema(
        tags=['Modules'],
        summary='Module summary',
        description='Assigned modules, whether the caller may switch freely, and the default module.',
        responses={200: OpenApiTypes.OBJECT},
    )
)
class ModuleListView(APIView):
    """
    GET /api/modules
    """
    permission_classes = [IsAuthenticatedIdentity]

    def get(self, request):
        identity = request.user
        summary = ModuleAssignmentService.summary(identity)
        summary['activeModule'] = request.session.get(
            ACTIVE_MODULE_SESSION_KEY, summary['defaultModule']
        )
        summary['modules'] = [
            {
                'value': module.value,
                'label': module.label,
                'assigned': identity.has_module(module) or identity.is_operational,
            }
            for module in ModuleType
        ]
        return Response(summary)


@extend_schema_view(
    get=extend_schema(
        tags=['Modules'],
        summary='Check module access',
        description='''
**Returns 400** `INVALID_MODULE` for a module outside the enumeration and
**403** `MODULE_ACCESS_DENIED` when the module is not assigned to the caller.
        ''',
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
)
class ModuleDetailView(APIView):
    """
    GET /api/modules/{module}
    """
    permission_classes = [RequiresModuleAccess]

    def get(self, request, module):
        module_type = ModuleType(module)
        return Response({
            'module': module_type.value,
            'label': module_type.label,
            'hasAccess': True,
        })


@extend_schema_view(
    post=extend_schema(
        tags=['Modules'],
        summary='Switch active module',
        request=ModuleSwitchSerializer,
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
)
class ModuleSwitchView(APIView):
    """
    POST /api/modules/switch

    Only roles holding ``modules:switch`` may change the active module.
    """
    permission_classes = [enforce_access(ResourceType.MODULES, ActionType.SWITCH)]

    def post(self, request):
        serializer = ModuleSwitchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        value = serializer.validated_data['module']
        module = ModuleType.parse(value)
        if module is None:
            raise InvalidInput(
                'Invalid module type',
                code='INVALID_MODULE',
                requestedModule=value,
                validModules=list(ModuleType.values),
            )

        request.session[ACTIVE_MODULE_SESSION_KEY] = module.value
        logger.info(
            "Active module switched",
            extra={'user_id': request.user.id, 'active_module': module.value}
        )
        return Response({
            'activeModule': module.value,
            'assignedModules': [m.value for m in request.user.assigned_modules],
        })


# ===== USER ADMINISTRATION =====

@extend_schema_view(
    get=extend_schema(
        tags=['Admin - Users'],
        summary='List users',
        description='''
Users visible to the caller. Organization admins only see their own
organization; naming another organization returns 403
`ORGANIZATION_ACCESS_DENIED`.

**Required permission:** `users:view`
        ''',
        parameters=[
            OpenApiParameter(name='organizationId', type=str, required=False),
            OpenApiParameter(name='role', type=str, required=False),
        ],
        responses={200: UserSerializer(many=True), 403: OpenApiTypes.OBJECT},
    )
)
class AdminUserListView(APIView):
    """
    GET /api/admin/users
    """
    permission_classes = [enforce_access(ResourceType.USERS, ActionType.VIEW)]

    def get(self, request):
        identity = request.user
        queryset = request.scope_filter.apply(
            User.objects.select_related('organization')
        )

        organization_id = request.query_params.get('organizationId')
        if organization_id:
            enforce_decision(
                request, UserManagementGate().evaluate(identity, ActionType.VIEW, organization_id)
            )
            queryset = queryset.filter(organization_id=organization_id)

        role = request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role)

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = UserSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)


@extend_schema_view(
    patch=extend_schema(
        tags=['Admin - Users'],
        summary='Update user',
        description='''
Change a user's role, status, modules, organization or report quota.

Organization admins may only edit users of their own organization and may
not hand out privileged roles. A role change recomputes the user's module
assignment unless `assignedModules` is sent as well. The new role applies
from the user's next request.

**Required permission:** `users:edit`
        ''',
        request=UserUpdateSerializer,
        responses={200: UserSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT,
                   404: OpenApiTypes.OBJECT},
    )
)
class AdminUserDetailView(APIView):
    """
    PATCH /api/admin/users/{user_id}
    """
    permission_classes = [enforce_access(ResourceType.USERS, ActionType.EDIT)]

    def patch(self, request, user_id):
        identity = request.user
        target = User.objects.with_organization(user_id)
        if target is None:
            raise ResourceNotFound('User not found', code='USER_NOT_FOUND')

        enforce_decision(request, PermissionGate.decide(
            identity, ResourceType.USERS, ActionType.EDIT,
            OrganizationContext(target.organization_id),
        ))

        serializer = UserUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if 'role' in data:
            enforce_decision(request, UserManagementGate.can_assign_role(identity, data['role']))

        if 'organizationId' in data:
            target.organization = self._destination(request, data['organizationId'])

        previous_role = target.role
        with transaction.atomic():
            if 'role' in data:
                target.role = UserRole(data['role']).value
            if 'isActive' in data:
                target.is_active = data['isActive']
            if 'maxReports' in data:
                target.max_reports = data['maxReports']
            # Role changes recompute assigned_modules in a pre_save signal.
            target.save()

            if 'assignedModules' in data:
                target.assigned_modules = data['assignedModules']
                target.save(update_fields=['assigned_modules', 'updated_at'])

        SecurityLogger.log_event(
            'user_updated',
            level='info',
            actor_id=identity.id,
            target_user_id=target.id,
            previous_role=previous_role,
            new_role=target.role,
            fields=sorted(data.keys()),
        )
        return Response(UserSerializer(target).data)

    @staticmethod
    def _destination(request, organization_id):
        identity = request.user
        if organization_id is None:
            # Only operational roles may detach a user from every organization.
            enforce_decision(request, PermissionGate.decide(
                identity, ResourceType.USERS, ActionType.MANAGE, OrganizationContext(None)
            ))
            return None

        enforce_decision(
            request, UserManagementGate().evaluate(identity, ActionType.MANAGE, organization_id)
        )
        organization = Organization.objects.active().filter(pk=organization_id).first()
        if organization is None:
            raise ResourceNotFound('Organization not found', code='ORGANIZATION_NOT_FOUND')
        return organization


# ===== DEMO SANDBOX =====

@extend_schema_view(
    get=extend_schema(
        tags=['Demo'],
        summary='Demo report quota',
        responses={200: OpenApiTypes.OBJECT},
    )
)
class DemoReportStatusView(APIView):
    """
    GET /api/demo/report-status
    """
    permission_classes = [IsAuthenticatedIdentity]

    def get(self, request):
        return Response(DemoSandboxService.check_report_limit(request.user))


@extend_schema_view(
    get=extend_schema(
        tags=['Demo'],
        summary='Demo upgrade prompt',
        responses={200: OpenApiTypes.OBJECT},
    )
)
class DemoUpgradePromptView(APIView):
    """
    GET /api/demo/upgrade-prompt
    """
    permission_classes = [IsAuthenticatedIdentity]

    def get(self, request):
        return Response(DemoSandboxService.upgrade_prompt(request.user))
