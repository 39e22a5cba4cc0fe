"""
Organization API views.

Every request naming an organization passes the user management gate
before the organization is loaded, so a foreign organization id is denied
without revealing whether it exists.
"""
import logging

from django.db import transaction
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import InvalidInput, ResourceNotFound
from apps.core.logging import SecurityLogger
from apps.rbac.gates import OrganizationContext, UserManagementGate
from apps.rbac.models import User
from apps.rbac.permissions import enforce_access, enforce_decision
from apps.rbac.roles import ActionType, ResourceType, UserRole
from apps.rbac.serializers import OrganizationUserCreateSerializer, UserSerializer
from apps.rbac.views import StandardResultsSetPagination
from apps.tenants.models import Organization
from apps.tenants.serializers import (
    OrganizationCreateSerializer,
    OrganizationSerializer,
    OrganizationUpdateSerializer,
)

logger = logging.getLogger(__name__)


def organization_from_url(request, view):
    return OrganizationContext(view.kwargs.get('organization_id'))


def get_organization(organization_id):
    organization = Organization.objects.filter(pk=organization_id).first()
    if organization is None:
        raise ResourceNotFound('Organization not found', code='ORGANIZATION_NOT_FOUND')
    return organization


class OrganizationListView(APIView):
    """
    GET  /api/organizations - organizations inside the caller's scope
    POST /api/organizations - create an organization (organizations:create)
    """

    def get_permissions(self):
        if self.request.method == 'POST':
            return [enforce_access(ResourceType.ORGANIZATIONS, ActionType.CREATE)()]
        return [enforce_access(ResourceType.ORGANIZATIONS, ActionType.VIEW)()]

    @extend_schema(
        tags=['Organizations'],
        summary='List organizations',
        responses={200: OrganizationSerializer(many=True)},
    )
    def get(self, request):
        queryset = request.scope_filter.apply(
            Organization.objects.all(),
            organization_field='id',
            customer_field='customer_id',
        )
        if request.query_params.get('active') == 'true':
            queryset = queryset.active()

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = OrganizationSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    @extend_schema(
        tags=['Organizations'],
        summary='Create organization',
        request=OrganizationCreateSerializer,
        responses={201: OrganizationSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
    def post(self, request):
        serializer = OrganizationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        organization = Organization(name=data['name'], max_users=data['maxUsers'])
        organization.customer_id = organization.id
        if data.get('assignedModules'):
            organization.assigned_modules = data['assignedModules']
        organization.save()

        SecurityLogger.log_event(
            'organization_created',
            level='info',
            actor_id=request.user.id,
            organization_id=organization.id,
        )
        return Response(OrganizationSerializer(organization).data, status=status.HTTP_201_CREATED)


class OrganizationDetailView(APIView):
    """
    GET    /api/organizations/{organization_id}
    PATCH  /api/organizations/{organization_id}
    DELETE /api/organizations/{organization_id} - soft delete
    """

    ACTIONS = {
        'GET': ActionType.VIEW,
        'PATCH': ActionType.EDIT,
        'DELETE': ActionType.DELETE,
    }

    def get_permissions(self):
        action = self.ACTIONS.get(self.request.method, ActionType.VIEW)
        return [enforce_access(ResourceType.ORGANIZATIONS, action, context=organization_from_url)()]

    @extend_schema(
        tags=['Organizations'],
        summary='Get organization',
        description='''
Organization admins may only read their own organization. Any other id
returns 403 `ORGANIZATION_ACCESS_DENIED` with `requestedOrganization` and
`userOrganization`.
        ''',
        responses={200: OrganizationSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
    def get(self, request, organization_id):
        organization = get_organization(organization_id)
        return Response(OrganizationSerializer(organization).data)

    @extend_schema(
        tags=['Organizations'],
        summary='Update organization',
        request=OrganizationUpdateSerializer,
        responses={200: OrganizationSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
    def patch(self, request, organization_id):
        organization = get_organization(organization_id)
        serializer = OrganizationUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        deactivating = data.get('isActive') is False and organization.is_active
        if deactivating:
            organization.soft_delete()

        if 'name' in data:
            organization.name = data['name']
        if 'assignedModules' in data:
            organization.assigned_modules = data['assignedModules']
        if 'maxUsers' in data:
            organization.max_users = data['maxUsers']
        if data.get('isActive') is True:
            organization.is_active = True
        organization.save()

        if deactivating:
            SecurityLogger.log_event(
                'organization_deactivated',
                level='info',
                actor_id=request.user.id,
                organization_id=organization.id,
            )

        logger.info(
            "Organization updated",
            extra={'organization_id': organization.id, 'fields': sorted(data.keys())}
        )
        return Response(OrganizationSerializer(organization).data)

    @extend_schema(
        tags=['Organizations'],
        summary='Deactivate organization',
        description='Fails with 400 `ORGANIZATION_HAS_ACTIVE_USERS` while active members remain.',
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
    def delete(self, request, organization_id):
        organization = get_organization(organization_id)
        organization.soft_delete()

        SecurityLogger.log_event(
            'organization_deactivated',
            level='info',
            actor_id=request.user.id,
            organization_id=organization.id,
        )
        return Response({
            'id': organization.id,
            'isActive': organization.is_active,
            'message': 'Organization deactivated',
        })


class OrganizationUsersView(APIView):
    """
    GET  /api/organizations/{organization_id}/users - members (users:view)
    POST /api/organizations/{organization_id}/users - add a member (users:manage)
    """

    def get_permissions(self):
        action = ActionType.MANAGE if self.request.method == 'POST' else ActionType.VIEW
        return [enforce_access(ResourceType.USERS, action, context=organization_from_url)()]

    @extend_schema(
        tags=['Organizations'],
        summary='List organization members',
        responses={200: UserSerializer(many=True), 403: OpenApiTypes.OBJECT},
    )
    def get(self, request, organization_id):
        organization = get_organization(organization_id)
        queryset = User.objects.for_organization(organization.id).select_related('organization')

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        serializer = UserSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    @extend_schema(
        tags=['Organizations'],
        summary='Add organization member',
        description='''
Creates a user inside the organization. Organization admins cannot create
developers, system admins or other organization admins.
        ''',
        request=OrganizationUserCreateSerializer,
        responses={201: UserSerializer, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
    def post(self, request, organization_id):
        organization = get_organization(organization_id)
        if not organization.is_active:
            raise InvalidInput('Organization is inactive', code='ORGANIZATION_INACTIVE')

        serializer = OrganizationUserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        enforce_decision(
            request,
            UserManagementGate.can_assign_role(request.user, data['role']),
            source=self.__class__.__name__,
        )

        with transaction.atomic():
            # Lock the organization row so concurrent adds respect max_users.
            organization = Organization.objects.select_for_update().get(pk=organization.id)
            if not organization.has_capacity():
                raise InvalidInput(
                    'Organization user limit reached',
                    code='ORGANIZATION_USER_LIMIT_REACHED',
                    maxUsers=organization.max_users,
                )
            user = User.objects.create_user(
                username=data['username'],
                email=data['email'],
                password=data['password'],
                role=UserRole(data['role']).value,
                organization=organization,
                customer_id=organization.customer_id,
                assigned_modules=data.get('assignedModules'),
            )

        SecurityLogger.log_event(
            'organization_user_created',
            level='info',
            actor_id=request.user.id,
            organization_id=organization.id,
            target_user_id=user.id,
            role=user.role,
        )
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
