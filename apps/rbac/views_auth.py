"""
Authentication views for session-based login.

Provides endpoints for:
- User registration
- Login / logout
- The current identity
"""
import logging

from django.conf import settings
from django.contrib.auth import authenticate
from django.db import transaction
from django.middleware.csrf import get_token, rotate_token
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from django_ratelimit.exceptions import Ratelimited
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.environment import (
    demo_customer_id,
    environment_summary,
    is_demo_deployment,
    locked_module,
)
from apps.core.exceptions import AuthenticationRequired, InvalidInput
from apps.core.logging import SecurityLogger
from apps.rbac.demo import DemoSandboxService
from apps.rbac.middleware import SESSION_USER_KEY
from apps.rbac.models import User
from apps.rbac.permissions import IsAuthenticatedIdentity
from apps.rbac.roles import UserRole
from apps.rbac.serializers import LoginSerializer, RegistrationSerializer
from apps.rbac.services import IdentityResolver, ModuleAssignmentService
from apps.tenants.models import Organization

logger = logging.getLogger(__name__)


def _client_ip(request):
    return request.META.get('REMOTE_ADDR', 'unknown')


def _start_session(request, user):
    """Rotate the session key and CSRF token, bind the session to ``user``."""
    request.session.cycle_key()
    request.session[SESSION_USER_KEY] = user.id
    rotate_token(request)
    return get_token(request)


def _identity_payload(identity):
    payload = {
        'user': identity.to_dict(),
        'modules': ModuleAssignmentService.summary(identity),
    }
    if identity.is_demo:
        payload['demo'] = DemoSandboxService.check_report_limit(identity)
    return payload


@extend_schema(
    tags=['Authentication'],
    summary='Register new user',
    description='''
Create a new account and start a session.

On a demo deployment the account is a demo user pinned to the demo tenant.
Everywhere else it is a customer with a new organization of its own.

**No authentication required** - this is a public endpoint.

**Rate limit**: 3 requests/hour per IP
    ''',
    request=RegistrationSerializer,
    responses={
        201: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Registration Request',
            value={
                'username': 'jdoe',
                'email': 'jdoe@example.com',
                'password': 'SecurePass123',
                'organizationName': 'Lakeside College',
            },
            request_only=True
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='3/h', method='POST', block=False), name='dispatch')
class RegisterView(APIView):
    """
    POST /api/auth/register
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            raise Ratelimited()

        serializer = RegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        with transaction.atomic():
            if is_demo_deployment():
                user = self._create_demo_user(data)
            else:
                user = self._create_customer(data)

        identity = IdentityResolver.resolve(user.id, path=request.path)
        csrf_token = _start_session(request, user)

        logger.info(
            "User registered",
            extra={'user_id': user.id, 'role': user.role, 'organization_id': user.organization_id}
        )
        payload = _identity_payload(identity)
        payload['message'] = 'Registration successful'
        payload['csrfToken'] = csrf_token
        return Response(payload, status=status.HTTP_201_CREATED)

    @staticmethod
    def _create_demo_user(data):
        reserved_id = demo_customer_id()
        if not reserved_id:
            raise InvalidInput('Demo tenant is not configured', code='DEMO_TENANT_NOT_CONFIGURED')

        module = locked_module()
        user = User.objects.create_user(
            username=data['username'],
            email=data['email'],
            password=data['password'],
            role=UserRole.DEMO,
            customer_id=reserved_id,
            assigned_modules=[module.value] if module else None,
        )
        DemoSandboxService.initialize_demo_user(user)
        return user

    @staticmethod
    def _create_customer(data):
        organization = Organization(
            name=data.get('organizationName') or f"{data['username']}'s Organization",
        )
        organization.customer_id = organization.id
        organization.save()

        return User.objects.create_user(
            username=data['username'],
            email=data['email'],
            password=data['password'],
            role=UserRole.CUSTOMER,
            organization=organization,
            customer_id=organization.customer_id,
        )


@extend_schema(
    tags=['Authentication'],
    summary='Login',
    description='''
Authenticate with a username (or email) and password and start a session.

**No authentication required** - this is a public endpoint.

**Rate limit**: 5 requests/minute per IP
    ''',
    request=LoginSerializer,
    responses={
        200: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Login Request',
            value={'username': 'jdoe', 'password': 'SecurePass123'},
            request_only=True
        ),
        OpenApiExample(
            'Invalid Credentials',
            value={'error': 'Invalid credentials', 'code': 'INVALID_CREDENTIALS'},
            response_only=True,
            status_codes=['401']
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='5/m', method='POST', block=False), name='dispatch')
class LoginView(APIView):
    """
    POST /api/auth/login
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            raise Ratelimited()

        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        identifier = serializer.validated_data['identifier']

        user = authenticate(
            request._request,
            username=identifier,
            password=serializer.validated_data['password'],
        )
        if user is None:
            SecurityLogger.log_failed_login(
                identifier=identifier,
                ip_address=_client_ip(request),
                reason='Invalid credentials',
            )
            raise AuthenticationRequired('Invalid credentials', code='INVALID_CREDENTIALS')

        identity = IdentityResolver.resolve(user.id, path=request.path)

        # Read-only deployments must not write, not even the login timestamp.
        if not getattr(settings, 'READ_ONLY_MODE', False):
            user.update_last_login()

        csrf_token = _start_session(request, user)
        logger.info("User logged in", extra={'user_id': user.id, 'role': user.role})

        payload = _identity_payload(identity)
        payload['message'] = 'Login successful'
        payload['csrfToken'] = csrf_token
        return Response(payload)


@extend_schema(
    tags=['Authentication'],
    summary='Logout',
    responses={200: OpenApiTypes.OBJECT},
)
class LogoutView(APIView):
    """
    POST /api/auth/logout
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        user_id = request.session.get(SESSION_USER_KEY)
        request.session.flush()
        if user_id is not None:
            logger.info("User logged out", extra={'user_id': user_id})
        return Response({'message': 'Logged out'})


@extend_schema(
    tags=['Authentication'],
    summary='Current identity',
    description='The resolved identity, its module summary, demo quota and environment.',
    responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
)
class MeView(APIView):
    """
    GET /api/auth/me
    """
    permission_classes = [IsAuthenticatedIdentity]

    def get(self, request):
        payload = _identity_payload(request.user)
        payload['environment'] = environment_summary()
        return Response(payload)
