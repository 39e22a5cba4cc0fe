"""
Tenant isolation middleware.

TenantScopeMiddleware derives the request's data scope from the resolved
identity. DemoWriteFirewallMiddleware guards the write path of demo (and
read-only) deployments.
"""
import json
import logging

from django.utils.deprecation import MiddlewareMixin

from apps.core.environment import (
    current_environment,
    demo_customer_id,
    is_demo_deployment,
    is_demo_label,
    is_read_only,
    looks_like_production_database,
)
from apps.core.exceptions import AccessDenied, EnvironmentBlocked
from apps.core.logging import SecurityLogger
from apps.tenants import demo
from apps.tenants.scope import ScopeFilter

logger = logging.getLogger(__name__)


class TenantScopeMiddleware(MiddlewareMixin):
    """
    Attach the Resource Scope Filter to the request.

    Sets ``request.scope_filter`` plus the ``organization_filter`` and
    ``customer_filter`` shortcuts. Views must narrow every queryset with
    ``request.scope_filter.apply(...)``; nothing downstream may widen it.
    """

    def process_request(self, request):
        scope = ScopeFilter.for_identity(getattr(request, 'identity', None))
        request.scope_filter = scope
        request.organization_filter = scope.organization_id
        request.customer_filter = scope.customer_id

        if scope.unrestricted:
            logger.debug(
                "Unrestricted scope for operational role",
                extra={'request_id': getattr(request, 'request_id', None)}
            )
        return None


class DemoWriteFirewallMiddleware(MiddlewareMixin):
    """
    Write-path firewall for demo deployments.

    1. Writes not on the allow-list are denied (403) and audit-logged.
    2. Allowed writes are blocked (503) when the deployment does not look
       like an isolated demo: a non-demo environment label, or, as a
       best-effort secondary check, a production-looking database URL.
    3. Tenant ids in the payload must equal the reserved demo tenant id
       (403 otherwise); assessment-case writes get the id pinned.
    4. Every write decision is logged with method, path, environment and
       timestamp.

    READ_ONLY_MODE outside a demo deployment applies step 1 only.
    """

    def process_request(self, request):
        request.is_demo_operation = False
        request.enforce_demo_customer = None

        if not request.path.startswith(demo.API_PREFIX + '/'):
            return None

        demo_active = is_demo_deployment()
        read_only = is_read_only()
        if not demo_active and not read_only:
            return None

        method = request.method.upper()
        allowed = demo.is_allowed(method, request.path)
        environment = current_environment()

        if method not in demo.WRITE_METHODS:
            if demo_active and allowed:
                self._flag(request)
            return None

        if not allowed:
            return self._deny_write(request, method, environment, demo_active)

        if not demo_active:
            SecurityLogger.log_demo_decision(
                'read_only_write_allowed', method, request.path, environment,
            )
            return None

        return self._guard_demo_write(request, method, environment)

    def _deny_write(self, request, method, environment, demo_active):
        if demo_active:
            event_type, error = 'demo_operation_denied', AccessDenied(
                'This operation is not available in the demo environment',
                code='DEMO_OPERATION_NOT_ALLOWED',
                method=method,
                path=request.path,
            )
        else:
            event_type, error = 'read_only_write_blocked', AccessDenied(
                'The application is in read-only mode',
                code='READ_ONLY_MODE',
                method=method,
                path=request.path,
            )

        SecurityLogger.log_demo_decision(
            event_type, method, request.path, environment,
            level='warning',
            user_id=getattr(getattr(request, 'identity', None), 'id', None),
            code=error.code,
        )
        return error.as_response(request)

    def _guard_demo_write(self, request, method, environment):
        reserved_id = demo_customer_id()

        blocked = self._environment_block(environment, reserved_id)
        if blocked is not None:
            SecurityLogger.log_demo_decision(
                'demo_environment_blocked', method, request.path, environment,
                level='error',
                code=blocked.code,
            )
            return blocked.as_response(request)

        payload = self._json_payload(request)

        violation = demo.find_isolation_violation(payload, reserved_id)
        if violation is not None:
            field, value = violation
            SecurityLogger.log_demo_decision(
                'demo_isolation_violation', method, request.path, environment,
                demo_customer_enforced=reserved_id,
                level='error',
                field=field,
                requested_customer=str(value),
            )
            return AccessDenied(
                'Demo operations may only target the demo tenant',
                code='DEMO_CUSTOMER_ISOLATION_VIOLATION',
                field=field,
            ).as_response(request)

        if isinstance(payload, dict) and demo.requires_pinning(method, request.path):
            self._replace_payload(request, demo.pin_tenant(payload, reserved_id))
            SecurityLogger.log_demo_decision(
                'demo_customer_pinned', method, request.path, environment,
                demo_customer_enforced=reserved_id,
            )

        self._flag(request)
        SecurityLogger.log_demo_decision(
            'demo_operation_allowed', method, request.path, environment,
            demo_customer_enforced=reserved_id,
        )
        return None

    @staticmethod
    def _environment_block(environment, reserved_id):
        if not reserved_id:
            return EnvironmentBlocked(
                'Demo tenant is not configured',
                code='DEMO_TENANT_NOT_CONFIGURED',
            )
        if not is_demo_label(environment):
            return EnvironmentBlocked(
                'Demo operations are blocked outside a demo environment',
                code='DEMO_ON_PRODUCTION_BLOCKED',
                environment=environment,
            )
        if looks_like_production_database():
            return EnvironmentBlocked(
                'Demo operations require an isolated demo database',
                code='DEMO_REQUIRES_ISOLATED_DB',
                environment=environment,
            )
        return None

    @staticmethod
    def _flag(request):
        request.is_demo_operation = True
        request.enforce_demo_customer = demo_customer_id()

    @staticmethod
    def _json_payload(request):
        if request.content_type != 'application/json' or not request.body:
            return None
        try:
            return json.loads(request.body)
        except ValueError:
            # Left for the view's parser to reject with a 400.
            return None

    @staticmethod
    def _replace_payload(request, payload):
        body = json.dumps(payload).encode('utf-8')
        request._body = body
        request.META['CONTENT_LENGTH'] = str(len(body))
