"""
DRF permission classes backed by the RBAC gates.

This module provides:
- GatePermission: base class turning a PermissionDecision into a response
- enforce_decision(): the same for decisions evaluated inside a view
- enforce_access(): factory for matrix checks on a (resource, action) pair
- RequiresModuleAccess, CanViewSystemConfig, CanEditSystemConfig,
  DeveloperOnly, CanViewAdminDashboard, CanViewAnalytics

Usage in views:
    class OrganizationListView(APIView):
        permission_classes = [enforce_access('organizations', 'view')]

Denials raise a PlatformError, which the custom exception handler renders as
``{"error", "code", ...}`` with the decision's status code.
"""
import logging

from rest_framework.permissions import BasePermission

from apps.core.logging import SecurityLogger
from apps.rbac.gates import (
    AdminGate,
    ModuleGate,
    PermissionGate,
    SystemConfigGate,
    require_identity,
)

logger = logging.getLogger(__name__)


def _client_ip(request):
    return request.META.get('REMOTE_ADDR')


class GatePermission(BasePermission):
    """
    Base class: subclasses implement ``decide(request, view)``.
    """

    def decide(self, request, view):
        raise NotImplementedError

    def has_permission(self, request, view):
        decision = self.decide(request, view)
        if decision.allowed:
            return True
        self.deny(request, view, decision)

    def deny(self, request, view, decision):
        enforce_decision(request, decision, source=view.__class__.__name__)


def enforce_decision(request, decision, source=None):
    """
    Audit-log a denied decision and raise it; allowed decisions pass.

    Used by views that evaluate a gate after loading the target record.
    """
    if decision.allowed:
        return
    identity = getattr(request, 'user', None)
    if decision.status == 403:
        SecurityLogger.log_permission_denied(
            identity,
            decision.resource,
            decision.action,
            decision.code,
            path=request.path,
            method=request.method,
            ip_address=_client_ip(request),
            view=source,
        )
    else:
        logger.info(
            f"Request rejected by {source or 'gate'}",
            extra={
                'code': decision.code,
                'status_code': decision.status,
                'path': request.path,
                'request_id': getattr(request, 'request_id', None),
            }
        )
    raise decision.to_exception()


def enforce_access(resource, action, context=None):
    """
    Build a permission class checking (resource, action).

    ``context`` is either a gate context instance or a callable
    ``(request, view) -> context`` evaluated per request.
    """

    class EnforceAccess(GatePermission):

        def decide(self, request, view):
            resolved = context(request, view) if callable(context) else context
            return PermissionGate.decide(request.user, resource, action, resolved)

    EnforceAccess.__name__ = f"EnforceAccess_{action}_{resource}"
    EnforceAccess.__qualname__ = EnforceAccess.__name__
    return EnforceAccess


class RequiresModuleAccess(GatePermission):
    """
    Module gate for views with a ``module`` URL kwarg.
    """

    def decide(self, request, view):
        return ModuleGate.evaluate(request.user, view.kwargs.get('module'))


class CanViewSystemConfig(GatePermission):

    def decide(self, request, view):
        return SystemConfigGate.view(request.user)


class CanEditSystemConfig(GatePermission):

    def decide(self, request, view):
        return SystemConfigGate.edit(request.user)


class DeveloperOnly(GatePermission):

    def decide(self, request, view):
        return SystemConfigGate.developer_only(request.user)


class CanViewAdminDashboard(GatePermission):

    def decide(self, request, view):
        return AdminGate.dashboard(request.user)


class CanViewAnalytics(GatePermission):

    def decide(self, request, view):
        return AdminGate.analytics(request.user)


class IsAuthenticatedIdentity(GatePermission):
    """Only requires a resolved identity."""

    def decide(self, request, view):
        return require_identity(request.user)
