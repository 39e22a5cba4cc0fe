"""
Permission gate and scoped resource gates.

Gates are pure: they take an Identity plus a typed context and return a
PermissionDecision. They never raise and never touch the database; turning
a decision into an HTTP response and writing the audit log is left to the
DRF permission classes in apps.rbac.permissions.

Evaluation order for every gate:

    no identity                     -> 401
    identity without capability     -> 403 INSUFFICIENT_PERMISSIONS
    capability but scope check fails -> 403 with a narrower code
    otherwise                       -> allowed
"""
from dataclasses import dataclass, field
from typing import Optional, Union

from django.conf import settings
from rest_framework import status

from apps.core.exceptions import (
    AccessDenied,
    AuthenticationRequired,
    InvalidInput,
    PlatformError,
)
from apps.rbac.matrix import (
    Capability,
    Scope,
    find_capability,
    operational_override,
)
from apps.rbac.roles import (
    PRIVILEGED_ROLES,
    ActionType,
    ModuleType,
    ResourceType,
    UserRole,
)


@dataclass(frozen=True)
class ModuleContext:
    module: str


@dataclass(frozen=True)
class OrganizationContext:
    organization_id: Optional[str]


@dataclass(frozen=True)
class ReportContext:
    owner_id: Optional[int] = None
    organization_id: Optional[str] = None
    customer_id: Optional[str] = None
    creating: bool = False


GateContext = Union[ModuleContext, OrganizationContext, ReportContext, None]


_EXCEPTIONS_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: InvalidInput,
    status.HTTP_401_UNAUTHORIZED: AuthenticationRequired,
    status.HTTP_403_FORBIDDEN: AccessDenied,
}


@dataclass(frozen=True)
class PermissionDecision:
    resource: Optional[str]
    action: Optional[str]
    allowed: bool
    reason: str = ''
    code: Optional[str] = None
    status: int = status.HTTP_200_OK
    details: dict = field(default_factory=dict)

    def __bool__(self):
        return self.allowed

    def to_exception(self) -> PlatformError:
        error_class = _EXCEPTIONS_BY_STATUS.get(self.status, AccessDenied)
        return error_class(self.reason, code=self.code, **self.details)


def _allow(resource, action, reason='allowed'):
    return PermissionDecision(resource, action, True, reason)


def _deny(resource, action, http_status, code, reason, **details):
    return PermissionDecision(resource, action, False, reason, code, http_status, details)


def _unauthenticated(resource=None, action=None):
    return _deny(
        resource, action, status.HTTP_401_UNAUTHORIZED,
        'AUTHENTICATION_REQUIRED', 'Authentication required',
    )


def _is_identity(identity):
    return identity is not None and getattr(identity, 'is_authenticated', False)


def require_identity(identity) -> PermissionDecision:
    """Allow any resolved identity."""
    if not _is_identity(identity):
        return _unauthenticated()
    return PermissionDecision(None, None, True)


def report_limit(identity) -> int:
    """Effective report quota (-1 for unlimited)."""
    if identity.role == UserRole.DEMO:
        return getattr(settings, 'DEMO_REPORT_LIMIT', 5)
    return identity.max_reports


class PermissionGate:
    """
    Evaluates (identity, resource, action, context) against the role matrix
    and the operational override table.
    """

    @classmethod
    def decide(cls, identity, resource, action, context: GateContext = None) -> PermissionDecision:
        resource_type = ResourceType.parse(resource)
        action_type = ActionType.parse(action)

        if not _is_identity(identity):
            return _unauthenticated(resource, action)

        if resource_type is None or action_type is None:
            return _deny(
                resource, action, status.HTTP_400_BAD_REQUEST,
                'INVALID_PERMISSION_TARGET', 'Unknown resource type or action',
                requestedResource=resource, requestedAction=action,
            )

        resource, action = resource_type.value, action_type.value
        capability = cls._capability(identity, resource_type, action_type)
        if capability is None:
            return _deny(
                resource, action, status.HTTP_403_FORBIDDEN,
                'INSUFFICIENT_PERMISSIONS', 'Insufficient permissions',
                requiredPermission=f"{action}_{resource}",
                currentRole=identity.role.value,
            )

        return cls._check_context(identity, capability, context)

    @classmethod
    def check_access(cls, identity, resource, action, context: GateContext = None) -> bool:
        return cls.decide(identity, resource, action, context).allowed

    @classmethod
    def scope_for(cls, identity, resource, action) -> Optional[Scope]:
        """Widest scope the identity holds for (resource, action), or None."""
        if not _is_identity(identity):
            return None
        capability = cls._capability(
            identity, ResourceType.parse(resource), ActionType.parse(action)
        )
        return capability.scope if capability else None

    @staticmethod
    def _capability(identity, resource, action) -> Optional[Capability]:
        if resource is None or action is None:
            return None
        override = operational_override(identity.role)
        if override is not None and override.covers(resource):
            return Capability(resource, action, Scope.ANY)
        return find_capability(identity.role, resource, action)

    @classmethod
    def _check_context(cls, identity, capability, context) -> PermissionDecision:
        resource, action = capability.resource.value, capability.action.value
        override = operational_override(identity.role)

        if context is None:
            return _allow(resource, action)

        if isinstance(context, ModuleContext):
            module = ModuleType.parse(context.module)
            if module is None:
                return _invalid_module(context.module, resource, action)
            if override is not None and override.bypass_module_assignment:
                return _allow(resource, action, 'operational role')
            if not identity.has_module(module):
                return _deny(
                    resource, action, status.HTTP_403_FORBIDDEN,
                    'MODULE_ACCESS_DENIED', 'Module access denied',
                    requestedModule=module.value,
                    assignedModules=[m.value for m in identity.assigned_modules],
                )
            return _allow(resource, action)

        if isinstance(context, OrganizationContext):
            if override is not None and override.bypass_organization_boundary:
                return _allow(resource, action, 'operational role')
            if capability.scope == Scope.ANY:
                return _allow(resource, action)
            if context.organization_id is None or context.organization_id != identity.organization_id:
                return _organization_denied(identity, context.organization_id, resource, action)
            return _allow(resource, action)

        if isinstance(context, ReportContext):
            if context.creating:
                return cls._check_quota(identity, resource, action, override)
            return cls._check_report_record(identity, capability, context, override)

        return _allow(resource, action)

    @staticmethod
    def _check_quota(identity, resource, action, override) -> PermissionDecision:
        if override is not None and override.bypass_report_quota:
            return _allow(resource, action, 'operational role')
        limit = report_limit(identity)
        if limit == -1 or identity.report_count < limit:
            return _allow(resource, action)
        if identity.role == UserRole.DEMO:
            return _deny(
                resource, action, status.HTTP_403_FORBIDDEN,
                'DEMO_LIMIT_EXCEEDED', 'Demo report limit reached',
                currentCount=identity.report_count,
                maxReports=limit,
                upgradeUrl='/upgrade',
            )
        return _deny(
            resource, action, status.HTTP_403_FORBIDDEN,
            'REPORT_LIMIT_EXCEEDED', 'Report limit reached',
            currentCount=identity.report_count,
            maxReports=limit,
        )

    @staticmethod
    def _check_report_record(identity, capability, context, override) -> PermissionDecision:
        resource, action = capability.resource.value, capability.action.value
        if override is not None and override.bypass_organization_boundary:
            return _allow(resource, action, 'operational role')
        if capability.scope == Scope.ANY:
            return _allow(resource, action)
        if capability.scope == Scope.OWN:
            if context.owner_id is not None and context.owner_id == identity.id:
                return _allow(resource, action)
        elif identity.organization_id:
            if context.organization_id == identity.organization_id:
                return _allow(resource, action)
        elif identity.customer_id and context.customer_id == identity.customer_id:
            return _allow(resource, action)
        return _deny(
            resource, action, status.HTTP_403_FORBIDDEN,
            'REPORT_ACCESS_DENIED', 'You do not have access to this report',
        )


def _invalid_module(value, resource=ResourceType.MODULES.value, action=ActionType.VIEW.value):
    return _deny(
        resource, action, status.HTTP_400_BAD_REQUEST,
        'INVALID_MODULE', 'Invalid module type',
        requestedModule=value,
        validModules=[module.value for module in ModuleType],
    )


def _organization_denied(identity, requested, resource, action):
    return _deny(
        resource, action, status.HTTP_403_FORBIDDEN,
        'ORGANIZATION_ACCESS_DENIED', 'Access denied to this organization',
        requestedOrganization=requested,
        userOrganization=identity.organization_id,
    )


class ModuleGate:
    """Access to one educational module."""

    @staticmethod
    def evaluate(identity, module_value, action=ActionType.VIEW) -> PermissionDecision:
        if not _is_identity(identity):
            return _unauthenticated(ResourceType.MODULES.value, str(action))
        # Validity first: an unknown module is a client error, never a 403.
        if ModuleType.parse(module_value) is None:
            return _invalid_module(module_value, action=str(action))
        return PermissionGate.decide(
            identity, ResourceType.MODULES, action, ModuleContext(module_value)
        )


class UserManagementGate:
    """
    User and organization management with organization-boundary checks.

    Org-scoped admins may only act inside their own organization; a request
    naming any other organization is denied with both ids surfaced.
    Operational roles bypass the boundary.
    """

    def __init__(self, resource=ResourceType.USERS):
        self.resource = resource

    def evaluate(self, identity, action, organization_id=None) -> PermissionDecision:
        context = OrganizationContext(organization_id) if organization_id is not None else None
        return PermissionGate.decide(identity, self.resource, action, context)

    @staticmethod
    def can_assign_role(identity, role_value) -> PermissionDecision:
        resource, action = ResourceType.USERS.value, ActionType.MANAGE.value
        if not _is_identity(identity):
            return _unauthenticated(resource, action)
        role = UserRole.parse(role_value)
        if role is None:
            return _deny(
                resource, action, status.HTTP_400_BAD_REQUEST,
                'INVALID_ROLE', 'Invalid role',
                validRoles=[r.value for r in UserRole],
            )
        if role in PRIVILEGED_ROLES and not identity.is_operational:
            return _deny(
                resource, action, status.HTTP_403_FORBIDDEN,
                'ROLE_ASSIGNMENT_DENIED', 'Cannot assign this role',
                requestedRole=role.value,
                currentRole=identity.role.value,
            )
        return _allow(resource, action)


class SystemConfigGate:
    """
    System configuration access.

    Viewing is open to config viewers or database viewers; editing needs
    config edit rights. ``developer_only`` is a hard role check kept apart
    from the matrix for irreversible operational actions.
    """

    @staticmethod
    def view(identity) -> PermissionDecision:
        decision = PermissionGate.decide(identity, ResourceType.SYSTEM_CONFIG, ActionType.VIEW)
        if decision.allowed or decision.status != status.HTTP_403_FORBIDDEN:
            return decision
        database = PermissionGate.decide(identity, ResourceType.DATABASE, ActionType.VIEW)
        return database if database.allowed else decision

    @staticmethod
    def edit(identity) -> PermissionDecision:
        return PermissionGate.decide(identity, ResourceType.SYSTEM_CONFIG, ActionType.EDIT)

    @staticmethod
    def is_developer(identity) -> bool:
        return _is_identity(identity) and identity.role == UserRole.DEVELOPER

    @classmethod
    def developer_only(cls, identity) -> PermissionDecision:
        resource = ResourceType.SYSTEM_CONFIG.value
        if not _is_identity(identity):
            return _unauthenticated(resource, ActionType.MANAGE.value)
        if not cls.is_developer(identity):
            return _deny(
                resource, ActionType.MANAGE.value, status.HTTP_403_FORBIDDEN,
                'DEVELOPER_ACCESS_REQUIRED', 'Developer access required',
                requiredRole=UserRole.DEVELOPER.value,
                currentRole=identity.role.value,
            )
        return _allow(resource, ActionType.MANAGE.value, 'developer')

    @classmethod
    def can_view(cls, identity) -> bool:
        return cls.view(identity).allowed

    @classmethod
    def can_edit(cls, identity) -> bool:
        return cls.edit(identity).allowed


class AdminGate:

    @staticmethod
    def dashboard(identity) -> PermissionDecision:
        return PermissionGate.decide(identity, ResourceType.ADMIN, ActionType.VIEW)

    @staticmethod
    def analytics(identity) -> PermissionDecision:
        return PermissionGate.decide(identity, ResourceType.ANALYTICS, ActionType.VIEW)


class ReportGate:
    """Report (assessment case) creation quota and record access."""

    @staticmethod
    def create(identity, module_value) -> PermissionDecision:
        module_decision = ModuleGate.evaluate(identity, module_value)
        if not module_decision.allowed:
            return module_decision
        return PermissionGate.decide(
            identity, ResourceType.REPORTS, ActionType.CREATE, ReportContext(creating=True)
        )

    @staticmethod
    def access(identity, action, case) -> PermissionDecision:
        return PermissionGate.decide(
            identity,
            ResourceType.REPORTS,
            action,
            ReportContext(
                owner_id=case.created_by_id,
                organization_id=case.organization_id,
                customer_id=case.customer_id,
            ),
        )
