"""
Role/permission matrix.

A static, data-only mapping from role to capability set. Every capability is
a (resource, action, scope) triple where the scope says how far the grant
reaches: anywhere, inside the holder's organization, on records the holder
owns, or inside the holder's assigned modules.

Adding a role or resource is a change to ROLE_MATRIX, never to gate code.
"""
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional

from apps.rbac.roles import ActionType, ResourceType, UserRole


class Scope(str, Enum):
    ANY = 'any'
    ORGANIZATION = 'organization'
    OWN = 'own'
    ASSIGNED_MODULE = 'assigned_module'


@dataclass(frozen=True)
class Capability:
    resource: ResourceType
    action: ActionType
    scope: Scope = Scope.ANY


@dataclass(frozen=True)
class OperationalOverride:
    """
    Privilege escalation granted to an operational role.

    ``matrix_exempt_resources`` lists resources where the role does NOT get
    a blanket matrix bypass and must hold an explicit capability instead.
    """
    bypass_module_assignment: bool = True
    bypass_organization_boundary: bool = True
    bypass_report_quota: bool = True
    bypass_matrix: bool = True
    matrix_exempt_resources: FrozenSet[ResourceType] = frozenset()

    def covers(self, resource) -> bool:
        return self.bypass_matrix and resource not in self.matrix_exempt_resources


def _grant(resource, actions, scope=Scope.ANY):
    return {Capability(resource, action, scope) for action in actions}


ALL_ACTIONS = tuple(ActionType)

# Resources whose data or effects are reserved for developers.
DEVELOPER_RESERVED_RESOURCES = frozenset({
    ResourceType.SYSTEM_CONFIG,
    ResourceType.PROMPTS,
    ResourceType.DATABASE,
})

_REPORT_AUTHOR = (
    _grant(ResourceType.REPORTS, (
        ActionType.CREATE, ActionType.VIEW, ActionType.EDIT, ActionType.SHARE,
    ), Scope.OWN)
    | _grant(ResourceType.MODULES, (ActionType.VIEW,), Scope.ASSIGNED_MODULE)
)

ROLE_MATRIX = {
    UserRole.DEVELOPER: frozenset().union(*(
        _grant(resource, ALL_ACTIONS) for resource in ResourceType
    )),
    UserRole.SYSTEM_ADMIN: frozenset(
        _grant(ResourceType.MODULES, (ActionType.VIEW, ActionType.SWITCH))
        | _grant(ResourceType.REPORTS, ALL_ACTIONS)
        | _grant(ResourceType.ADMIN, (ActionType.VIEW,))
        | _grant(ResourceType.ANALYTICS, (ActionType.VIEW,))
        | _grant(ResourceType.USERS, ALL_ACTIONS)
        | _grant(ResourceType.ORGANIZATIONS, ALL_ACTIONS)
    ),
    UserRole.ORG_ADMIN: frozenset(
        _grant(ResourceType.USERS, (
            ActionType.VIEW, ActionType.CREATE, ActionType.EDIT, ActionType.MANAGE,
        ), Scope.ORGANIZATION)
        | _grant(ResourceType.ORGANIZATIONS, (ActionType.VIEW,), Scope.ORGANIZATION)
        | _grant(ResourceType.REPORTS, (ActionType.VIEW, ActionType.EDIT), Scope.ORGANIZATION)
        | _grant(ResourceType.REPORTS, (ActionType.CREATE, ActionType.SHARE), Scope.OWN)
        | _grant(ResourceType.MODULES, (ActionType.VIEW,), Scope.ASSIGNED_MODULE)
    ),
    UserRole.CUSTOMER: frozenset(_REPORT_AUTHOR),
    UserRole.TUTOR: frozenset(_REPORT_AUTHOR),
    UserRole.DEMO: frozenset(_REPORT_AUTHOR),
}

# Single source of truth for operational-role escalation. Developers and
# system admins share the same scope bypasses; only the developer bypasses
# the matrix for developer-reserved resources.
OPERATIONAL_OVERRIDES = {
    UserRole.DEVELOPER: OperationalOverride(),
    UserRole.SYSTEM_ADMIN: OperationalOverride(
        matrix_exempt_resources=DEVELOPER_RESERVED_RESOURCES,
    ),
}


def capabilities(role) -> FrozenSet[Capability]:
    """Return the base capability set for a role (empty for unknown roles)."""
    role = UserRole.parse(role)
    if role is None:
        return frozenset()
    return ROLE_MATRIX.get(role, frozenset())


def operational_override(role) -> Optional[OperationalOverride]:
    role = UserRole.parse(role)
    if role is None:
        return None
    return OPERATIONAL_OVERRIDES.get(role)


def is_operational(role) -> bool:
    """True for roles that bypass module and organization scoping."""
    return operational_override(role) is not None


def find_capability(role, resource, action) -> Optional[Capability]:
    """
    Return the widest capability the role holds for (resource, action).
    """
    matches = [
        capability for capability in capabilities(role)
        if capability.resource == resource and capability.action == action
    ]
    if not matches:
        return None
    order = list(Scope)
    return min(matches, key=lambda capability: order.index(capability.scope))
