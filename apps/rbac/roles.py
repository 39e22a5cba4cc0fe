"""
Closed enumerations used by the RBAC layer.

Roles, educational modules, resource types and actions are all closed sets.
Values coming from storage or from a request are parsed through these enums
before any authorization decision is made.
"""
from django.db import models


class UserRole(models.TextChoices):
    """Roles a platform user can hold."""

    DEVELOPER = 'developer', 'Developer'
    SYSTEM_ADMIN = 'system_admin', 'System Admin'
    ORG_ADMIN = 'org_admin', 'Organization Admin'
    CUSTOMER = 'customer', 'Customer'
    DEMO = 'demo', 'Demo'
    TUTOR = 'tutor', 'Tutor'

    @classmethod
    def parse(cls, value):
        """Return the matching role or None for unknown values."""
        try:
            return cls(value)
        except ValueError:
            return None


class ModuleType(models.TextChoices):
    """Educational modules a user can be assigned to."""

    K12 = 'k12', 'K-12'
    POST_SECONDARY = 'post_secondary', 'Post-Secondary'
    TUTORING = 'tutoring', 'Tutoring'

    @classmethod
    def parse(cls, value):
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def ordered(cls, modules):
        """Deduplicate modules and return them in canonical order."""
        wanted = {getattr(module, 'value', module) for module in modules}
        return tuple(module for module in cls if module.value in wanted)


class ResourceType(models.TextChoices):
    MODULES = 'modules', 'Modules'
    REPORTS = 'reports', 'Reports'
    ADMIN = 'admin', 'Admin dashboard'
    USERS = 'users', 'Users'
    ORGANIZATIONS = 'organizations', 'Organizations'
    SYSTEM_CONFIG = 'system_config', 'System configuration'
    PROMPTS = 'prompts', 'Prompts'
    DATABASE = 'database', 'Database'
    ANALYTICS = 'analytics', 'Analytics'

    @classmethod
    def parse(cls, value):
        try:
            return cls(value)
        except ValueError:
            return None


class ActionType(models.TextChoices):
    CREATE = 'create', 'Create'
    VIEW = 'view', 'View'
    EDIT = 'edit', 'Edit'
    DELETE = 'delete', 'Delete'
    SWITCH = 'switch', 'Switch'
    MANAGE = 'manage', 'Manage'
    SHARE = 'share', 'Share'

    @classmethod
    def parse(cls, value):
        """
        Parse an action, accepting the CRUD aliases ``read`` and ``update``.
        """
        value = ACTION_ALIASES.get(value, value)
        try:
            return cls(value)
        except ValueError:
            return None


ACTION_ALIASES = {
    'read': ActionType.VIEW.value,
    'update': ActionType.EDIT.value,
}

# Roles granted blanket bypass of module and organization scoping.
OPERATIONAL_ROLES = frozenset({UserRole.DEVELOPER, UserRole.SYSTEM_ADMIN})

# Roles an organization admin is never allowed to hand out.
PRIVILEGED_ROLES = frozenset({
    UserRole.DEVELOPER,
    UserRole.SYSTEM_ADMIN,
    UserRole.ORG_ADMIN,
})
