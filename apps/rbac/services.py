"""
RBAC services: module assignment policy and identity resolution.
"""
import logging
from typing import Iterable, List, Optional

from apps.core.exceptions import AuthenticationRequired, IntegrityFailure
from apps.core.logging import SecurityLogger
from apps.rbac.identity import Identity
from apps.rbac.matrix import operational_override
from apps.rbac.models import User
from apps.rbac.roles import ModuleType, UserRole

logger = logging.getLogger(__name__)


class ModuleAssignmentService:
    """
    Decides which educational modules a user may work in.

    Resolution order: operational roles get every module; otherwise the
    user's own assignment, then the organization's, then post-secondary.
    """

    DEFAULT_MODULE = ModuleType.POST_SECONDARY

    @staticmethod
    def _valid(modules: Optional[Iterable]) -> tuple:
        if not modules:
            return ()
        valid = []
        for value in modules:
            module = ModuleType.parse(value)
            if module is None:
                logger.warning(
                    "Ignoring unknown module in assignment",
                    extra={'module_value': value}
                )
                continue
            valid.append(module)
        return ModuleType.ordered(valid)

    @classmethod
    def effective_modules(cls, role, user_modules=None, organization_modules=None) -> tuple:
        override = operational_override(role)
        if override is not None and override.bypass_module_assignment:
            return tuple(ModuleType)

        for candidate in (user_modules, organization_modules):
            modules = cls._valid(candidate)
            if modules:
                return modules

        return (cls.DEFAULT_MODULE,)

    @classmethod
    def for_user(cls, user: User) -> tuple:
        organization_modules = user.organization.assigned_modules if user.organization else None
        return cls.effective_modules(user.role, user.assigned_modules, organization_modules)

    @staticmethod
    def can_switch_modules(role) -> bool:
        override = operational_override(role)
        return override is not None and override.bypass_module_assignment

    @classmethod
    def default_module(cls, modules: Iterable) -> ModuleType:
        modules = ModuleType.ordered(modules)
        if cls.DEFAULT_MODULE in modules or not modules:
            return cls.DEFAULT_MODULE
        return modules[0]

    @classmethod
    def summary(cls, identity: Identity) -> dict:
        return {
            'assignedModules': [module.value for module in identity.assigned_modules],
            'canSwitchModules': cls.can_switch_modules(identity.role),
            'defaultModule': cls.default_module(identity.assigned_modules).value,
        }

    @classmethod
    def modules_for_role(cls, role, organization=None) -> Optional[List[str]]:
        """
        Stored assignment for a user whose role just changed.

        Operational roles get every module; other roles inherit the
        organization's modules, or the default module.
        """
        if cls.can_switch_modules(role):
            return [module.value for module in ModuleType]
        if organization is not None:
            modules = cls._valid(organization.assigned_modules)
            if modules:
                return [module.value for module in modules]
        return [cls.DEFAULT_MODULE.value]


class IdentityResolver:
    """
    Turns a session user id into an Identity.

    The user row is read fresh on every call so role changes apply on the
    very next request.
    """

    @staticmethod
    def resolve(user_id, path=None) -> Identity:
        """
        Raises:
            AuthenticationRequired: no user id, unknown user or inactive user
            IntegrityFailure: stored role is not a known UserRole
        """
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            raise AuthenticationRequired()

        user = User.objects.with_organization(user_id)
        if user is None or not user.is_active:
            raise AuthenticationRequired(
                'User not found or inactive',
                code='USER_NOT_FOUND_OR_INACTIVE',
            )

        role = UserRole.parse(user.role)
        if role is None:
            logger.error(
                "Invalid role stored for user",
                extra={'user_id': user.id, 'stored_role': user.role, 'path': path}
            )
            SecurityLogger.log_role_integrity_failure(user.id, user.role, path=path)
            raise IntegrityFailure(
                'Invalid user role configuration',
                code='INVALID_ROLE_CONFIGURATION',
            )

        organization = user.organization
        return Identity(
            id=user.id,
            role=role,
            username=user.username,
            email=user.email,
            organization_id=organization.id if organization else None,
            organization_name=organization.name if organization else None,
            customer_id=user.customer_id or None,
            assigned_modules=ModuleAssignmentService.for_user(user),
            report_count=user.report_count,
            max_reports=user.max_reports,
            is_active=user.is_active,
            last_login=user.last_login,
        )
