"""
Request-scoped identity value object.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from apps.rbac.matrix import is_operational
from apps.rbac.roles import ModuleType, UserRole


@dataclass(frozen=True)
class Identity:
    """
    The authenticated actor for one request.

    Built by IdentityResolver from a fresh database read and never mutated
    afterwards; a role change made by an admin shows up on the next request.
    Django and DRF treat it as ``request.user``.
    """
    id: int
    role: UserRole
    username: str = ''
    email: str = ''
    organization_id: Optional[str] = None
    organization_name: Optional[str] = None
    customer_id: Optional[str] = None
    assigned_modules: Tuple[ModuleType, ...] = field(default_factory=tuple)
    report_count: int = 0
    max_reports: int = -1
    is_active: bool = True
    last_login: Optional[datetime] = None

    @property
    def pk(self):
        return self.id

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    @property
    def is_operational(self):
        return is_operational(self.role)

    @property
    def is_demo(self):
        return self.role == UserRole.DEMO

    @property
    def has_unlimited_reports(self):
        return self.max_reports == -1

    @property
    def display_customer_id(self):
        # Response formatting only; authorization never sees this fallback.
        return self.customer_id or 'unknown'

    def has_module(self, module):
        return module in self.assigned_modules

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'role': self.role.value,
            'organizationId': self.organization_id,
            'organizationName': self.organization_name,
            'customerId': self.display_customer_id,
            'assignedModules': [module.value for module in self.assigned_modules],
            'reportCount': self.report_count,
            'maxReports': self.max_reports,
            'isActive': self.is_active,
            'lastLogin': self.last_login.isoformat() if self.last_login else None,
        }
