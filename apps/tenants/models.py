"""
Tenant models.

An Organization is the unit of data isolation: every non-operational user
belongs to at most one, and all tenant-owned records carry its id (or its
legacy customer id).
"""
import logging
import uuid

from django.db import models

from apps.core.exceptions import InvalidInput
from apps.core.models import TimestampedModel
from apps.rbac.roles import ModuleType

logger = logging.getLogger(__name__)


def default_modules():
    return [ModuleType.POST_SECONDARY.value]


def generate_organization_id():
    return f"org-{uuid.uuid4().hex[:12]}"


class OrganizationQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)


class Organization(TimestampedModel):
    """
    Tenant boundary.

    Organizations are never removed; ``soft_delete`` clears the active flag
    and only succeeds once no active members remain.
    """

    id = models.CharField(
        primary_key=True,
        max_length=64,
        default=generate_organization_id,
        editable=False,
    )
    name = models.CharField(max_length=255)
    customer_id = models.CharField(
        max_length=100,
        unique=True,
        help_text="Legacy alias for the organization id"
    )
    assigned_modules = models.JSONField(default=default_modules)
    max_users = models.PositiveIntegerField(default=10)
    is_active = models.BooleanField(default=True, db_index=True)

    objects = OrganizationQuerySet.as_manager()

    class Meta:
        db_table = 'organizations'
        ordering = ['name']

    def __str__(self):
        return self.name

    def active_members(self):
        return self.members.filter(is_active=True)

    def has_capacity(self):
        return self.active_members().count() < self.max_users

    def module_values(self):
        """Stored module list filtered down to known modules."""
        return [
            module.value for module in ModuleType.ordered(self.assigned_modules or [])
        ]

    def soft_delete(self):
        active_count = self.active_members().count()
        if active_count:
            raise InvalidInput(
                'Cannot delete organization with active users',
                code='ORGANIZATION_HAS_ACTIVE_USERS',
                activeUsers=active_count,
            )
        self.is_active = False
        self.save(update_fields=['is_active', 'updated_at'])
        logger.info(
            "Organization deactivated",
            extra={'organization_id': self.id}
        )
