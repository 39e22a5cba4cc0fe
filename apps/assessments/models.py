"""
Assessment case models.

An assessment case is a report produced in one educational module. It is
tenant-owned: every row carries the organization and legacy customer id of
the user that created it.
"""
import uuid

from django.db import models

from apps.core.models import TimestampedModel
from apps.rbac.roles import ModuleType


def generate_case_id():
    return f"case-{uuid.uuid4().hex}"


class AssessmentCaseStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    FINALIZED = 'finalized', 'Finalized'


class AssessmentCaseQuerySet(models.QuerySet):

    def for_modules(self, modules):
        return self.filter(module_type__in=[getattr(m, 'value', m) for m in modules])

    def owned_by(self, user_id):
        return self.filter(created_by_id=user_id)


class AssessmentCase(TimestampedModel):
    """
    A report in one module.

    ``customer_id`` is the legacy tenant id; demo deployments pin it to
    the reserved demo tenant before the row is written.
    """
    case_id = models.CharField(
        primary_key=True,
        max_length=64,
        default=generate_case_id,
        editable=False,
    )
    module_type = models.CharField(max_length=32, choices=ModuleType.choices, db_index=True)
    display_name = models.CharField(max_length=255, blank=True)
    status = models.CharField(
        max_length=16,
        choices=AssessmentCaseStatus.choices,
        default=AssessmentCaseStatus.DRAFT,
    )
    customer_id = models.CharField(max_length=100, db_index=True)
    organization = models.ForeignKey(
        'tenants.Organization',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assessment_cases',
    )
    created_by = models.ForeignKey(
        'rbac.User',
        on_delete=models.CASCADE,
        related_name='assessment_cases',
    )
    data = models.JSONField(default=dict, blank=True)

    objects = AssessmentCaseQuerySet.as_manager()

    class Meta:
        db_table = 'assessment_cases'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['organization', 'module_type']),
            models.Index(fields=['customer_id', 'created_at']),
        ]

    def __str__(self):
        return self.display_name or self.case_id

    @property
    def is_finalized(self):
        return self.status == AssessmentCaseStatus.FINALIZED
