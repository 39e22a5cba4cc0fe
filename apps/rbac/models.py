"""
RBAC models.

The platform user: one global identity with a single role, an optional
organization, module assignments and report quota counters.
"""
import logging

from django.contrib.auth.hashers import check_password, make_password
from django.db import models
from django.db.models import F
from django.utils import timezone

from apps.core.models import TimestampedModel
from apps.rbac.roles import UserRole

logger = logging.getLogger(__name__)


class UserQuerySet(models.QuerySet):

    def active(self):
        return self.filter(is_active=True)

    def with_organization(self, user_id):
        """
        Fetch a user together with its organization in one query.

        Returns None when the user does not exist.
        """
        return self.select_related('organization').filter(pk=user_id).first()

    def for_organization(self, organization_id):
        return self.filter(organization_id=organization_id)


class UserManager(models.Manager.from_queryset(UserQuerySet)):
    """
    Manager for User queries.
    """

    def by_login(self, identifier):
        """Find a user by email or username."""
        if not identifier:
            return None
        identifier = identifier.strip()
        if '@' in identifier:
            return self.filter(email__iexact=identifier).first()
        return self.filter(username=identifier).first()

    def create_user(self, username, email, password=None, **extra_fields):
        if not username:
            raise ValueError('Username is required')
        if not email:
            raise ValueError('Email address is required')

        extra_fields.setdefault('is_active', True)
        user = self.model(username=username, email=email.strip().lower(), **extra_fields)
        if password:
            user.set_password(password)
        user.save(using=self._db)
        return user


class User(TimestampedModel):
    """
    Platform user.

    ``role`` is stored as plain text and is not constrained at the database
    level: the identity resolver validates it on every request and treats an
    unknown value as a data integrity failure.
    """

    username = models.CharField(max_length=150, unique=True)
    email = models.EmailField(unique=True)
    password_hash = models.CharField(max_length=255, db_column='password_hash')

    role = models.CharField(
        max_length=32,
        default=UserRole.CUSTOMER,
        db_index=True,
        help_text="One of UserRole"
    )
    organization = models.ForeignKey(
        'tenants.Organization',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='members',
    )
    customer_id = models.CharField(
        max_length=100,
        default='system',
        db_index=True,
        help_text="Legacy tenant identifier"
    )
    assigned_modules = models.JSONField(
        null=True,
        blank=True,
        help_text="Explicit module assignment; falls back to the organization's"
    )

    report_count = models.IntegerField(default=0)
    max_reports = models.IntegerField(default=-1, help_text="-1 means unlimited")

    is_active = models.BooleanField(default=True, db_index=True)
    last_login = models.DateTimeField(null=True, blank=True)

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['organization', 'is_active']),
        ]

    def __str__(self):
        return self.username

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    def check_password(self, raw_password):
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        self.password_hash = make_password(raw_password)

    def update_last_login(self):
        self.last_login = timezone.now()
        self.save(update_fields=['last_login'])

    def increment_report_count(self):
        User.objects.filter(pk=self.pk).update(report_count=F('report_count') + 1)
        self.refresh_from_db(fields=['report_count'])
