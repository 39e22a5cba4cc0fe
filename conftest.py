"""
Pytest configuration and fixtures.
"""
import itertools
import logging

import pytest
from django.conf import settings
import django
from django.core.management import call_command


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    settings.DATABASE_URL = 'sqlite://:memory:'
    settings.DEMO_DATABASE_URL = None
    settings.RATELIMIT_ENABLE = False
    settings.SECURE_SSL_REDIRECT = False
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
    django.setup()


@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """Set up test database with migrations."""
    with django_db_blocker.unblock():
        call_command('migrate', '--run-syncdb', verbosity=0)


@pytest.fixture(autouse=True)
def clear_cache():
    """Start every test with an empty cache (settings are cached)."""
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def login():
    """
    Log a user into a test client by writing ``session["user_id"]``,
    exactly what POST /api/auth/login does.
    """
    def do_login(client, user):
        session = client.session
        session['user_id'] = user.id
        session.save()
        return client
    return do_login


@pytest.fixture
def organization(db):
    """Create a test organization."""
    from apps.tenants.models import Organization
    return Organization.objects.create(
        id='org-1',
        name='Northfield College',
        customer_id='org-1',
        assigned_modules=['post_secondary', 'k12'],
    )


@pytest.fixture
def other_organization(db):
    """Create another organization for isolation tests."""
    from apps.tenants.models import Organization
    return Organization.objects.create(
        id='org-2',
        name='Riverside Schools',
        customer_id='org-2',
        assigned_modules=['k12'],
    )


_usernames = itertools.count(1)


@pytest.fixture
def make_user(db):
    """Factory creating a user with the given role."""
    from apps.rbac.models import User

    def create(role='customer', organization=None, password='Passw0rd!123', **extra):
        number = next(_usernames)
        extra.setdefault('username', f"{role}-{number}")
        extra.setdefault('email', f"{role}-{number}@example.com")
        if organization is not None:
            extra.setdefault('customer_id', organization.customer_id)
        username = extra.pop('username')
        email = extra.pop('email')
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            organization=organization,
            **extra
        )
    return create


@pytest.fixture
def developer(make_user):
    return make_user('developer', customer_id='system')


@pytest.fixture
def system_admin(make_user):
    return make_user('system_admin', customer_id='system')


@pytest.fixture
def org_admin(make_user, organization):
    return make_user('org_admin', organization=organization)


@pytest.fixture
def other_org_admin(make_user, other_organization):
    return make_user('org_admin', organization=other_organization)


@pytest.fixture
def customer(make_user, organization):
    return make_user('customer', organization=organization)


@pytest.fixture
def other_customer(make_user, other_organization):
    return make_user('customer', organization=other_organization)


@pytest.fixture
def demo_user(make_user, settings):
    return make_user(
        'demo',
        customer_id=settings.DEMO_CUSTOMER_ID,
        assigned_modules=['k12'],
        max_reports=settings.DEMO_REPORT_LIMIT,
    )


@pytest.fixture
def demo_settings(settings):
    """A correctly configured demo deployment."""
    settings.DEMO_MODE = True
    settings.APP_ENVIRONMENT = 'demo'
    settings.DEMO_CUSTOMER_ID = 'demo-customer'
    settings.DEMO_DATABASE_URL = 'postgres://demo-db.internal/demo'
    settings.READ_ONLY_MODE = False
    return settings


@pytest.fixture
def security_events(caplog, monkeypatch):
    """
    Capture records of the ``security`` logger.

    Returns a function listing captured records, optionally filtered by
    ``event_type``.
    """
    security_logger = logging.getLogger('security')
    monkeypatch.setattr(security_logger, 'propagate', True)
    caplog.set_level(logging.INFO, logger='security')

    def events(event_type=None):
        return [
            record for record in caplog.records
            if record.name == 'security'
            and (event_type is None or getattr(record, 'event_type', None) == event_type)
        ]
    return events
