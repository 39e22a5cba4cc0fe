"""
Deployment environment detection.

The environment label (APP_ENVIRONMENT) and the demo flags are read from
django.conf.settings on every call so that per-request checks always see
the current configuration.
"""
import logging

from django.conf import settings

from apps.rbac.roles import ModuleType

logger = logging.getLogger(__name__)

PRODUCTION = 'production'

# Demo deployments and the module each one is locked to (None = all modules).
DEMO_ENVIRONMENTS = {
    'demo': None,
    'k12-demo': ModuleType.K12,
    'post-secondary-demo': ModuleType.POST_SECONDARY,
    'tutoring-demo': ModuleType.TUTORING,
}

# Substrings that make a database URL look like a production store.
PRODUCTION_DATABASE_MARKERS = ('ep-', 'prod', 'production', 'live', 'main')


def normalize_environment(value):
    """Lowercase and dash-separate an environment label; empty means production."""
    if not value:
        return PRODUCTION
    return str(value).strip().lower().replace('_', '-')


def current_environment():
    return normalize_environment(getattr(settings, 'APP_ENVIRONMENT', None))


def is_demo_label(environment):
    return normalize_environment(environment) in DEMO_ENVIRONMENTS


def is_demo_deployment():
    """True when DEMO_MODE is on or the environment label is a demo label."""
    return bool(getattr(settings, 'DEMO_MODE', False)) or is_demo_label(current_environment())


def is_read_only():
    return bool(getattr(settings, 'READ_ONLY_MODE', False))


def locked_module(environment=None):
    environment = normalize_environment(environment or current_environment())
    return DEMO_ENVIRONMENTS.get(environment)


def demo_customer_id():
    return getattr(settings, 'DEMO_CUSTOMER_ID', None)


def looks_like_production_database():
    """
    Best-effort heuristic: the demo deployment has no dedicated demo
    database URL and its DATABASE_URL contains a production marker.

    This is a secondary safety net behind the firewall allow-list and the
    tenant pin; it is never used on its own.
    """
    if getattr(settings, 'DEMO_DATABASE_URL', None):
        return False
    database_url = (getattr(settings, 'DATABASE_URL', '') or '').lower()
    return any(marker in database_url for marker in PRODUCTION_DATABASE_MARKERS)


def environment_summary():
    environment = current_environment()
    module = locked_module(environment)
    return {
        'environment': environment,
        'isDemo': is_demo_deployment(),
        'readOnly': is_read_only(),
        'lockedModule': module.value if module else None,
    }
