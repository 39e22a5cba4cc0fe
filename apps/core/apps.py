from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Validate the demo configuration when Django initializes.

        A demo deployment without a reserved demo tenant id would have no
        tenant to pin writes to, so it refuses to start.
        """
        self._validate_demo_configuration()

    def _validate_demo_configuration(self):
        from apps.core.environment import (
            current_environment,
            is_demo_deployment,
            looks_like_production_database,
        )

        if not is_demo_deployment():
            return

        if not getattr(settings, 'DEMO_CUSTOMER_ID', None):
            raise ImproperlyConfigured(
                "DEMO_CUSTOMER_ID must be set when DEMO_MODE is enabled or "
                "APP_ENVIRONMENT is a demo environment."
            )

        if not getattr(settings, 'DEMO_DATABASE_URL', None):
            logger.warning(
                "⚠ DEMO_DATABASE_URL is not set. Demo data shares the primary database.",
                extra={'environment': current_environment()}
            )

        if looks_like_production_database():
            logger.warning(
                "⚠ DATABASE_URL looks like a production database. "
                "Demo writes will be blocked until an isolated demo database is configured.",
                extra={'environment': current_environment()}
            )

        logger.info("✓ Demo configuration validated")
