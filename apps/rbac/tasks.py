"""
Celery tasks for demo user retention.
"""
import logging

from celery import shared_task
from django.db import transaction

from apps.core.logging import SecurityLogger
from apps.rbac.demo import DemoSandboxService

logger = logging.getLogger(__name__)


@shared_task
def cleanup_expired_demo_users(dry_run=False):
    """
    Remove the data of demo users past the retention window.

    Each expired demo user has its assessment cases deleted and the account
    deactivated. With ``dry_run`` nothing is changed.

    Returns:
        dict: processed user ids, deleted case count and the dry_run flag
    """
    from apps.assessments.models import AssessmentCase

    expired = list(DemoSandboxService.expired_users())
    result = {
        'dry_run': dry_run,
        'users': [user.id for user in expired],
        'cases_deleted': 0,
    }

    if dry_run:
        result['cases_deleted'] = AssessmentCase.objects.filter(created_by__in=expired).count()
        logger.info("Demo cleanup dry run", extra={'expired_users': len(expired)})
        return result

    for user in expired:
        with transaction.atomic():
            deleted, _ = AssessmentCase.objects.filter(created_by=user).delete()
            user.is_active = False
            user.save(update_fields=['is_active', 'updated_at'])

        result['cases_deleted'] += deleted
        SecurityLogger.log_event(
            'demo_user_cleaned_up',
            level='info',
            user_id=user.id,
            cases_deleted=deleted,
        )

    logger.info(
        "Demo cleanup completed",
        extra={'expired_users': len(expired), 'cases_deleted': result['cases_deleted']}
    )
    return result
