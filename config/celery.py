"""
Celery configuration for the Assessment Platform API.
"""
import os
from celery import Celery
from celery.schedules import crontab
from celery.signals import task_prerun, task_postrun, task_failure
import logging

import sentry_sdk

# Set the default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('assessments')

# Load configuration from Django settings with CELERY_ prefix
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks in all installed apps
app.autodiscover_tasks()

logger = logging.getLogger(__name__)


@task_prerun.connect
def task_prerun_handler(sender=None, task_id=None, task=None, args=None, kwargs=None, **extra):
    """Log task start."""
    logger.info(
        f"Task started: {task.name}",
        extra={
            'task_id': task_id,
            'task_name': task.name,
            'task_kwargs': str(kwargs)[:200] if kwargs else None,
        }
    )


@task_postrun.connect
def task_postrun_handler(sender=None, task_id=None, task=None, args=None, kwargs=None, retval=None, **extra):
    """Log task completion."""
    logger.info(
        f"Task completed: {task.name}",
        extra={
            'task_id': task_id,
            'task_name': task.name,
            'result': str(retval)[:200] if retval else None,
        }
    )


@task_failure.connect
def task_failure_handler(sender=None, task_id=None, exception=None, args=None, kwargs=None, traceback=None, einfo=None, **extra):
    """Log task failure and send to Sentry."""
    logger.error(
        f"Task failed: {sender.name}",
        extra={
            'task_id': task_id,
            'task_name': sender.name,
            'exception': str(exception)[:500] if exception else None,
        },
        exc_info=einfo
    )
    sentry_sdk.capture_exception(exception)


# Celery Beat Schedule for Periodic Tasks
app.conf.beat_schedule = {
    # Remove demo users past the retention window, daily at 03:00 UTC
    'cleanup-expired-demo-users': {
        'task': 'apps.rbac.tasks.cleanup_expired_demo_users',
        'schedule': crontab(hour=3, minute=0),
    },
}

app.conf.timezone = 'UTC'
