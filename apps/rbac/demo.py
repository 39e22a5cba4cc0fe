"""
Demo sandbox: report quota, upgrade prompts and retention for demo users.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from apps.rbac.gates import report_limit
from apps.rbac.models import User
from apps.rbac.roles import UserRole

logger = logging.getLogger(__name__)

UPGRADE_URL = '/upgrade'


class DemoSandboxService:

    @staticmethod
    def upgrade_threshold():
        return getattr(settings, 'DEMO_UPGRADE_PROMPT_THRESHOLD', 4)

    @staticmethod
    def retention_days():
        return getattr(settings, 'DEMO_RETENTION_DAYS', 30)

    @classmethod
    def check_report_limit(cls, identity):
        """
        Quota status for an identity. Non-demo identities are never limited
        here; their own max_reports is enforced by ReportGate.
        """
        if identity.role != UserRole.DEMO:
            return {
                'canCreate': True,
                'currentCount': identity.report_count,
                'maxReports': identity.max_reports,
                'isNearLimit': False,
                'shouldShowUpgradePrompt': False,
            }

        limit = report_limit(identity)
        can_create = identity.report_count < limit
        near_limit = identity.report_count >= cls.upgrade_threshold()
        return {
            'canCreate': can_create,
            'currentCount': identity.report_count,
            'maxReports': limit,
            'isNearLimit': near_limit,
            'shouldShowUpgradePrompt': near_limit and can_create,
        }

    @classmethod
    def upgrade_prompt(cls, identity):
        status = cls.check_report_limit(identity)
        prompt = {
            'show': status['shouldShowUpgradePrompt'],
            'title': '',
            'message': '',
            'currentCount': status['currentCount'],
            'maxReports': status['maxReports'],
        }
        if not prompt['show']:
            return prompt

        remaining = status['maxReports'] - status['currentCount']
        if remaining == 1:
            prompt['title'] = 'Last Demo Report'
            prompt['message'] = (
                f"This is your final demo report ({status['currentCount'] + 1} of "
                f"{status['maxReports']}). Upgrade to continue creating unlimited "
                f"assessment reports."
            )
        else:
            prompt['title'] = 'Demo Limit Approaching'
            prompt['message'] = (
                f"You have {remaining} demo reports remaining ({status['currentCount']} of "
                f"{status['maxReports']} used). Upgrade to unlock unlimited reports."
            )
        prompt['upgradeUrl'] = UPGRADE_URL
        return prompt

    @staticmethod
    def initialize_demo_user(user):
        user.max_reports = getattr(settings, 'DEMO_REPORT_LIMIT', 5)
        user.report_count = 0
        user.save(update_fields=['max_reports', 'report_count', 'updated_at'])
        logger.info(
            "Demo user initialized",
            extra={'user_id': user.id, 'max_reports': user.max_reports}
        )

    @classmethod
    def expired_users(cls, now=None):
        cutoff = (now or timezone.now()) - timedelta(days=cls.retention_days())
        return User.objects.filter(
            role=UserRole.DEMO,
            is_active=True,
            created_at__lt=cutoff,
        )

    @classmethod
    def users_near_limit(cls):
        return User.objects.filter(
            role=UserRole.DEMO,
            is_active=True,
            report_count__gte=cls.upgrade_threshold(),
        )
