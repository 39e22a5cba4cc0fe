"""
Structured logging helpers: PII masking, JSON formatting and the
security audit logger.
"""
import json
import logging
import re
import traceback
from datetime import datetime

import sentry_sdk
from django.utils import timezone


class PIIMasker:
    """
    Utility class to mask sensitive PII data in logs.
    """

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b')
    SECRET_PATTERN = re.compile(
        r'(api[_-]?key|token|secret|password|sessionid)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)',
        re.IGNORECASE
    )

    SENSITIVE_FIELDS = {
        'password', 'password_hash', 'passwd',
        'api_key', 'access_token', 'refresh_token',
        'secret', 'secret_key', 'session_key', 'sessionid',
    }

    @classmethod
    def mask_email(cls, text):
        """Mask email addresses in text, keeping the first letter and domain."""
        if not isinstance(text, str):
            return text

        def mask_email_match(match):
            username, _, domain = match.group(0).partition('@')
            if len(username) > 1:
                username = username[0] + '*' * (len(username) - 1)
            return f"{username}@{domain}"

        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_secrets(cls, text):
        if not isinstance(text, str):
            return text
        return cls.SECRET_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        return cls.mask_secrets(cls.mask_email(text))

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive data in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if key.lower() in cls.SENSITIVE_FIELDS:
                masked[key] = '********' if value else value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict) else cls.mask_text(item)
                    for item in value
                ]
            else:
                masked[key] = cls.mask_text(value)
        return masked


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.

    Request context (request_id, user_id, organization_id) and any ``extra``
    fields are included; sensitive values are masked.
    """

    RESERVED_ATTRS = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
        'pathname', 'process', 'processName', 'relativeCreated',
        'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
        'taskName',
    }

    def format(self, record):
        log_data = {
            'timestamp': datetime.utcnow().isoformat() + 'Z',
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [
                    PIIMasker.mask_text(line)
                    for line in traceback.format_exception(*record.exc_info)
                ],
            }

        for key, value in record.__dict__.items():
            if key in self.RESERVED_ATTRS or key.startswith('_'):
                continue
            if key.lower() in PIIMasker.SENSITIVE_FIELDS:
                value = '********' if value else value
            elif isinstance(value, dict):
                value = PIIMasker.mask_dict(value)
            else:
                value = PIIMasker.mask_text(value)
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SecurityLogger:
    """
    Audit trail for authorization and tenant-isolation decisions.

    Events go to the ``security`` logger with an ``event_type`` and an ISO
    timestamp. Events that signal a possible isolation breach or corrupted
    data are also sent to Sentry.
    """

    CRITICAL_EVENTS = {
        'demo_isolation_violation',
        'demo_environment_blocked',
        'role_integrity_failure',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Example:
            >>> SecurityLogger.log_event(
            ...     'permission_denied',
            ...     user_id=7,
            ...     resource='users',
            ...     action='edit',
            ... )
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'timestamp': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(f"Security event: {event_type}", extra=log_data)

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
                extras=log_data
            )

    @staticmethod
    def log_permission_denied(identity, resource, action, code, path=None,
                              method=None, ip_address=None, **details):
        """
        Log an authorization denial with requester, resource and action.
        """
        SecurityLogger.log_event(
            'permission_denied',
            level='warning',
            user_id=getattr(identity, 'id', None),
            role=str(getattr(identity, 'role', '') or '') or None,
            organization_id=getattr(identity, 'organization_id', None),
            resource=str(resource),
            action=str(action),
            code=code,
            path=path,
            method=method,
            ip_address=ip_address,
            **details
        )

    @staticmethod
    def log_role_integrity_failure(user_id, role_value, path=None):
        SecurityLogger.log_event(
            'role_integrity_failure',
            level='error',
            user_id=user_id,
            stored_role=role_value,
            path=path,
        )

    @staticmethod
    def log_demo_decision(event_type, method, path, environment,
                          demo_customer_enforced=None, level='info', **details):
        """
        Log a demo firewall decision (deny, allow or tenant pin).
        """
        SecurityLogger.log_event(
            event_type,
            level=level,
            method=method,
            path=path,
            environment=environment,
            demo_customer_enforced=demo_customer_enforced,
            **details
        )

    @staticmethod
    def log_failed_login(identifier: str, ip_address: str, reason: str = None):
        SecurityLogger.log_event(
            'failed_login',
            level='warning',
            identifier=identifier,
            ip_address=ip_address,
            reason=reason
        )

    @staticmethod
    def log_rate_limit_exceeded(endpoint: str, ip_address: str, limit: str = None):
        SecurityLogger.log_event(
            'rate_limit_exceeded',
            level='warning',
            endpoint=endpoint,
            ip_address=ip_address,
            limit=limit
        )
