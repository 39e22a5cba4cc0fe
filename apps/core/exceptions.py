"""
Custom exception handlers and error types for DRF.

Every error leaves the API in the same flat shape::

    {"error": "...", "code": "MACHINE_CODE", ...diagnostics, "request_id": "..."}
"""
import logging

from django.http import JsonResponse
from django_ratelimit.exceptions import Ratelimited
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def _retry_after(path):
    if '/auth/register' in path:
        return 3600
    return 60


def _rate_limit_payload(request, retry_after):
    from apps.core.logging import SecurityLogger

    ip_address = request.META.get('REMOTE_ADDR', 'unknown') if request else 'unknown'
    path = request.path if request else 'unknown'

    SecurityLogger.log_rate_limit_exceeded(
        endpoint=path,
        ip_address=ip_address,
    )
    logger.warning(
        "Rate limit exceeded",
        extra={
            'request_id': getattr(request, 'request_id', None),
            'path': path,
            'method': request.method if request else None,
            'ip': ip_address,
            'retry_after': retry_after,
        }
    )
    return {
        'error': 'Rate limit exceeded. Please try again later.',
        'code': 'RATE_LIMIT_EXCEEDED',
        'retry_after': retry_after,
    }


def ratelimit_view(request, exception):
    """
    View used by django-ratelimit (RATELIMIT_VIEW) to answer 429 instead of 403.
    """
    retry_after = _retry_after(request.path)
    response = JsonResponse(_rate_limit_payload(request, retry_after), status=429)
    response['Retry-After'] = str(retry_after)
    return response


def custom_exception_handler(exc, context):
    """
    Log API errors and return them in the platform's flat error format.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, Ratelimited):
        retry_after = _retry_after(request.path if request else '')
        payload = _rate_limit_payload(request, retry_after)
        payload['request_id'] = request_id
        response = Response(payload, status=status.HTTP_429_TOO_MANY_REQUESTS)
        response['Retry-After'] = str(retry_after)
        return response

    response = exception_handler(exc, context)

    log_extra = {
        'exception': str(exc),
        'request_id': request_id,
        'path': request.path if request else None,
        'method': request.method if request else None,
    }

    if response is None:
        logger.error(
            f"Unhandled API exception: {exc.__class__.__name__}",
            extra=log_extra,
            exc_info=True
        )
        return Response(
            {
                'error': 'Internal server error',
                'code': 'INTERNAL_ERROR',
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    if response.status_code >= 500:
        logger.error(f"API exception: {exc.__class__.__name__}", extra=log_extra, exc_info=True)
    else:
        logger.warning(f"API exception: {exc.__class__.__name__}", extra=log_extra)

    if not isinstance(exc, PlatformError):
        response.data = _flatten_drf_error(exc, response.data)

    if isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response


def _flatten_drf_error(exc, data):
    """Convert DRF's ``{"detail": ...}`` payloads into the flat error shape."""
    code = getattr(exc, 'default_code', 'error')
    if isinstance(data, dict) and set(data) == {'detail'}:
        return {
            'error': str(data['detail']),
            'code': str(getattr(data['detail'], 'code', code)).upper(),
        }
    return {
        'error': 'Invalid request',
        'code': 'VALIDATION_ERROR',
        'details': data,
    }


class PlatformError(APIException):
    """
    Base error carrying an HTTP status, a machine-readable code and
    optional diagnostic fields that are merged into the response body.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request failed'
    default_code = 'ERROR'

    def __init__(self, message=None, code=None, **diagnostics):
        self.message = message or self.default_detail
        self.code = code or self.default_code
        self.diagnostics = diagnostics
        # Assigned directly so DRF does not coerce diagnostics into strings.
        self.detail = self.as_payload()

    def as_payload(self):
        payload = {'error': str(self.message), 'code': self.code}
        payload.update(self.diagnostics)
        return payload

    def as_response(self, request=None):
        """Render the error outside DRF, e.g. from a middleware."""
        payload = self.as_payload()
        request_id = getattr(request, 'request_id', None)
        if request_id:
            payload['request_id'] = request_id
        return JsonResponse(payload, status=self.status_code)

    def __str__(self):
        return f"{self.code}: {self.message}"


class InvalidInput(PlatformError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input'
    default_code = 'INVALID_INPUT'


class AuthenticationRequired(PlatformError):
    """No resolvable identity. Deliberately not a NotAuthenticated subclass
    so DRF keeps the 401 status without a WWW-Authenticate scheme."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Authentication required'
    default_code = 'AUTHENTICATION_REQUIRED'


class AccessDenied(PlatformError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Insufficient permissions'
    default_code = 'INSUFFICIENT_PERMISSIONS'


class ResourceNotFound(PlatformError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found'
    default_code = 'NOT_FOUND'


class IntegrityFailure(PlatformError):
    """Stored data violates an invariant (e.g. an unknown role value)."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Data integrity failure'
    default_code = 'INTEGRITY_FAILURE'


class EnvironmentBlocked(PlatformError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Operation blocked by environment safety checks'
    default_code = 'ENVIRONMENT_BLOCKED'
