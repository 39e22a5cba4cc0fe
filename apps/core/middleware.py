"""
Core middleware for request processing.
"""
import logging
import threading
import uuid

from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)

_request_context = threading.local()


def set_log_context(**values):
    """Attach values (user_id, organization_id, ...) to this thread's log records."""
    for key, value in values.items():
        setattr(_request_context, key, value)


def clear_log_context():
    _request_context.__dict__.clear()


def get_log_context():
    return dict(_request_context.__dict__)


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject a unique request_id into each request for tracing.
    The request_id is added to the request object, to log records and to
    the X-Request-ID response header.
    """

    def process_request(self, request):
        clear_log_context()
        request_id = request.META.get('HTTP_X_REQUEST_ID') or str(uuid.uuid4())
        request.request_id = request_id
        set_log_context(request_id=request_id)

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        clear_log_context()
        return response


class LoggingFilter(logging.Filter):
    """
    Add request_id, user_id and organization_id to log records.
    """

    def filter(self, record):
        for key, value in get_log_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        if not hasattr(record, 'request_id'):
            record.request_id = '-'
        return True
