"""
Tests for the platform error types and the DRF exception handler.
"""
import json

import pytest
from django.test import RequestFactory
from django_ratelimit.exceptions import Ratelimited
from rest_framework.exceptions import NotFound, ValidationError

from apps.core.exceptions import (
    AccessDenied,
    EnvironmentBlocked,
    IntegrityFailure,
    custom_exception_handler,
    ratelimit_view,
)


@pytest.fixture
def api_request():
    request = RequestFactory().get('/api/organizations')
    request.request_id = 'req-42'
    return request


class TestPlatformErrors:

    def test_payload_is_flat(self):
        error = AccessDenied(
            'Access denied to this organization',
            code='ORGANIZATION_ACCESS_DENIED',
            requestedOrganization='org-2',
            userOrganization='org-1',
        )

        assert error.status_code == 403
        assert error.as_payload() == {
            'error': 'Access denied to this organization',
            'code': 'ORGANIZATION_ACCESS_DENIED',
            'requestedOrganization': 'org-2',
            'userOrganization': 'org-1',
        }

    def test_defaults(self):
        assert IntegrityFailure().as_payload() == {
            'error': 'Data integrity failure',
            'code': 'INTEGRITY_FAILURE',
        }
        assert EnvironmentBlocked().status_code == 503

    def test_as_response_carries_request_id(self, api_request):
        response = IntegrityFailure(code='INVALID_ROLE_CONFIGURATION').as_response(api_request)

        assert response.status_code == 500
        assert json.loads(response.content) == {
            'error': 'Data integrity failure',
            'code': 'INVALID_ROLE_CONFIGURATION',
            'request_id': 'req-42',
        }


class TestCustomExceptionHandler:

    def test_platform_error(self, api_request):
        response = custom_exception_handler(
            AccessDenied(code='MODULE_ACCESS_DENIED', requestedModule='k12'),
            {'request': api_request},
        )

        assert response.status_code == 403
        assert response.data == {
            'error': 'Insufficient permissions',
            'code': 'MODULE_ACCESS_DENIED',
            'requestedModule': 'k12',
            'request_id': 'req-42',
        }

    def test_drf_detail_error_is_flattened(self, api_request):
        response = custom_exception_handler(NotFound(), {'request': api_request})

        assert response.status_code == 404
        assert response.data['code'] == 'NOT_FOUND'
        assert response.data['request_id'] == 'req-42'

    def test_validation_error(self, api_request):
        response = custom_exception_handler(
            ValidationError({'email': ['This field is required.']}), {'request': api_request}
        )

        assert response.status_code == 400
        assert response.data['code'] == 'VALIDATION_ERROR'
        assert response.data['details'] == {'email': ['This field is required.']}

    def test_unhandled_exception_is_500(self, api_request):
        response = custom_exception_handler(ValueError('boom'), {'request': api_request})

        assert response.status_code == 500
        assert response.data == {
            'error': 'Internal server error',
            'code': 'INTERNAL_ERROR',
            'request_id': 'req-42',
        }

    def test_rate_limited(self, security_events):
        request = RequestFactory().post('/api/auth/register')

        response = custom_exception_handler(Ratelimited(), {'request': request})

        assert response.status_code == 429
        assert response['Retry-After'] == '3600'
        assert response.data['code'] == 'RATE_LIMIT_EXCEEDED'
        assert security_events('rate_limit_exceeded')

    def test_ratelimit_view(self):
        response = ratelimit_view(RequestFactory().post('/api/auth/login'), Ratelimited())

        assert response.status_code == 429
        assert response['Retry-After'] == '60'
