"""
Demo write-path firewall rules.

The allow-list enumerates every (method, path) pair a demo deployment may
serve as a write. Paths are relative to ``/api`` and are either exact
strings or full-match regular expressions.
"""
import re
from dataclasses import dataclass
from typing import Optional, Pattern, Union

WRITE_METHODS = frozenset({'POST', 'PUT', 'PATCH', 'DELETE'})

API_PREFIX = '/api'

_ID = r'[\w-]+'


@dataclass(frozen=True)
class AllowedOperation:
    method: str
    path: Union[str, Pattern]

    def matches(self, method, path):
        if method != self.method:
            return False
        if isinstance(self.path, str):
            return path == self.path
        return self.path.fullmatch(path) is not None


def _exact(method, path):
    return AllowedOperation(method, path)


def _pattern(method, regex):
    return AllowedOperation(method, re.compile(regex))


DEMO_ALLOWED_OPERATIONS = (
    # Authentication
    _exact('GET', '/auth/me'),
    _exact('POST', '/auth/login'),
    _exact('POST', '/auth/logout'),
    _exact('POST', '/auth/register'),
    _exact('POST', '/auth/reset-password-request'),
    _exact('POST', '/auth/reset-password'),
    _exact('POST', '/auth/forgot-username'),
    _exact('GET', '/config/environment'),

    # Demo assessment flows
    _exact('POST', '/demo-analyze-assessment'),
    _exact('GET', '/demo-assessment-cases'),
    _pattern('GET', rf'/demo-assessment-cases/{_ID}'),
    _pattern('PATCH', rf'/demo-assessment-cases/{_ID}'),

    # Assessment cases
    _exact('POST', '/assessment-cases'),
    _exact('GET', '/assessment-cases'),
    _pattern('GET', rf'/assessment-cases/{_ID}'),
    _pattern('PATCH', rf'/assessment-cases/{_ID}'),
    _pattern('PATCH', rf'/assessment-cases/{_ID}/finalize'),
    _pattern('POST', rf'/assessment-cases/{_ID}/switch-version'),

    # K-12 review workflow
    _exact('POST', '/k12-assessment-cases/edit'),
    _exact('POST', '/k12-assessment-cases/approve-change'),
    _exact('POST', '/k12-assessment-cases/reject-change'),

    # Sharing
    _pattern('GET', rf'/shared/{_ID}'),
    _pattern('POST', rf'/reports/{_ID}/share'),

    # Read-only lookups used by the demo UI
    _exact('GET', '/ai-config'),
    _exact('GET', '/prompts'),
    _exact('GET', '/lookup-tables'),
    _exact('GET', '/mapping-configurations'),
    _exact('GET', '/admin/users'),
    _pattern('PATCH', r'/admin/users/\d+'),
)

# Writes whose payload tenant id is overwritten rather than only checked.
_PINNED_PATH = re.compile(r'/assessment-cases(/[\w-]+)?')
PINNED_METHODS = frozenset({'POST', 'PATCH'})


def relative_path(path):
    """Strip the API prefix and any trailing slash."""
    if path.startswith(API_PREFIX + '/'):
        path = path[len(API_PREFIX):]
    if len(path) > 1:
        path = path.rstrip('/')
    return path


def is_allowed(method, path) -> bool:
    relative = relative_path(path)
    return any(operation.matches(method, relative) for operation in DEMO_ALLOWED_OPERATIONS)


def requires_pinning(method, path) -> bool:
    return method in PINNED_METHODS and _PINNED_PATH.fullmatch(relative_path(path)) is not None


def tenant_references(payload):
    """
    Yield (field, value) for every tenant designator in a payload:
    ``customerId``, ``customer.id`` and ``assessmentCase.customerId``.
    """
    if not isinstance(payload, dict):
        return
    if payload.get('customerId') is not None:
        yield 'customerId', payload['customerId']
    customer = payload.get('customer')
    if customer:
        # a customer without an id never matches the demo tenant
        yield 'customer.id', customer.get('id') if isinstance(customer, dict) else None
    case = payload.get('assessmentCase')
    if isinstance(case, dict) and case.get('customerId') is not None:
        yield 'assessmentCase.customerId', case['customerId']


def find_isolation_violation(payload, demo_customer_id) -> Optional[tuple]:
    """Return the first (field, value) naming a tenant other than the demo tenant."""
    for field, value in tenant_references(payload):
        if str(value) != str(demo_customer_id):
            return field, value
    return None


def pin_tenant(payload, demo_customer_id):
    """Overwrite the payload's tenant ids with the demo tenant id."""
    pinned = dict(payload)
    pinned['customerId'] = demo_customer_id
    if isinstance(pinned.get('customer'), dict):
        pinned['customer'] = dict(pinned['customer'], id=demo_customer_id)
    return pinned
