"""
Session identity middleware.

Resolves ``session["user_id"]`` into an Identity on every request, reading
the user row fresh each time so that role or status changes apply
immediately.
"""
import logging

from django.utils.deprecation import MiddlewareMixin

from apps.core.exceptions import AuthenticationRequired, IntegrityFailure
from apps.core.middleware import set_log_context
from apps.rbac.services import IdentityResolver

logger = logging.getLogger(__name__)

SESSION_USER_KEY = 'user_id'


class SessionIdentityMiddleware(MiddlewareMixin):
    """
    Attach the resolved Identity to ``request.user`` / ``request.identity``.

    - Public paths are skipped (identity = None).
    - Missing session user id -> 401.
    - Unknown or inactive user -> 401 and the session pointer is removed.
    - Stored role outside UserRole -> 500, logged at error severity.
    """

    PUBLIC_PATHS = (
        '/api/health',
        '/api/config/environment',
        '/api/auth/login',
        '/api/auth/logout',
        '/api/auth/register',
        '/api/schema',
    )

    def process_request(self, request):
        request.identity = None
        request.user = None

        if self._is_public_path(request.path):
            return None

        if not request.path.startswith('/api/'):
            return None

        user_id = request.session.get(SESSION_USER_KEY)
        if user_id is None:
            return AuthenticationRequired().as_response(request)

        try:
            identity = IdentityResolver.resolve(user_id, path=request.path)
        except AuthenticationRequired as exc:
            request.session.pop(SESSION_USER_KEY, None)
            logger.info(
                "Session user not found or inactive",
                extra={'session_user_id': user_id, 'path': request.path}
            )
            return exc.as_response(request)
        except IntegrityFailure as exc:
            return exc.as_response(request)

        self._attach(request, identity)
        return None

    @staticmethod
    def _attach(request, identity):
        request.identity = identity
        request.user = identity
        set_log_context(
            user_id=identity.id,
            organization_id=identity.organization_id,
        )

    def _is_public_path(self, path):
        return any(path.startswith(public) for public in self.PUBLIC_PATHS)
