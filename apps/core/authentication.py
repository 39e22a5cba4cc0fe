"""
Custom DRF authentication classes.
"""
from rest_framework.authentication import SessionAuthentication


class MiddlewareAuthentication(SessionAuthentication):
    """
    DRF authentication class that uses the Identity set by
    SessionIdentityMiddleware.

    The middleware resolves the session into an Identity and stores it on
    the Django request; this class hands the same object to DRF so that
    ``request.user`` inside views and permission classes is that Identity.
    The identity comes from the session cookie, so unsafe methods must
    carry a valid CSRF token, as with DRF's SessionAuthentication.
    """

    def authenticate(self, request):
        django_request = request._request
        identity = getattr(django_request, 'identity', None)

        if identity is None or not identity.is_authenticated:
            return None

        self.enforce_csrf(request)
        return (identity, None)
