"""
Authentication backend for platform users.

Accepts either an email address or a username together with a password.
"""
from django.contrib.auth.backends import BaseBackend

from apps.rbac.models import User


class CredentialsBackend(BaseBackend):
    """
    Authenticate using an email address or username.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        """
        Return the matching active user, or None.
        """
        identifier = username or kwargs.get('email')

        if not identifier or not password:
            return None

        user = User.objects.by_login(identifier)
        if user is None:
            # Run the default password hasher once to reduce timing
            # difference between existing and non-existing users
            User().set_password(password)
            return None

        if user.check_password(password) and user.is_active:
            return user

        return None

    def get_user(self, user_id):
        try:
            return User.objects.get(pk=user_id)
        except User.DoesNotExist:
            return None
