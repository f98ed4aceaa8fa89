"""
Email-based authentication backend.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()


class EmailBackend(ModelBackend):
    """
    Authenticate marketplace accounts by email address and password.

    The email is matched case-insensitively. Inactive accounts
    (``is_active=False``) are rejected by ``user_can_authenticate``; moderation
    status (suspended, banned) is enforced when tokens are issued.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        email = kwargs.get('email', username)

        if email is None or password is None:
            return None

        try:
            user = User.objects.get(email__iexact=email.strip())
        except User.DoesNotExist:
            # Hash once anyway so unknown emails take as long as wrong passwords
            User().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user

        return None
