# accounts/backends.py

from django.contrib.auth.backends import ModelBackend
from django.contrib.auth.models import User
from django.db.models import Q
import logging

from utils.context import get_client_ip

logger = logging.getLogger(__name__)


class EmailAuthBackend(ModelBackend):
    """
    Authentication backend that:
    - Allows login with email or username
    - Refuses users whose library profile or library is inactive
    """

    def authenticate(self, request, username=None, password=None, email=None, **kwargs):
        login_field = email or username

        if login_field is None or password is None:
            return None

        user = User.objects.filter(
            Q(email__iexact=login_field) | Q(username__iexact=login_field)
        ).first()

        ip_address = get_client_ip(request) if request is not None else 'Unknown'

        if not user:
            # Run the default password hasher to reduce timing difference
            User().set_password(password)
            logger.warning(f"Login attempt for non-existent user: {login_field} from IP: {ip_address}")
            return None

        if not user.check_password(password) or not self.user_can_authenticate(user):
            logger.warning(f"Failed login attempt for {login_field} from IP: {ip_address}")
            return None

        profile = getattr(user, 'library_profile', None)
        if profile is not None and (not profile.is_active or not profile.library.is_active):
            logger.warning(f"Login refused for inactive profile or library: {login_field}")
            return None

        logger.info(f"Successful login: {login_field}")
        return user
