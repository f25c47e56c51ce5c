# librarydesk/middleware.py

"""
Multi-tenant library middleware.

This middleware:
1. Resolves the authenticated user's profile and library (tenant)
2. Binds the library to the thread for audit logging and timezone lookups
3. Exposes ``request.profile``, ``request.library`` and ``request.library_timezone``
4. Restores the previous binding once the response is produced

Tenant data is never selected implicitly: services receive the library
explicitly. The thread binding only feeds audit rows and "today" helpers.
"""

import logging
from django.conf import settings

from .managers import get_current_library, set_current_library, clear_current_library

logger = logging.getLogger(__name__)


class LibraryMiddleware:
    """
    Resolve the acting profile and tenant for each request.

    Resolution Logic:
    1. System paths (/admin/, /static/, /media/) → no tenant
    2. Authenticated users with an active profile → profile.library
    3. Inactive profiles or inactive libraries → no tenant
    """

    SYSTEM_PATHS = ['/admin/', '/static/', '/media/']

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        original_library = get_current_library()

        request.profile = None
        request.library = None
        request.library_timezone = getattr(
            settings, 'LIBRARYDESK_DEFAULT_TIMEZONE', 'Asia/Kolkata'
        )

        try:
            profile = self.resolve_profile(request)
            if profile is not None:
                request.profile = profile
                request.library = profile.library
                request.library_timezone = profile.library.timezone
                set_current_library(profile.library)
        except Exception:
            logger.exception("LibraryMiddleware failed to resolve tenant")
            request.profile = None
            request.library = None

        try:
            response = self.get_response(request)
        finally:
            if original_library:
                set_current_library(original_library)
            else:
                clear_current_library()

        return response

    def is_system_path(self, path):
        return any(path.startswith(prefix) for prefix in self.SYSTEM_PATHS)

    def resolve_profile(self, request):
        """
        Return the active profile of the authenticated user, or None.
        """
        if self.is_system_path(request.path):
            return None

        user = getattr(request, 'user', None)
        if user is None or not user.is_authenticated:
            return None

        profile = getattr(user, 'library_profile', None)
        if profile is None:
            logger.debug(f"User {user.pk} has no library profile")
            return None

        if not profile.is_active or not profile.library.is_active:
            logger.warning(f"Inactive profile or library for user {user.pk}")
            return None

        return profile
