# utils/context.py

"""
Thread-local request context for audit logging.

Holds the acting user, client IP and request path so that model saves
deep inside services can stamp their audit rows without the request
being passed around.
"""

from threading import local
import logging

logger = logging.getLogger(__name__)

_thread_locals = local()


def set_request_context(user=None, ip_address=None, user_agent=None, request_path=None):
    """
    Set the current request context for this thread.

    Called by AuditContextMiddleware at the start of each request.
    """
    _thread_locals.request_context = {
        'user': user if user and user.is_authenticated else None,
        'ip_address': ip_address,
        'user_agent': user_agent or '',
        'request_path': request_path or '',
    }

    logger.debug(f"Set request context: user={user}, ip={ip_address}")


def get_request_context():
    """Return the request context dict for this thread, or None."""
    return getattr(_thread_locals, 'request_context', None)


def clear_request_context():
    if hasattr(_thread_locals, 'request_context'):
        delattr(_thread_locals, 'request_context')
        logger.debug("Cleared request context")


def get_client_ip(request):
    """
    Extract the client's real IP address from the request.

    Handles X-Forwarded-For header for proxied requests.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first one
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


# ============================================================================
# CONTEXT MANAGER
# ============================================================================

class RequestContext:
    """
    Context manager for temporarily setting request context.

    Used by management commands so their writes are still attributed.

    Example:
        with RequestContext(request_path='manage.py expire_subscriptions'):
            subscription.save()
    """

    def __init__(self, user=None, ip_address=None, user_agent=None, request_path=None):
        self.context = {
            'user': user,
            'ip_address': ip_address,
            'user_agent': user_agent or '',
            'request_path': request_path or '',
        }
        self.previous_context = None

    def __enter__(self):
        self.previous_context = get_request_context()
        _thread_locals.request_context = self.context
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_context:
            _thread_locals.request_context = self.previous_context
        else:
            clear_request_context()
