# accounts/decorators.py

from functools import wraps

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.shortcuts import redirect
from django.contrib import messages

from utils.exceptions import Unauthorized


def _wants_json(request):
    return (
        request.headers.get('x-requested-with') == 'XMLHttpRequest'
        or 'application/json' in request.headers.get('accept', '')
        or request.content_type == 'application/json'
    )


def role_required(*roles):
    """
    Require an active profile with one of ``roles``.

    JSON callers get the error envelope with status 401, pages are
    redirected to the login screen.
    """
    def decorator(view_func):
        @wraps(view_func)
        @login_required
        def wrapper(request, *args, **kwargs):
            profile = getattr(request, 'profile', None)
            if profile is None or profile.role not in roles:
                error = Unauthorized()
                if _wants_json(request) or request.headers.get('HX-Request'):
                    return JsonResponse(error.as_dict(), status=error.status_code)
                messages.error(request, "You do not have access to that page.")
                return redirect('accounts:login')
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


owner_required = role_required('OWNER')
staff_required = role_required('STAFF')
member_required = role_required('OWNER', 'STAFF')
