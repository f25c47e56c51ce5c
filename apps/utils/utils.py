# utils/utils.py

import json
import logging

from django.core.exceptions import ValidationError
from django.core.paginator import Paginator, EmptyPage, PageNotAnInteger
from django.db import DatabaseError
from django.http import JsonResponse

from utils.exceptions import LibraryDeskError, NotFound, OperationFailed, ValidationFailed

logger = logging.getLogger(__name__)

# =============================================================================
# CORE UTILITY HELPER FUNCTIONS
# =============================================================================

def paginate_queryset(request, queryset, per_page=20):
    paginator = Paginator(queryset, per_page)
    page = request.GET.get('page', 1)
    try:
        page_obj = paginator.page(page)
    except PageNotAnInteger:
        page_obj = paginator.page(1)
    except EmptyPage:
        page_obj = paginator.page(paginator.num_pages)
    return page_obj, paginator

def parse_filters(request, filter_keys):
    """
    Extract filter values from request.GET.
    filter_keys: list of filter names to extract
    Returns dict: {key: value or None}
    """
    filters = {}
    for key in filter_keys:
        value = request.GET.get(key, '').strip()
        filters[key] = value if value else None
    return filters

def parse_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# =============================================================================
# TENANT LOOKUPS
# =============================================================================

def get_for_library(model, library, pk, label=None):
    """
    Fetch one tenant row or raise NotFound.

    A row owned by another library is reported exactly like a missing one.
    """
    label = label or model._meta.verbose_name.title()
    if library is None or not pk:
        raise NotFound(f"{label} not found")
    try:
        return model.objects.for_library(library).get(pk=pk)
    except (model.DoesNotExist, ValidationError, ValueError):
        raise NotFound(f"{label} not found")


# =============================================================================
# SERVICE BOUNDARY
# =============================================================================

def _validation_message(error):
    if hasattr(error, 'message_dict'):
        return '; '.join(
            f"{field}: {' '.join(messages)}" if field != '__all__' else ' '.join(messages)
            for field, messages in error.message_dict.items()
        )
    return ' '.join(error.messages)

def run_service(func, *args, **kwargs):
    """
    Call a service and convert its outcome to the response envelope.

    Returns {'success': True, 'data': ...} or
    {'success': False, 'error': message, 'code': code}.
    """
    try:
        return {'success': True, 'data': func(*args, **kwargs)}
    except LibraryDeskError as e:
        logger.warning(f"{func.__name__} rejected: {e.code} {e.message}")
        return e.as_dict()
    except ValidationError as e:
        message = _validation_message(e)
        logger.warning(f"{func.__name__} validation error: {message}")
        return {'success': False, 'error': message, 'code': 'validation_error'}
    except DatabaseError:
        logger.exception(f"{func.__name__} failed")
        return OperationFailed().as_dict()

def status_for(result):
    """HTTP status for a run_service envelope"""
    if result.get('success'):
        return 200
    return {
        'unauthorized': 401,
        'not_found': 404,
        'invalid_transition': 409,
        'operation_failed': 500,
    }.get(result.get('code'), 400)

def json_result(result):
    """JsonResponse for a run_service envelope"""
    return JsonResponse(result, status=status_for(result))


# =============================================================================
# REQUEST PARSING
# =============================================================================

def parse_request_data(request):
    """
    Body of a POST as a dict, from JSON or form encoding.

    Form keys ending in ``_ids`` are kept as lists.
    """
    if request.content_type == 'application/json':
        try:
            data = json.loads(request.body or b'{}')
        except json.JSONDecodeError:
            raise ValidationFailed("Invalid JSON data")
        if not isinstance(data, dict):
            raise ValidationFailed("Invalid JSON data")
        return data

    data = {}
    for key in request.POST:
        values = request.POST.getlist(key)
        data[key] = values if key.endswith('_ids') else values[-1]
    return data
