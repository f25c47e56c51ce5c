# students/htmx_views.py

from django.shortcuts import render
from django.views.decorators.http import require_GET
import logging

from accounts.decorators import member_required
from utils.exceptions import LibraryDeskError

from .filters import StudentFilter, list_students, count_students_by_status
from .views import scoped_filter

logger = logging.getLogger(__name__)


# =============================================================================
# STUDENT SEARCH
# =============================================================================

@member_required
@require_GET
def student_search(request):
    """HTMX-compatible student search with pagination and status counts"""
    try:
        filters = scoped_filter(request)
        error = None
    except LibraryDeskError as e:
        filters = StudentFilter()
        error = e.message

    page = list_students(request.library, filters)
    context = {
        'students': page['students'],
        'total': page['total'],
        'pages': page['pages'],
        'page': filters.page,
        'filters': filters,
        'error': error,
    }
    return render(request, 'students/partials/student_rows.html', context)


@member_required
@require_GET
def student_quick_stats(request):
    branch_id = request.profile.branch_id if request.profile.is_staff_member else request.GET.get('branch')
    context = {'counts': count_students_by_status(request.library, branch_id or None)}
    return render(request, 'students/partials/student_stats.html', context)
