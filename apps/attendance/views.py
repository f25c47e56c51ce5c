# attendance/views.py

"""
Attendance Views

- Scanner endpoint for owners and staff (student id + branch)
- Kiosk check-in for students (credentials + scanned branch QR)
- Attendance log page, JSON logs and daily stats
- Record correction (owner)
"""

from django.db.models import Q
from django.shortcuts import render
from django.utils.dateparse import parse_date, parse_datetime
from django.views.decorators.http import require_POST, require_GET
import logging

from accounts.decorators import owner_required, member_required
from branches.models import Branch
from students.models import Student
from students.services import get_student_for_library
from utils.exceptions import LibraryDeskError, NotFound, Unauthorized
from utils.utils import (
    get_for_library, json_result, paginate_queryset, parse_filters, parse_request_data, run_service,
)

from .models import Attendance
from .services import (
    attendance_to_dict, get_attendance_logs, get_attendance_stats, mark_attendance,
    toggle_attendance, update_attendance_record,
)

logger = logging.getLogger(__name__)

LOG_FILTER_KEYS = ['search', 'status', 'branch', 'date', 'start_date', 'end_date']


def _scoped_branch_id(request):
    """Staff only ever see their own branch"""
    if request.profile.is_staff_member:
        return request.profile.branch_id
    return None


def _log_filters(request):
    filters = parse_filters(request, LOG_FILTER_KEYS)
    for key in ('date', 'start_date', 'end_date'):
        if filters[key]:
            filters[key] = parse_date(filters[key])
    return filters


# =============================================================================
# SCANNING
# =============================================================================

@member_required
@require_POST
def scan_student(request):
    """
    Toggle a student's visit from the desk scanner.

    Body: student_id, branch_id (owners only; staff use their branch)
    """
    try:
        data = parse_request_data(request)
        student = get_student_for_library(request.library, data.get('student_id'))
        branch_id = _scoped_branch_id(request) or data.get('branch_id')
        branch = get_for_library(Branch, request.library, branch_id, label='Branch')
    except LibraryDeskError as e:
        return json_result(e.as_dict())

    return json_result(run_service(toggle_attendance, student, branch))


def _authenticate_student(identifier, password):
    identifier = (identifier or '').strip()
    if not identifier or not password:
        raise Unauthorized("Enter your email or phone and password")

    candidates = Student.objects.filter(
        Q(email__iexact=identifier) | Q(phone=identifier), is_blocked=False
    )
    for student in candidates:
        if student.check_password(password):
            return student
    raise Unauthorized("Invalid credentials")


def kiosk(request):
    """Student self check-in page at the branch entrance"""
    return render(request, 'attendance/kiosk.html', {'title': 'Check In'})


@require_POST
def kiosk_scan(request):
    """
    Student check-in / check-out.

    Body: identifier (email or phone), password, qr_code (scanned payload)
    """
    try:
        data = parse_request_data(request)
        student = _authenticate_student(data.get('identifier'), data.get('password'))
    except LibraryDeskError as e:
        logger.warning(f"Kiosk scan refused: {e.message}")
        return json_result(e.as_dict())

    return json_result(run_service(mark_attendance, student, data.get('qr_code')))


# =============================================================================
# LOGS & STATS
# =============================================================================

@member_required
def attendance_logs(request):
    filters = _log_filters(request)
    records = get_attendance_logs(request.library, filters, _scoped_branch_id(request))
    page_obj, paginator = paginate_queryset(request, records, per_page=25)

    branch_id = _scoped_branch_id(request) or filters.get('branch')
    context = {
        'page_obj': page_obj,
        'records': page_obj.object_list,
        'filters': filters,
        'stats': get_attendance_stats(request.library, branch_id, filters.get('date')),
        'branches': Branch.objects.for_library(request.library).order_by('name'),
        'status_choices': Attendance.STATUS_CHOICES,
        'title': 'Attendance',
    }
    return render(request, 'attendance/attendance_logs.html', context)


@member_required
@require_GET
def attendance_logs_json(request):
    filters = _log_filters(request)
    records = get_attendance_logs(request.library, filters, _scoped_branch_id(request))
    page_obj, paginator = paginate_queryset(request, records, per_page=10)
    return json_result({
        'success': True,
        'data': {
            'logs': [attendance_to_dict(record) for record in page_obj.object_list],
            'total': paginator.count,
            'pages': paginator.num_pages,
        },
    })


@member_required
@require_GET
def attendance_stats(request):
    branch_id = _scoped_branch_id(request) or request.GET.get('branch') or None
    day = parse_date(request.GET.get('date') or '')
    return json_result({'success': True, 'data': get_attendance_stats(request.library, branch_id, day)})


# =============================================================================
# CORRECTIONS
# =============================================================================

@owner_required
@require_POST
def update_record(request, pk):
    """Body: check_in?, check_out? (ISO datetimes), status?"""
    try:
        data = parse_request_data(request)
    except LibraryDeskError as e:
        return json_result(e.as_dict())

    check_in = parse_datetime(data.get('check_in') or '')
    check_out = parse_datetime(data.get('check_out') or '')
    if (data.get('check_in') and check_in is None) or (data.get('check_out') and check_out is None):
        return json_result({'success': False, 'error': 'Invalid date format', 'code': 'validation_error'})

    result = run_service(
        update_attendance_record, request.library, pk,
        check_in=check_in, check_out=check_out, status=data.get('status') or None,
    )
    if result['success']:
        result['data'] = attendance_to_dict(result['data'])
    return json_result(result)
