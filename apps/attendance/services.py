# attendance/services.py

"""
QR attendance.

A branch QR code toggles the student's visit at that branch: the first
scan of the day checks in, the next one checks out. A student is never
checked in at two branches at once; an open visit elsewhere is closed
with AUTO_CHECKOUT before the new check-in.
"""

from django.db import transaction
from django.utils import timezone
import json
import logging

from attendance.models import Attendance
from branches.models import Branch
from core.utils import get_setting, get_library_today, localize_datetime
from subscriptions.models import Subscription
from utils.exceptions import NotFound, Unauthorized, ValidationFailed

logger = logging.getLogger(__name__)

CHECK_IN = 'check-in'
CHECK_OUT = 'check-out'


# =============================================================================
# HELPERS
# =============================================================================

def parse_qr_payload(qr_code):
    """Branch token from a scanned payload: raw token or {"code": token}"""
    value = (qr_code or '').strip()
    try:
        data = json.loads(value)
    except ValueError:
        return value
    if isinstance(data, dict) and data.get('code'):
        return str(data['code'])
    return value


def classify_session(duration):
    """Attendance status for a closed visit of ``duration`` minutes"""
    if duration < get_setting('SHORT_SESSION_MINUTES'):
        return 'SHORT_SESSION'
    if duration > get_setting('FULL_DAY_MINUTES'):
        return 'FULL_DAY'
    return 'PRESENT'


def session_minutes(check_in, check_out):
    return max(int((check_out - check_in).total_seconds() // 60), 0)


def close_record(record, now, status=None):
    record.check_out = now
    record.duration = session_minutes(record.check_in, now)
    record.status = status or classify_session(record.duration)
    record.save()
    return record


def open_records_today(student, today):
    return Attendance.objects.filter(
        student=student, check_out__isnull=True, date=today
    ).select_related('branch').order_by('-check_in')


def has_valid_subscription(student, branch, today):
    return Subscription.objects.filter(
        student=student,
        branch=branch,
        status__in=['ACTIVE', 'PENDING'],
        end_date__gte=today,
    ).exists()


# =============================================================================
# CHECK-IN / CHECK-OUT
# =============================================================================

@transaction.atomic
def _toggle(student, branch, now):
    today = localize_datetime(now, branch.library).date()
    open_records = list(open_records_today(student, today).select_for_update(of=('self',)))

    here = next((record for record in open_records if record.branch_id == branch.pk), None)
    if here is not None:
        close_record(here, now)
        logger.info(f"Student {student.pk} checked out of branch {branch.pk} after {here.duration} min")
        return {
            'type': CHECK_OUT,
            'branch_name': branch.name,
            'student_name': student.name,
            'timestamp': now,
            'duration': here.duration,
            'status': here.status,
        }

    message = None
    for record in open_records:
        close_record(record, now, status='AUTO_CHECKOUT')
        message = f"Checked out from {record.branch.name} and checked in here."
        logger.info(f"Student {student.pk} auto checked out of branch {record.branch_id}")

    Attendance.objects.create(
        library=branch.library,
        student=student,
        branch=branch,
        date=today,
        check_in=now,
        status='PRESENT',
    )
    logger.info(f"Student {student.pk} checked in at branch {branch.pk}")
    return {
        'type': CHECK_IN,
        'branch_name': branch.name,
        'student_name': student.name,
        'timestamp': now,
        'message': message,
    }


def mark_attendance(student, qr_code, now=None):
    """
    Student self check-in / check-out by scanning the branch QR code.

    Raises:
        NotFound: the token does not belong to any active branch
        ValidationFailed: no running subscription at that branch
    """
    if student is None:
        raise Unauthorized()
    if student.is_blocked:
        raise ValidationFailed("Your account is blocked. Contact the library.")

    token = parse_qr_payload(qr_code)
    branch = Branch.objects.filter(qr_code=token, is_active=True).select_related('library').first() if token else None
    if branch is None:
        logger.warning(f"Unknown QR token scanned by student {student.pk}")
        raise NotFound("Invalid QR Code")

    now = now or timezone.now()
    today = localize_datetime(now, branch.library).date()
    if not has_valid_subscription(student, branch, today):
        raise ValidationFailed("No active subscription for this branch")

    return _toggle(student, branch, now)


def toggle_attendance(student, branch, now=None):
    """Check-in / check-out triggered from the owner or staff scanner"""
    if student.library_id != branch.library_id and not Subscription.objects.filter(
        student=student, library_id=branch.library_id
    ).exists():
        raise NotFound("Student not found")
    return _toggle(student, branch, now or timezone.now())


# =============================================================================
# RECORD MAINTENANCE
# =============================================================================

def update_attendance_record(library, record_id, check_in=None, check_out=None, status=None):
    """
    Correct a record's times. Duration and status follow the new times
    unless a status is given explicitly.
    """
    try:
        record = Attendance.objects.for_library(library).get(pk=record_id)
    except (Attendance.DoesNotExist, ValueError):
        raise NotFound("Record not found")

    if status and status not in dict(Attendance.STATUS_CHOICES):
        raise ValidationFailed(f"Unknown attendance status: {status}")

    if check_in:
        record.check_in = check_in
        record.date = localize_datetime(check_in, library).date()
    if check_out:
        record.check_out = check_out

    if record.check_out:
        if record.check_out < record.check_in:
            raise ValidationFailed("Check out must be after check in")
        record.duration = session_minutes(record.check_in, record.check_out)
        record.status = status or classify_session(record.duration)
    else:
        record.duration = None
        record.status = status or 'PRESENT'

    record.save()
    logger.info(f"Attendance {record.pk} corrected")
    return record


# =============================================================================
# LOGS & STATS
# =============================================================================

def get_attendance_logs(library, filters, branch_id=None):
    """
    Attendance of ``library`` filtered by date, date range, status and
    student name. ``branch_id`` pins the branch for staff.
    """
    queryset = Attendance.objects.for_library(library).select_related('student', 'branch')

    branch_id = branch_id or filters.get('branch')
    if branch_id:
        queryset = queryset.filter(branch_id=branch_id)

    if filters.get('date'):
        queryset = queryset.filter(date=filters['date'])
    else:
        if filters.get('start_date'):
            queryset = queryset.filter(date__gte=filters['start_date'])
        if filters.get('end_date'):
            queryset = queryset.filter(date__lte=filters['end_date'])

    if filters.get('status'):
        queryset = queryset.filter(status=filters['status'])
    if filters.get('search'):
        queryset = queryset.filter(student__name__icontains=filters['search'])

    return queryset.order_by('-check_in')


def get_attendance_stats(library, branch_id=None, day=None):
    """Visits on ``day``: total, still checked in, average minutes, peak hour"""
    day = day or get_library_today(library)
    records = Attendance.objects.for_library(library).filter(date=day)
    if branch_id:
        records = records.filter(branch_id=branch_id)

    total = 0
    checked_in = 0
    durations = []
    hours = [0] * 24
    for record in records.only('check_in', 'check_out', 'duration'):
        total += 1
        if record.check_out is None:
            checked_in += 1
        else:
            durations.append(record.duration or 0)
        hours[localize_datetime(record.check_in, library).hour] += 1

    peak = hours.index(max(hours)) if total else None
    return {
        'date': day,
        'total_present': total,
        'currently_checked_in': checked_in,
        'avg_duration': round(sum(durations) / len(durations)) if durations else 0,
        'peak_hour': f"{peak}:00 - {peak + 1}:00" if peak is not None else None,
    }


def attendance_to_dict(record):
    return {
        'id': str(record.pk),
        'student_id': str(record.student_id),
        'student_name': record.student.name,
        'branch_id': str(record.branch_id),
        'branch_name': record.branch.name,
        'date': record.date,
        'check_in': record.check_in,
        'check_out': record.check_out,
        'duration': record.duration,
        'status': record.status,
    }
