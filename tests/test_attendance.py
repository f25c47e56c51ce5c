"""
QR check-in / check-out toggling, corrections and daily stats.
"""

from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from attendance.models import Attendance
from attendance.services import (
    CHECK_IN, CHECK_OUT, classify_session, get_attendance_logs, get_attendance_stats,
    mark_attendance, parse_qr_payload, toggle_attendance, update_attendance_record,
)
from utils.exceptions import NotFound, Unauthorized, ValidationFailed

KOLKATA = ZoneInfo('Asia/Kolkata')


@pytest.fixture
def at(today):
    def make(hour, minute=0):
        return datetime.combine(today, time(hour, minute), tzinfo=KOLKATA)
    return make


@pytest.fixture
def member(student, make_subscription):
    make_subscription(student)
    return student


@pytest.mark.parametrize('payload, token', [
    ('abc123', 'abc123'),
    ('  abc123 ', 'abc123'),
    ('{"code": "abc123"}', 'abc123'),
    ('{"other": 1}', '{"other": 1}'),
    ('', ''),
])
def test_parse_qr_payload(payload, token):
    assert parse_qr_payload(payload) == token


@pytest.mark.parametrize('minutes, status', [
    (0, 'SHORT_SESSION'),
    (119, 'SHORT_SESSION'),
    (120, 'PRESENT'),
    (360, 'PRESENT'),
    (361, 'FULL_DAY'),
])
def test_classify_session(minutes, status):
    assert classify_session(minutes) == status


def test_first_scan_checks_in(member, branch, at):
    result = mark_attendance(member, branch.qr_code, now=at(9))

    assert result['type'] == CHECK_IN
    assert result['message'] is None
    record = Attendance.objects.get()
    assert record.check_out is None
    assert record.status == 'PRESENT'
    assert record.library == branch.library


@pytest.mark.parametrize('hour, status, duration', [
    (10, 'SHORT_SESSION', 60),
    (13, 'PRESENT', 240),
    (17, 'FULL_DAY', 480),
])
def test_second_scan_checks_out(member, branch, at, hour, status, duration):
    mark_attendance(member, branch.qr_code, now=at(9))
    result = mark_attendance(member, branch.get_qr_payload(), now=at(hour))

    assert result['type'] == CHECK_OUT
    assert result['duration'] == duration
    assert result['status'] == status
    record = Attendance.objects.get()
    assert record.duration == duration
    assert record.status == status


def test_check_in_elsewhere_closes_open_visit(member, branch, branch_b, make_subscription, at):
    make_subscription(member, branch=branch_b)
    mark_attendance(member, branch.qr_code, now=at(9))

    result = mark_attendance(member, branch_b.qr_code, now=at(11))

    assert result['type'] == CHECK_IN
    assert "Main Branch" in result['message']
    first = Attendance.objects.get(branch=branch)
    assert first.status == 'AUTO_CHECKOUT'
    assert first.duration == 120
    assert Attendance.objects.filter(check_out__isnull=True).count() == 1


def test_unknown_qr_code(member, at):
    with pytest.raises(NotFound, match="Invalid QR Code"):
        mark_attendance(member, 'not-a-branch', now=at(9))


def test_inactive_branch_code(member, branch, at):
    branch.is_active = False
    branch.save()
    with pytest.raises(NotFound):
        mark_attendance(member, branch.qr_code, now=at(9))


def test_scan_needs_subscription_at_branch(member, branch_b, at):
    with pytest.raises(ValidationFailed, match="subscription"):
        mark_attendance(member, branch_b.qr_code, now=at(9))


def test_expired_subscription_cannot_check_in(student, branch, make_subscription, today, at):
    make_subscription(student, start=today - timedelta(days=40), end=today - timedelta(days=1))
    with pytest.raises(ValidationFailed):
        mark_attendance(student, branch.qr_code, now=at(9))


def test_blocked_student_cannot_scan(member, branch, at):
    member.is_blocked = True
    member.save()
    with pytest.raises(ValidationFailed):
        mark_attendance(member, branch.qr_code, now=at(9))


def test_anonymous_scan():
    with pytest.raises(Unauthorized):
        mark_attendance(None, 'anything')


def test_scanner_toggle_without_subscription(student, branch, at):
    assert toggle_attendance(student, branch, now=at(9))['type'] == CHECK_IN
    assert toggle_attendance(student, branch, now=at(12))['type'] == CHECK_OUT


def test_scanner_rejects_foreign_student(branch, other_library, other_branch, make_student, at):
    stranger = make_student(library=other_library, branch=other_branch)
    with pytest.raises(NotFound):
        toggle_attendance(stranger, branch, now=at(9))


def test_update_record_recomputes(library, student, branch, at):
    toggle_attendance(student, branch, now=at(9))
    record = Attendance.objects.get()

    record = update_attendance_record(library, record.pk, check_out=at(16))
    assert record.duration == 420
    assert record.status == 'FULL_DAY'

    record = update_attendance_record(library, record.pk, check_in=at(15))
    assert record.duration == 60
    assert record.status == 'SHORT_SESSION'


def test_update_record_rejects_reversed_times(library, student, branch, at):
    toggle_attendance(student, branch, now=at(9))
    record = Attendance.objects.get()
    with pytest.raises(ValidationFailed):
        update_attendance_record(library, record.pk, check_out=at(8))


def test_update_record_of_other_library(other_library, student, branch, at):
    toggle_attendance(student, branch, now=at(9))
    with pytest.raises(NotFound):
        update_attendance_record(other_library, Attendance.objects.get().pk, status='PRESENT')


def test_logs_and_stats(library, make_student, branch, branch_b, today, at):
    first = make_student("Ira Sen")
    second = make_student("Om Das")
    toggle_attendance(first, branch, now=at(9))
    toggle_attendance(first, branch, now=at(12))
    toggle_attendance(second, branch_b, now=at(9, 30))

    logs = get_attendance_logs(library, {'date': today, 'search': 'ira'})
    assert [record.student.name for record in logs] == ["Ira Sen"]
    assert get_attendance_logs(library, {}, branch_id=branch_b.pk).count() == 1

    stats = get_attendance_stats(library, day=today)
    assert stats['total_present'] == 2
    assert stats['currently_checked_in'] == 1
    assert stats['avg_duration'] == 180
    assert stats['peak_hour'] == "9:00 - 10:00"

    assert get_attendance_stats(library, branch_id=branch.pk, day=today)['currently_checked_in'] == 0
