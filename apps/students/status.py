# students/status.py

"""
Student lifecycle status derivation.

Pure functions over already-loaded rows: no queries are issued here.
``students.filters`` compiles the same rules into a query predicate, and
the two are kept equivalent by the test-suite.

Priority (first match wins):
    1. blocked   - student.is_blocked
    2. active    - an ACTIVE subscription whose end_date has not passed,
                   in the filtered branch when one is given
    3. expired   - has subscription history (in the filtered branch when
                   one is given)
    4. no_plan   - nothing of the above; upgraded to ``new`` while the
                   student is younger than the new-student window
"""

from dataclasses import dataclass
from datetime import timedelta

from django.utils import timezone

from core.utils import get_setting, localize_datetime

ACTIVE = 'active'
EXPIRED = 'expired'
NEW = 'new'
NO_PLAN = 'no_plan'
BLOCKED = 'blocked'

STATUS_CHOICES = [
    (ACTIVE, 'Active'),
    (EXPIRED, 'Expired'),
    (NEW, 'New'),
    (NO_PLAN, 'No Plan'),
    (BLOCKED, 'Blocked'),
]
STATUSES = [value for value, label in STATUS_CHOICES]

ACTIVE_SUBSCRIPTION_STATUS = 'ACTIVE'


@dataclass(frozen=True)
class StatusResult:
    status: str
    display_subscription: object = None


def new_student_window():
    return timedelta(hours=get_setting('NEW_STUDENT_WINDOW_HOURS'))


def reference_date(now, library=None):
    """Calendar date of ``now`` in the library's timezone"""
    return localize_datetime(now, library).date()


def _same_branch(subscription, branch_id):
    return str(subscription.branch_id) == str(branch_id)


def _in_branch(subscriptions, branch_id):
    if not branch_id:
        return list(subscriptions)
    return [sub for sub in subscriptions if _same_branch(sub, branch_id)]


def _latest(subscriptions):
    if not subscriptions:
        return None
    return max(subscriptions, key=lambda sub: sub.start_date)


def is_active_subscription(subscription, today):
    return (
        subscription.status == ACTIVE_SUBSCRIPTION_STATUS
        and subscription.end_date >= today
    )


def find_active_subscription(subscriptions, branch_id=None, today=None):
    """Latest-starting active subscription, restricted to ``branch_id`` when given"""
    active = [
        sub for sub in _in_branch(subscriptions, branch_id)
        if is_active_subscription(sub, today)
    ]
    return _latest(active)


def is_new_student(student, now):
    return now - student.created_at < new_student_window()


def select_display_subscription(subscriptions, branch_id=None, now=None, today=None):
    """
    Pick the subscription whose plan, branch and seat a list row shows.

    Order of preference: active in branch, latest start in branch,
    latest start anywhere, None.
    """
    subscriptions = list(subscriptions)
    if today is None:
        today = reference_date(now or timezone.now())

    in_branch = _in_branch(subscriptions, branch_id)
    return (
        find_active_subscription(in_branch, today=today)
        or _latest(in_branch)
        or _latest(subscriptions)
    )


def derive_student_status(student, subscriptions, branch_id=None, now=None, today=None):
    """
    Compute the lifecycle status of ``student``.

    Args:
        student: row with ``is_blocked`` and ``created_at``
        subscriptions: the student's subscriptions in the acting library
        branch_id: optional branch filter
        now: aware datetime, defaults to the current time
        today: reference date for end dates, defaults to ``now`` in the
            library's timezone

    Returns:
        StatusResult(status, display_subscription)
    """
    subscriptions = list(subscriptions)
    now = now or timezone.now()
    if today is None:
        today = reference_date(now)

    display = select_display_subscription(subscriptions, branch_id, today=today)

    if student.is_blocked:
        return StatusResult(BLOCKED, display)

    if find_active_subscription(subscriptions, branch_id, today) is not None:
        return StatusResult(ACTIVE, display)

    if _in_branch(subscriptions, branch_id):
        return StatusResult(EXPIRED, display)

    # Subscriptions only in other branches read as no plan for this branch
    if is_new_student(student, now):
        return StatusResult(NEW, display)
    return StatusResult(NO_PLAN, display)


def format_seat_number(number):
    """
    Display form of a seat number.

    >>> format_seat_number(7)
    'S-07'
    >>> format_seat_number('S-12')
    'S-12'
    >>> format_seat_number(None)
    'N/A'
    """
    if number is None or number == '':
        return 'N/A'
    number = str(number)
    if number.startswith('S-'):
        return number
    return f"S-{number.zfill(2)}"


def build_status_row(student, subscriptions, branch_id=None, now=None, today=None):
    """
    Attach the derived list-row fields to ``student`` and return it.

    Sets ``status``, ``display_subscription``, ``current_plan``,
    ``current_branch`` and ``seat_number``.
    """
    result = derive_student_status(student, subscriptions, branch_id, now, today)
    display = result.display_subscription

    student.status = result.status
    student.display_subscription = display
    student.current_plan = display.plan.name if display is not None else None
    student.current_branch = display.branch.name if display is not None else None
    student.seat_number = format_seat_number(
        display.seat.number if display is not None and display.seat_id else None
    )
    return student
