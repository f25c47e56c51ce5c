"""
Student status derivation on plain objects.
"""

from datetime import date, datetime, timedelta, timezone as dt_timezone
from types import SimpleNamespace

import pytest

from students.status import (
    ACTIVE, BLOCKED, EXPIRED, NEW, NO_PLAN,
    derive_student_status, format_seat_number, select_display_subscription,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=dt_timezone.utc)
TODAY = date(2025, 6, 15)


def make_student(hours_old=48, is_blocked=False):
    return SimpleNamespace(is_blocked=is_blocked, created_at=NOW - timedelta(hours=hours_old))


def make_sub(branch_id='b1', status='ACTIVE', start=None, end=None, name='sub'):
    start = start or TODAY - timedelta(days=10)
    end = end or TODAY + timedelta(days=10)
    return SimpleNamespace(branch_id=branch_id, status=status, start_date=start, end_date=end, name=name)


def status_of(student, subscriptions, branch_id=None):
    return derive_student_status(student, subscriptions, branch_id, now=NOW, today=TODAY).status


def test_blocked_wins_over_active():
    """A blocked student reads as blocked even with a running plan"""
    assert status_of(make_student(is_blocked=True), [make_sub()]) == BLOCKED


def test_active_subscription():
    assert status_of(make_student(), [make_sub()]) == ACTIVE


def test_subscription_ending_today_is_still_active():
    assert status_of(make_student(), [make_sub(end=TODAY)]) == ACTIVE


def test_expired_when_every_subscription_lapsed():
    sub = make_sub(end=TODAY - timedelta(days=1))
    assert status_of(make_student(), [sub]) == EXPIRED


def test_pending_subscription_is_not_active():
    assert status_of(make_student(), [make_sub(status='PENDING')]) == EXPIRED


def test_new_student_without_subscriptions():
    assert status_of(make_student(hours_old=2), []) == NEW


def test_new_window_is_strict():
    """Exactly 24 hours old is no longer new"""
    assert status_of(make_student(hours_old=24), []) == NO_PLAN


def test_no_plan_for_old_student_without_subscriptions():
    assert status_of(make_student(hours_old=72), []) == NO_PLAN


def test_branch_filter_ignores_other_branches():
    """Subscriptions elsewhere count as no plan for the filtered branch"""
    subs = [make_sub(branch_id='b2')]
    assert status_of(make_student(), subs, branch_id='b1') == NO_PLAN
    assert status_of(make_student(), subs, branch_id='b2') == ACTIVE


def test_expired_in_branch_while_active_elsewhere():
    subs = [
        make_sub(branch_id='b1', end=TODAY - timedelta(days=3)),
        make_sub(branch_id='b2'),
    ]
    assert status_of(make_student(), subs, branch_id='b1') == EXPIRED
    assert status_of(make_student(), subs) == ACTIVE


def test_display_prefers_active_in_branch():
    old = make_sub(start=TODAY - timedelta(days=60), end=TODAY - timedelta(days=31), name='old')
    running = make_sub(start=TODAY - timedelta(days=30), end=TODAY + timedelta(days=1), name='running')
    future = make_sub(status='PENDING', start=TODAY + timedelta(days=2), end=TODAY + timedelta(days=30), name='future')

    chosen = select_display_subscription([old, running, future], today=TODAY)
    assert chosen.name == 'running'


def test_display_falls_back_to_latest_start():
    first = make_sub(start=TODAY - timedelta(days=90), end=TODAY - timedelta(days=60), name='first')
    second = make_sub(start=TODAY - timedelta(days=59), end=TODAY - timedelta(days=30), name='second')

    assert select_display_subscription([first, second], today=TODAY).name == 'second'


def test_display_uses_any_branch_when_none_in_filter():
    elsewhere = make_sub(branch_id='b2', name='elsewhere')
    assert select_display_subscription([elsewhere], branch_id='b1', today=TODAY).name == 'elsewhere'
    assert select_display_subscription([], today=TODAY) is None


@pytest.mark.parametrize('value, expected', [
    (7, 'S-07'),
    ('12', 'S-12'),
    ('S-3', 'S-3'),
    (None, 'N/A'),
    ('', 'N/A'),
])
def test_format_seat_number(value, expected):
    assert format_seat_number(value) == expected
