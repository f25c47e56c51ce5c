"""
Plan periods, chaining, seat occupancy and the expiry sweep.
"""

from datetime import date, timedelta
from types import SimpleNamespace

import pytest
from django.core import mail
from django.core.management import call_command

from subscriptions.models import Subscription
from subscriptions.services import (
    SubscriptionExpiryService, SubscriptionService, add_months, calculate_end_date,
)
from utils.exceptions import NotFound, ValidationFailed


@pytest.mark.parametrize('start, months, expected', [
    (date(2025, 1, 15), 1, date(2025, 2, 15)),
    (date(2025, 1, 31), 1, date(2025, 2, 28)),
    (date(2024, 1, 31), 1, date(2024, 2, 29)),
    (date(2025, 11, 30), 3, date(2026, 2, 28)),
])
def test_add_months_clamps_to_month_end(start, months, expected):
    assert add_months(start, months) == expected


@pytest.mark.parametrize('duration, unit, expected', [
    (30, 'DAYS', date(2025, 1, 30)),
    (2, 'WEEKS', date(2025, 1, 14)),
    (1, 'MONTHS', date(2025, 1, 31)),
    (3, 'MONTHS', date(2025, 3, 31)),
])
def test_end_date_is_inclusive(duration, unit, expected):
    plan = SimpleNamespace(duration=duration, duration_unit=unit)
    assert calculate_end_date(date(2025, 1, 1), plan) == expected


def test_unknown_duration_unit():
    with pytest.raises(ValidationFailed):
        calculate_end_date(date(2025, 1, 1), SimpleNamespace(duration=1, duration_unit='YEARS'))


def test_new_subscription_starts_today(library, branch, student, day_plan, today):
    sub = SubscriptionService.create_subscription(library, student, branch, day_plan)

    assert sub.start_date == today
    assert sub.end_date == today + timedelta(days=29)
    assert sub.amount == day_plan.price
    assert sub.status == 'ACTIVE'


def test_renewal_chains_after_running_subscription(library, branch, student, day_plan, today):
    first = SubscriptionService.create_subscription(library, student, branch, day_plan)
    second = SubscriptionService.create_subscription(library, student, branch, day_plan)

    assert second.start_date == first.end_date + timedelta(days=1)


def test_chain_ignores_other_branches(library, branch, branch_b, student, day_plan, today):
    SubscriptionService.create_subscription(library, student, branch_b, day_plan)
    sub = SubscriptionService.create_subscription(library, student, branch, day_plan)
    assert sub.start_date == today


def test_seat_conflict(library, branch, seat, make_student, day_plan):
    SubscriptionService.create_subscription(library, make_student(), branch, day_plan, seat=seat)

    with pytest.raises(ValidationFailed, match="occupied"):
        SubscriptionService.create_subscription(library, make_student(), branch, day_plan, seat=seat)


def test_seat_free_after_period(library, branch, seat, make_student, day_plan, today):
    first = SubscriptionService.create_subscription(library, make_student(), branch, day_plan, seat=seat)
    later = SubscriptionService.create_subscription(
        library, make_student(), branch, day_plan, seat=seat,
        start_date=first.end_date + timedelta(days=1),
    )
    assert later.seat == seat


def test_cancelled_subscription_releases_seat(library, branch, seat, make_student, day_plan):
    first = SubscriptionService.create_subscription(library, make_student(), branch, day_plan, seat=seat)
    first.status = 'CANCELLED'
    first.save()

    SubscriptionService.create_subscription(library, make_student(), branch, day_plan, seat=seat)


def test_pending_subscription_holds_seat(library, branch, seat, make_student, day_plan):
    SubscriptionService.create_subscription(
        library, make_student(), branch, day_plan, seat=seat, status='PENDING'
    )
    with pytest.raises(ValidationFailed):
        SubscriptionService.create_subscription(library, make_student(), branch, day_plan, seat=seat)


def test_seat_of_another_branch_is_refused(library, branch_b, seat, student, day_plan):
    with pytest.raises(ValidationFailed):
        SubscriptionService.create_subscription(library, student, branch_b, day_plan, seat=seat)


def test_plan_limited_to_branch(library, branch, branch_b, student, day_plan):
    day_plan.branch = branch
    day_plan.save()
    with pytest.raises(ValidationFailed):
        SubscriptionService.create_subscription(library, student, branch_b, day_plan)


def test_branch_of_another_library(library, other_branch, student, day_plan):
    with pytest.raises(NotFound):
        SubscriptionService.create_subscription(library, student, other_branch, day_plan)


def test_assign_and_release_seat(library, branch, seat, student, make_subscription):
    sub = make_subscription(student)

    assigned = SubscriptionService.assign_seat(library, sub.pk, seat.pk)
    assert assigned.seat == seat
    assert SubscriptionService.get_eligible_subscriptions(library, branch.pk) == []

    released = SubscriptionService.unassign_seat(library, sub.pk)
    assert released.seat is None


def test_assign_locker_conflict(library, locker, make_student, make_subscription):
    first = make_subscription(make_student())
    second = make_subscription(make_student())
    SubscriptionService.assign_locker(library, first.pk, locker.pk)

    with pytest.raises(ValidationFailed):
        SubscriptionService.assign_locker(library, second.pk, locker.pk)


def test_expire_lapsed_subscriptions(student, make_subscription, today):
    lapsed = make_subscription(student, start=today - timedelta(days=40), end=today - timedelta(days=1))
    running = make_subscription(student, start=today - timedelta(days=5), end=today)
    pending = make_subscription(
        student, start=today - timedelta(days=40), end=today - timedelta(days=2), status='PENDING'
    )

    assert SubscriptionExpiryService.expire_lapsed_subscriptions(today=today) == 2

    statuses = dict(Subscription.objects.values_list('pk', 'status'))
    assert statuses[lapsed.pk] == 'EXPIRED'
    assert statuses[pending.pk] == 'EXPIRED'
    assert statuses[running.pk] == 'ACTIVE'


def test_expire_command(student, make_subscription, today):
    lapsed = make_subscription(student, start=today - timedelta(days=40), end=today - timedelta(days=1))
    call_command('expire_subscriptions', date=today.isoformat())
    lapsed.refresh_from_db()
    assert lapsed.status == 'EXPIRED'


def test_expiring_and_recently_expired(library, make_student, make_subscription, today):
    soon = make_subscription(make_student(), start=today - timedelta(days=20), end=today + timedelta(days=3))
    make_subscription(make_student(), start=today, end=today + timedelta(days=20))
    gone = make_subscription(make_student(), start=today - timedelta(days=30), end=today - timedelta(days=2))

    expiring = SubscriptionExpiryService.get_expiring_subscriptions(library, 7, today=today)
    assert expiring == [soon]

    expired = SubscriptionExpiryService.get_recently_expired_subscriptions(library, 7, today=today)
    assert expired == [gone]


def test_renewed_student_is_not_recently_expired(library, student, make_subscription, today):
    make_subscription(student, start=today - timedelta(days=30), end=today - timedelta(days=2))
    make_subscription(student, start=today - timedelta(days=1), end=today + timedelta(days=28))

    assert SubscriptionExpiryService.get_recently_expired_subscriptions(library, 7, today=today) == []


def test_expiry_reminders_sent_once(make_student, make_subscription, today):
    make_subscription(make_student(), start=today - timedelta(days=25), end=today + timedelta(days=3))
    make_subscription(
        make_student(email=None), start=today - timedelta(days=25), end=today + timedelta(days=3)
    )

    counts = SubscriptionExpiryService.send_expiry_reminders(days=3, today=today)

    assert counts == {'total': 2, 'sent': 1, 'errors': 0, 'skipped': 1}
    assert len(mail.outbox) == 1
    assert "Monthly" in mail.outbox[0].subject

    again = SubscriptionExpiryService.send_expiry_reminders(days=3, today=today)
    assert again['sent'] == 0
    assert len(mail.outbox) == 1
