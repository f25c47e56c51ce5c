"""
Branch lifecycle, seat generation and occupancy grids.
"""

from datetime import timedelta

import pytest
from django.core.exceptions import ValidationError

from branches.models import Branch, Seat
from branches.services import BranchService, LockerService, SeatService
from utils.exceptions import NotFound, ValidationFailed


def test_create_branch_with_seats(library):
    branch = BranchService.create_branch(library, {'name': "North Wing", 'city': "Pune"}, seat_count=3)

    assert branch.library == library
    assert list(branch.seats.order_by('number').values_list('number', flat=True)) == ['01', '02', '03']
    assert len(branch.qr_code) == 32


def test_branch_name_is_required(library):
    with pytest.raises(ValidationError):
        BranchService.create_branch(library, {'name': ''})
    assert not Branch.objects.exists()


def test_delete_branch_refused_while_subscribed(library, branch, student, make_subscription):
    make_subscription(student)
    with pytest.raises(ValidationFailed):
        BranchService.delete_branch(library, branch.pk)


def test_delete_branch_after_subscriptions_end(library, branch, student, make_subscription, today):
    make_subscription(student, start=today - timedelta(days=40), end=today - timedelta(days=10))
    assert BranchService.delete_branch(library, branch.pk)
    assert not Branch.objects.filter(pk=branch.pk).exists()


def test_branch_of_other_library_is_not_found(library, other_branch):
    with pytest.raises(NotFound):
        BranchService.delete_branch(library, other_branch.pk)


def test_regenerate_qr_code(library, branch):
    old = branch.qr_code
    assert BranchService.regenerate_qr_code(library, branch.pk).qr_code != old


def test_bulk_seats_skip_existing(branch):
    Seat.objects.create(library=branch.library, branch=branch, number='A02')

    result = SeatService.bulk_create_seats(branch, 3, prefix='A', section='Silent')

    assert result == {'created': ['A01', 'A03'], 'skipped': ['A02']}
    assert branch.seats.get(number='A01').section == 'Silent'


def test_bulk_seats_all_existing(branch, seat):
    with pytest.raises(ValidationFailed):
        SeatService.bulk_create_seats(branch, 1)


def test_bulk_seats_count_must_be_positive(branch):
    with pytest.raises(ValidationFailed):
        SeatService.bulk_create_seats(branch, 0)


def test_duplicate_seat_number(branch, seat):
    with pytest.raises(ValidationFailed):
        SeatService.create_seat(branch, '01')


def test_occupied_seat_cannot_be_deleted(library, seat, student, make_subscription):
    make_subscription(student, seat=seat)
    with pytest.raises(ValidationFailed):
        SeatService.delete_seat(library, seat.pk)


def test_seat_grid(branch, seat, student, make_subscription, today):
    SeatService.create_seat(branch, '02')
    sub = make_subscription(student, seat=seat)

    grid = SeatService.get_seat_grid(branch, today)

    assert [cell['number'] for cell in grid] == ['S-01', 'S-02']
    assert grid[0]['is_occupied']
    assert grid[0]['student_name'] == "Asha Rao"
    assert grid[0]['subscription_id'] == str(sub.pk)
    assert not grid[1]['is_occupied']


def test_future_subscription_not_on_todays_grid(branch, seat, student, make_subscription, today):
    make_subscription(student, seat=seat, start=today + timedelta(days=3))
    assert not SeatService.get_seat_grid(branch, today)[0]['is_occupied']


def test_locker_grid(branch, locker, student, make_subscription, today):
    make_subscription(student, locker=locker)
    grid = LockerService.get_locker_grid(branch, today)
    assert grid[0]['is_occupied']
    assert grid[0]['number'] == '1'


def test_branch_overview(library, branch, branch_b, seat, student, make_subscription):
    make_subscription(student, seat=seat)
    overview = {b.name: b for b in BranchService.get_branch_overview(library)}

    assert overview["Main Branch"].seat_total == 1
    assert overview["Main Branch"].seats_occupied == 1
    assert overview["Second Branch"].seats_occupied == 0
