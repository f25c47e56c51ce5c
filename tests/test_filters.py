"""
The student list filter must agree with the derived row status.
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from students.filters import (
    StudentFilter, all_status_rows, count_students_by_status, filtered_students, list_students,
)
from students.status import STATUSES
from utils.exceptions import ValidationFailed


@pytest.fixture
def population(make_student, make_subscription, branch, branch_b, other_library, other_branch, today):
    """One student per status plus cross-branch and cross-tenant cases"""
    now = timezone.now()
    students = {
        'active': make_student("Active One", created_at=now - timedelta(days=10)),
        'expired': make_student("Expired One", created_at=now - timedelta(days=60)),
        'new': make_student("Fresh One", created_at=now - timedelta(hours=2)),
        'no_plan': make_student("Idle One", created_at=now - timedelta(days=5)),
        'blocked': make_student("Blocked One", created_at=now - timedelta(days=5), is_blocked=True),
        'other_branch': make_student("Roamer", branch=branch_b, created_at=now - timedelta(days=5)),
    }
    make_subscription(students['active'])
    make_subscription(
        students['expired'], start=today - timedelta(days=40), end=today - timedelta(days=11)
    )
    make_subscription(students['blocked'])
    make_subscription(students['other_branch'], branch=branch_b)

    # Home branch is ``branch`` but every subscription is at ``branch_b``
    students['history_elsewhere'] = make_student("Wanderer", created_at=now - timedelta(days=5))
    make_subscription(
        students['history_elsewhere'], branch=branch_b,
        start=today - timedelta(days=40), end=today - timedelta(days=11),
    )
    students['fresh_elsewhere'] = make_student("Newcomer", created_at=now - timedelta(hours=3))
    make_subscription(students['fresh_elsewhere'], branch=branch_b)

    # Registered by another library, subscribed here
    visitor = make_student("Visitor", library=other_library, branch=other_branch,
                           created_at=now - timedelta(days=3))
    make_subscription(visitor)
    students['visitor'] = visitor

    # Another library's student, never subscribed here
    make_student("Stranger", library=other_library, branch=other_branch)
    return students


def test_every_status_filter_matches_derived_status(library, population, branch):
    """Filtering by a status returns exactly the rows whose derived status is that status"""
    now = timezone.now()
    for branch_id in (None, str(branch.pk)):
        rows = all_status_rows(library, StudentFilter(branch_id=branch_id), now)
        for status in STATUSES:
            by_filter = set(
                filtered_students(library, StudentFilter(branch_id=branch_id, status=status), now)
                .values_list('pk', flat=True)
            )
            by_rows = {row.pk for row in rows if row.status == status}
            assert by_filter == by_rows, (branch_id, status)


def test_tenant_visibility(library, population):
    names = {row.name for row in all_status_rows(library, StudentFilter())}
    assert "Visitor" in names
    assert "Stranger" not in names


def test_branch_filter_scopes_students(library, population, branch_b):
    rows = all_status_rows(library, StudentFilter(branch_id=str(branch_b.pk)))
    names = {row.name for row in rows}
    assert "Roamer" in names
    assert "Active One" not in names


def test_counts_follow_filters(library, population):
    counts = count_students_by_status(library)
    assert counts['active'] == 4  # active, other_branch, fresh_elsewhere, visitor
    assert counts['expired'] == 2
    assert counts['new'] == 1
    assert counts['no_plan'] == 1
    assert counts['blocked'] == 1
    assert counts['total'] == 9


def test_search_matches_name_email_and_phone(library, make_student):
    make_student("Meera Iyer", email="meera@example.com", phone="9000000001")
    make_student("Kabir Shah", email="kabir@example.com", phone="9000000002")

    assert [s.name for s in filtered_students(library, StudentFilter(search="meera"))] == ["Meera Iyer"]
    assert [s.name for s in filtered_students(library, StudentFilter(search="kabir@"))] == ["Kabir Shah"]
    assert [s.name for s in filtered_students(library, StudentFilter(search="0000002"))] == ["Kabir Shah"]


def test_pagination(library, make_student):
    for n in range(5):
        make_student(f"Pager {n}")

    page = list_students(library, StudentFilter(page=2, limit=2))
    assert page['total'] == 5
    assert page['pages'] == 3
    assert len(page['students']) == 2


def test_unknown_status_is_rejected():
    with pytest.raises(ValidationFailed):
        StudentFilter(status='sleeping')


def test_history_in_another_branch_reads_as_no_plan_under_branch_filter(library, population, branch):
    """Only out-of-branch history: no_plan (or new) for the branch, never expired"""
    now = timezone.now()
    wanderer = population['history_elsewhere'].pk
    newcomer = population['fresh_elsewhere'].pk

    scoped = {row.pk: row.status for row in all_status_rows(library, StudentFilter(branch_id=str(branch.pk)), now)}
    assert scoped[wanderer] == 'no_plan'
    assert scoped[newcomer] == 'new'

    unscoped = {row.pk: row.status for row in all_status_rows(library, StudentFilter(), now)}
    assert unscoped[wanderer] == 'expired'
    assert unscoped[newcomer] == 'active'

    def matching(status):
        filters = StudentFilter(branch_id=str(branch.pk), status=status)
        return set(filtered_students(library, filters, now).values_list('pk', flat=True))

    assert wanderer in matching('no_plan')
    assert wanderer not in matching('expired')
    assert newcomer in matching('new')
