# students/filters.py

"""
Student list filtering.

``compile_student_filter`` turns the list intents (search, branch,
status) into one Q built from EXISTS sub-queries over subscriptions, so
counts and pages come from the same predicate as the rows. The status
rules mirror ``students.status.derive_student_status``.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from django.db.models import Exists, OuterRef, Prefetch, Q
from django.utils import timezone

from core.utils import get_setting
from utils.exceptions import ValidationFailed
from utils.utils import parse_filters, parse_int
from students.models import Student
from students.status import (
    ACTIVE, EXPIRED, NEW, NO_PLAN, BLOCKED, STATUSES,
    ACTIVE_SUBSCRIPTION_STATUS, build_status_row, new_student_window, reference_date,
)
from subscriptions.models import Subscription

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass
class StudentFilter:
    search: Optional[str] = None
    branch_id: Optional[str] = None
    status: Optional[str] = None
    page: int = 1
    limit: int = 10

    def __post_init__(self):
        if self.status and self.status not in STATUSES:
            raise ValidationFailed(f"Unknown status filter: {self.status}")
        self.page = max(int(self.page or 1), 1)
        self.limit = min(max(int(self.limit or 1), 1), MAX_PAGE_SIZE)

    @classmethod
    def from_request(cls, request):
        filters = parse_filters(request, ['search', 'branch', 'status'])
        return cls(
            search=filters['search'],
            branch_id=filters['branch'],
            status=filters['status'],
            page=parse_int(request.GET.get('page'), 1),
            limit=parse_int(request.GET.get('limit'), get_setting('DEFAULT_PAGE_SIZE')),
        )

    @property
    def offset(self):
        return (self.page - 1) * self.limit


def compile_student_filter(library, filters, now=None):
    """
    Build the student predicate for ``library``.

    Args:
        library: acting tenant
        filters: StudentFilter
        now: aware datetime used for the new-student window and end dates

    Returns:
        Q
    """
    now = now or timezone.now()
    today = reference_date(now, library)
    branch_id = filters.branch_id

    tenant_subscriptions = Subscription.objects.filter(student=OuterRef('pk'), library=library)
    scoped_subscriptions = tenant_subscriptions
    if branch_id:
        scoped_subscriptions = tenant_subscriptions.filter(branch_id=branch_id)
    active_subscriptions = scoped_subscriptions.filter(
        status=ACTIVE_SUBSCRIPTION_STATUS, end_date__gte=today
    )

    has_scoped = Q(Exists(scoped_subscriptions))
    has_active = Q(Exists(active_subscriptions))
    not_blocked = Q(is_blocked=False)
    cutoff = now - new_student_window()

    # Tenant membership: registered here, or subscribed here
    predicate = Q(library=library) | Q(Exists(tenant_subscriptions))

    if branch_id and filters.status != BLOCKED:
        predicate &= Q(branch_id=branch_id) | has_scoped

    if filters.status == ACTIVE:
        predicate &= has_active & not_blocked
    elif filters.status == EXPIRED:
        predicate &= has_scoped & ~has_active & not_blocked
    elif filters.status == NEW:
        predicate &= not_blocked & ~has_scoped & Q(created_at__gt=cutoff)
    elif filters.status == NO_PLAN:
        predicate &= not_blocked & ~has_scoped & Q(created_at__lte=cutoff)
    elif filters.status == BLOCKED:
        predicate &= Q(is_blocked=True)

    if filters.search:
        term = filters.search.strip()
        predicate &= (
            Q(name__icontains=term)
            | Q(email__icontains=term)
            | Q(phone__icontains=term)
        )

    return predicate


def filtered_students(library, filters, now=None):
    return Student.objects.filter(
        compile_student_filter(library, filters, now)
    ).order_by('-created_at')


def with_tenant_subscriptions(queryset, library):
    """Prefetch the library's subscriptions, newest first, as ``tenant_subscriptions``"""
    return queryset.select_related('branch').prefetch_related(
        Prefetch(
            'subscriptions',
            queryset=Subscription.objects.filter(library=library)
            .select_related('plan', 'branch', 'seat', 'locker')
            .order_by('-start_date'),
            to_attr='tenant_subscriptions',
        )
    )


def list_students(library, filters, now=None):
    """
    One page of students with their derived status.

    Returns:
        {'students': [...], 'total': n, 'pages': ceil(n / limit)}
    """
    now = now or timezone.now()
    today = reference_date(now, library)

    queryset = filtered_students(library, filters, now)
    total = queryset.count()
    pages = math.ceil(total / filters.limit) if total else 0

    page_rows = list(
        with_tenant_subscriptions(queryset, library)[filters.offset:filters.offset + filters.limit]
    )
    for student in page_rows:
        build_status_row(student, student.tenant_subscriptions, filters.branch_id, now, today)

    logger.debug(
        f"Listed students for library {library.pk}: status={filters.status} "
        f"branch={filters.branch_id} page={filters.page} total={total}"
    )
    return {'students': page_rows, 'total': total, 'pages': pages}


def all_status_rows(library, filters, now=None):
    """Every matching student with its derived status, for exports"""
    now = now or timezone.now()
    today = reference_date(now, library)
    rows = list(with_tenant_subscriptions(filtered_students(library, filters, now), library))
    for student in rows:
        build_status_row(student, student.tenant_subscriptions, filters.branch_id, now, today)
    return rows


def count_students_by_status(library, branch_id=None, now=None):
    """Student counts per derived status, through the same predicates as the list"""
    now = now or timezone.now()
    counts = {}
    for status in STATUSES:
        filters = StudentFilter(branch_id=branch_id, status=status)
        counts[status] = filtered_students(library, filters, now).count()
    counts['total'] = filtered_students(library, StudentFilter(branch_id=branch_id), now).count()
    return counts


def student_row_to_dict(student):
    """JSON shape of a list row"""
    return {
        'id': str(student.pk),
        'name': student.name,
        'email': student.email,
        'phone': student.phone,
        'is_blocked': student.is_blocked,
        'govt_id_status': student.govt_id_status,
        'created_at': student.created_at.isoformat(),
        'status': student.status,
        'current_plan': student.current_plan,
        'current_branch': student.current_branch,
        'seat_number': student.seat_number,
    }
