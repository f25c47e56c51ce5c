"""
Shared fixtures: two libraries, branches, an owner and a staff member,
plans and a student factory.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth.models import User

from accounts.models import Library, UserProfile
from branches.models import Branch, Seat, Locker
from core.utils import get_library_today
from students.models import Student
from subscriptions.models import Plan, Subscription


@pytest.fixture
def library(db):
    return Library.objects.create(name="Quiet Corner", slug="quiet-corner", timezone='Asia/Kolkata')


@pytest.fixture
def other_library(db):
    return Library.objects.create(name="Study Hub", slug="study-hub", timezone='Asia/Kolkata')


@pytest.fixture
def today(library):
    return get_library_today(library)


@pytest.fixture
def branch(library):
    return Branch.objects.create(library=library, name="Main Branch", city="Pune")


@pytest.fixture
def branch_b(library):
    return Branch.objects.create(library=library, name="Second Branch", city="Pune")


@pytest.fixture
def other_branch(other_library):
    return Branch.objects.create(library=other_library, name="Elsewhere")


def _profile(library, username, role, branch=None):
    user = User.objects.create_user(
        username=username, email=f"{username}@example.com", password="secret-pass-123",
        first_name=username.title(),
    )
    return UserProfile.objects.create(user=user, library=library, role=role, branch=branch)


@pytest.fixture
def owner(library):
    return _profile(library, 'owner', 'OWNER')


@pytest.fixture
def staff(library, branch):
    return _profile(library, 'staffer', 'STAFF', branch)


@pytest.fixture
def staff_b(library, branch_b):
    return _profile(library, 'staffer2', 'STAFF', branch_b)


@pytest.fixture
def other_owner(other_library):
    return _profile(other_library, 'rival', 'OWNER')


@pytest.fixture
def plan(library):
    return Plan.objects.create(
        library=library, name="Monthly", price=Decimal('1000.00'), duration=1, duration_unit='MONTHS'
    )


@pytest.fixture
def day_plan(library):
    return Plan.objects.create(
        library=library, name="30 Days", price=Decimal('900.00'), duration=30, duration_unit='DAYS'
    )


@pytest.fixture
def seat(branch):
    return Seat.objects.create(library=branch.library, branch=branch, number='01')


@pytest.fixture
def locker(branch):
    return Locker.objects.create(library=branch.library, branch=branch, number='1')


@pytest.fixture
def make_student(library, branch):
    counter = {'n': 0}

    def make(name=None, library=library, branch=branch, **kwargs):
        counter['n'] += 1
        n = counter['n']
        kwargs.setdefault('phone', f"98765{n:05d}")
        kwargs.setdefault('email', f"student{n}@example.com")
        return Student.objects.create(
            library=library, branch=branch, name=name or f"Student {n}", **kwargs
        )

    return make


@pytest.fixture
def student(make_student):
    return make_student("Asha Rao")


@pytest.fixture
def make_subscription(library, branch, plan, today):
    def make(student, start=None, end=None, status='ACTIVE', branch=branch, plan=plan, **kwargs):
        start = start or today - timedelta(days=5)
        end = end or start + timedelta(days=29)
        return Subscription.objects.create(
            library=branch.library, student=student, branch=branch, plan=plan,
            start_date=start, end_date=end, status=status, amount=plan.price, **kwargs
        )

    return make
