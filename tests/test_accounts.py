"""
Staff accounts and library settings.
"""

import pytest
from django.contrib.auth import authenticate
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.utils import timezone

from accounts.models import Library, UserProfile, get_currency_choices
from accounts.services import StaffService
from fees.models import Payment
from utils.exceptions import NotFound, ValidationFailed


def staff_data(branch, **overrides):
    data = {
        'first_name': "Ravi",
        'last_name': "Kumar",
        'email': "Ravi@Example.com",
        'phone': "9811122233",
        'branch_id': str(branch.pk),
        'password': "desk-shift-1",
    }
    data.update(overrides)
    return data


def test_create_staff(library, branch):
    profile = StaffService.create_staff(library, staff_data(branch))

    assert profile.role == 'STAFF'
    assert profile.library == library
    assert profile.branch == branch
    assert profile.user.email == "ravi@example.com"
    assert profile.user.username == "ravi@example.com"
    assert profile.full_name == "Ravi Kumar"
    assert authenticate(email="ravi@example.com", password="desk-shift-1") == profile.user


@pytest.mark.parametrize('overrides, message', [
    ({'first_name': ''}, "First name"),
    ({'email': 'not-an-email'}, "email"),
    ({'phone': '12345'}, "10-digit"),
    ({'password': 'short'}, "Password"),
    ({'branch_id': ''}, "Branch"),
])
def test_create_staff_rejects_bad_input(library, branch, overrides, message):
    with pytest.raises(ValidationFailed, match=message):
        StaffService.create_staff(library, staff_data(branch, **overrides))
    assert not UserProfile.objects.exists()


def test_staff_email_must_be_unused(library, branch, staff):
    with pytest.raises(ValidationFailed, match="Email"):
        StaffService.create_staff(library, staff_data(branch, email=staff.user.email))


def test_staff_branch_of_other_library(library, other_branch):
    with pytest.raises(NotFound):
        StaffService.create_staff(library, staff_data(other_branch))


def test_update_staff_moves_branch_and_deactivates(library, staff, branch_b):
    profile = StaffService.update_staff(library, staff.pk, {'branch_id': str(branch_b.pk), 'is_active': False})

    assert profile.branch == branch_b
    assert not profile.is_active
    profile.user.refresh_from_db()
    assert not profile.user.is_active


def test_update_staff_password_is_optional(library, staff):
    StaffService.update_staff(library, staff.pk, {'first_name': "Sunil", 'password': ''})
    staff.user.refresh_from_db()
    assert staff.user.first_name == "Sunil"
    assert staff.user.check_password("secret-pass-123")

    StaffService.update_staff(library, staff.pk, {'password': 'brand-new-pass'})
    staff.user.refresh_from_db()
    assert staff.user.check_password("brand-new-pass")


def test_staff_lookup_is_tenant_and_role_scoped(library, other_library, staff, owner):
    with pytest.raises(NotFound):
        StaffService.update_staff(other_library, staff.pk, {'first_name': "X"})
    with pytest.raises(NotFound):
        StaffService.delete_staff(library, owner.pk)


def test_delete_staff_without_history(library, staff):
    user_id = staff.user_id
    assert StaffService.delete_staff(library, staff.pk) is True
    assert not UserProfile.objects.filter(pk=staff.pk).exists()
    assert not User.objects.filter(pk=user_id).exists()


def test_delete_staff_with_ledger_history_is_refused(library, branch, staff, student):
    Payment.objects.create(
        library=library, student=student, branch=branch, amount=100, method='CASH',
        status='COMPLETED', payment_type='OTHER', payment_date=timezone.now(), collected_by=staff,
    )
    with pytest.raises(ValidationFailed, match="Deactivate"):
        StaffService.delete_staff(library, staff.pk)
    assert UserProfile.objects.filter(pk=staff.pk).exists()


def test_get_all_staff(library, staff, staff_b, owner, branch):
    assert set(StaffService.get_all_staff(library)) == {staff, staff_b}
    assert list(StaffService.get_all_staff(library, branch_id=branch.pk)) == [staff]


def test_currency_choices_are_iso_codes():
    codes = dict(get_currency_choices())
    assert codes['INR'] == "Indian Rupee (INR)"
    assert 'USD' in codes


def test_library_rejects_unknown_currency(db):
    library = Library(name="Reading Room", slug="reading-room", currency_code='XYZ')
    with pytest.raises(ValidationError) as excinfo:
        library.full_clean()
    assert 'currency_code' in excinfo.value.message_dict
