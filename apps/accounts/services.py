# accounts/services.py
"""
Business logic services for library staff accounts.

A staff member is a Django ``User`` with a STAFF ``UserProfile`` pinned to
one home branch. Staff who collected cash keep their ledger: they can be
deactivated but not deleted.
"""

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction
import re
import logging

from branches.models import Branch
from utils.exceptions import NotFound, ValidationFailed
from utils.forms import PHONE_PATTERN
from utils.utils import get_for_library
from .models import UserProfile

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def get_staff_profile(library, staff_id):
    """STAFF profile of ``library``; owners and other tenants are reported as missing"""
    if library is None or not staff_id:
        raise NotFound("Staff member not found")
    try:
        return (
            UserProfile.objects.select_related('user', 'branch')
            .get(pk=staff_id, library=library, role='STAFF')
        )
    except (UserProfile.DoesNotExist, ValidationError, ValueError):
        raise NotFound("Staff member not found")


def _clean_email(value):
    email = (value or '').strip().lower()
    if not email:
        raise ValidationFailed("Email is required")
    try:
        validate_email(email)
    except ValidationError:
        raise ValidationFailed("Enter a valid email address")
    return email


def _clean_phone(value):
    phone = (value or '').strip()
    if not re.match(PHONE_PATTERN, phone):
        raise ValidationFailed("Please enter a valid 10-digit phone number")
    return phone


def _clean_password(value):
    if not value or len(value) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return value


def _check_login_taken(email, username, exclude_user=None):
    users = User.objects.all()
    if exclude_user is not None:
        users = users.exclude(pk=exclude_user.pk)
    if users.filter(email__iexact=email).exists():
        raise ValidationFailed("Email already exists")
    if users.filter(username__iexact=username).exists():
        raise ValidationFailed("Username already exists")


def _branch_for(library, data):
    branch_id = data.get('branch_id') or data.get('branch')
    if hasattr(branch_id, 'pk'):
        branch_id = branch_id.pk
    if not branch_id:
        raise ValidationFailed("Branch is required")
    return get_for_library(Branch, library, branch_id, label='Branch')


# =============================================================================
# STAFF SERVICE
# =============================================================================

class StaffService:

    @staticmethod
    def get_all_staff(library, branch_id=None):
        staff = (
            UserProfile.objects.filter(library=library, role='STAFF')
            .select_related('user', 'branch')
        )
        if branch_id:
            staff = staff.filter(branch_id=branch_id)
        return staff.order_by('-created_at')

    @staticmethod
    @transaction.atomic
    def create_staff(library, data):
        """
        Create a staff login for ``library``.

        Args:
            data: first_name, last_name, email, phone, branch_id, password
                and an optional username (defaults to the email)

        Returns:
            UserProfile
        """
        first_name = (data.get('first_name') or '').strip()
        if not first_name:
            raise ValidationFailed("First name is required")

        email = _clean_email(data.get('email'))
        username = (data.get('username') or '').strip() or email
        phone = _clean_phone(data.get('phone'))
        password = _clean_password(data.get('password'))
        branch = _branch_for(library, data)
        _check_login_taken(email, username)

        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            first_name=first_name,
            last_name=(data.get('last_name') or '').strip(),
        )
        profile = UserProfile(user=user, library=library, role='STAFF', branch=branch, phone=phone)
        profile.full_clean()
        profile.save()

        logger.info(f"Staff created: {profile.full_name} ({profile.pk}) at branch {branch.pk}")
        return profile

    @staticmethod
    @transaction.atomic
    def update_staff(library, staff_id, data):
        """Change profile fields; a blank password keeps the current one"""
        profile = get_staff_profile(library, staff_id)
        user = profile.user

        if 'first_name' in data:
            first_name = (data.get('first_name') or '').strip()
            if not first_name:
                raise ValidationFailed("First name is required")
            user.first_name = first_name
        if 'last_name' in data:
            user.last_name = (data.get('last_name') or '').strip()
        if 'email' in data:
            user.email = _clean_email(data.get('email'))
        if data.get('username'):
            user.username = data['username'].strip()
        _check_login_taken(user.email, user.username, exclude_user=user)

        if 'phone' in data:
            profile.phone = _clean_phone(data.get('phone'))
        if data.get('branch_id') or data.get('branch'):
            profile.branch = _branch_for(library, data)
        if data.get('password'):
            user.set_password(_clean_password(data['password']))
        if 'is_active' in data and data['is_active'] is not None:
            profile.is_active = bool(data['is_active'])
            user.is_active = profile.is_active

        user.save()
        profile.full_clean()
        profile.save()
        logger.info(f"Staff updated: {profile.full_name} ({profile.pk})")
        return profile

    @staticmethod
    @transaction.atomic
    def delete_staff(library, staff_id):
        """Delete a staff login; refused once they hold cash ledger history"""
        profile = get_staff_profile(library, staff_id)
        name = profile.full_name

        if profile.collected_payments.exists() or profile.handovers.exists():
            raise ValidationFailed(
                f"Cannot delete {name}: they have cash ledger history. Deactivate them instead."
            )

        user = profile.user
        profile.delete()
        user.delete()
        logger.info(f"Staff deleted: {name} ({staff_id})")
        return True


def staff_to_dict(profile):
    return {
        'id': str(profile.pk),
        'name': profile.full_name,
        'username': profile.user.username,
        'email': profile.user.email,
        'phone': profile.phone,
        'branch_id': str(profile.branch_id) if profile.branch_id else None,
        'branch_name': profile.branch.name if profile.branch_id else None,
        'is_active': profile.is_active,
        'created_at': profile.created_at,
    }
