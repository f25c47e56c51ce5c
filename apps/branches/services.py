# branches/services.py
"""
Business logic services for branches, seats and lockers.
"""

from django.db import transaction
from django.db.models import Count, Q, ProtectedError
import logging

from core.utils import get_library_today
from subscriptions.models import Subscription
from utils.exceptions import ValidationFailed
from utils.utils import get_for_library
from .models import Branch, Seat, Locker, generate_qr_token

logger = logging.getLogger(__name__)

BRANCH_FIELDS = [
    'name', 'description', 'manager_name', 'address', 'area', 'city', 'state',
    'pincode', 'contact_phone', 'contact_email', 'opening_time', 'closing_time',
    'is_24_hours', 'amenities', 'is_active',
]


def running_subscriptions(library, today=None):
    """Subscriptions holding a seat/locker/branch on ``today``"""
    today = today or get_library_today(library)
    return Subscription.objects.for_library(library).filter(
        status__in=Subscription.OCCUPYING_STATUSES,
        start_date__lte=today,
        end_date__gte=today,
    )


def holding_subscriptions(library, today=None):
    """Subscriptions that still hold their seat/locker, including future-dated ones"""
    today = today or get_library_today(library)
    return Subscription.objects.for_library(library).filter(
        status__in=Subscription.OCCUPYING_STATUSES,
        end_date__gte=today,
    )


# =============================================================================
# BRANCH SERVICE
# =============================================================================

class BranchService:

    @staticmethod
    @transaction.atomic
    def create_branch(library, data, seat_count=0):
        """
        Create a branch from cleaned form data.

        ``seat_count`` seats numbered 01..N are generated with it.
        """
        branch = Branch(library=library)
        for field in BRANCH_FIELDS:
            if field in data:
                setattr(branch, field, data[field])
        branch.full_clean()
        branch.save()

        if seat_count:
            SeatService.bulk_create_seats(branch, seat_count)

        logger.info(f"Branch created: {branch.name} ({branch.pk}) for library {library.pk}")
        return branch

    @staticmethod
    @transaction.atomic
    def update_branch(library, branch_id, data):
        branch = get_for_library(Branch, library, branch_id)
        for field in BRANCH_FIELDS:
            if field in data:
                setattr(branch, field, data[field])
        branch.full_clean()
        branch.save()
        logger.info(f"Branch updated: {branch.name} ({branch.pk})")
        return branch

    @staticmethod
    @transaction.atomic
    def delete_branch(library, branch_id):
        """Delete a branch; refused while it has running subscriptions"""
        branch = get_for_library(Branch, library, branch_id)

        active = holding_subscriptions(library).filter(branch=branch).count()
        if active:
            raise ValidationFailed(
                f"Cannot delete {branch.name}: {active} active subscription(s)"
            )

        name = branch.name
        try:
            branch.delete()
        except ProtectedError:
            raise ValidationFailed(f"Cannot delete {name}: it has payment records")

        logger.info(f"Branch deleted: {name} ({branch_id})")
        return True

    @staticmethod
    @transaction.atomic
    def regenerate_qr_code(library, branch_id):
        """Rotate the check-in token; posters with the old code stop working"""
        branch = get_for_library(Branch, library, branch_id)
        branch.qr_code = generate_qr_token()
        branch.set_change_reason('QR code regenerated')
        branch.save()
        logger.info(f"QR code regenerated for branch {branch.pk}")
        return branch

    @staticmethod
    def get_branch_overview(library, today=None):
        """Branches with seat totals and today's occupancy"""
        today = today or get_library_today(library)
        occupied = running_subscriptions(library, today).filter(seat__isnull=False)

        branches = (
            Branch.objects.for_library(library)
            .annotate(
                seat_total=Count('seats', filter=Q(seats__is_active=True), distinct=True),
                staff_total=Count('staff_profiles', filter=Q(staff_profiles__is_active=True), distinct=True),
            )
            .order_by('name')
        )
        occupied_by_branch = {}
        for branch_id in occupied.values_list('branch_id', flat=True):
            occupied_by_branch[branch_id] = occupied_by_branch.get(branch_id, 0) + 1

        overview = []
        for branch in branches:
            branch.seats_occupied = occupied_by_branch.get(branch.pk, 0)
            overview.append(branch)
        return overview


# =============================================================================
# SEAT SERVICE
# =============================================================================

class SeatService:

    @staticmethod
    def create_seat(branch, number, section=''):
        number = str(number).strip()
        if not number:
            raise ValidationFailed("Seat number is required")
        if Seat.objects.filter(branch=branch, number=number).exists():
            raise ValidationFailed(f"Seat {number} already exists in {branch.name}")

        seat = Seat.objects.create(
            library=branch.library, branch=branch, number=number, section=section or 'General'
        )
        logger.info(f"Seat {number} created in branch {branch.pk}")
        return seat

    @staticmethod
    @transaction.atomic
    def bulk_create_seats(branch, count, start=1, section='', prefix=''):
        """
        Create ``count`` seats numbered ``{prefix}{n:02d}`` from ``start``.

        Existing numbers are skipped.

        Returns:
            dict: {'created': [...numbers], 'skipped': [...numbers]}
        """
        if count < 1:
            raise ValidationFailed("Count must be at least 1")

        wanted = [f"{prefix}{i:02d}" for i in range(start, start + count)]
        existing = set(
            Seat.objects.filter(branch=branch, number__in=wanted).values_list('number', flat=True)
        )

        created = []
        skipped = []
        for number in wanted:
            if number in existing:
                skipped.append(number)
                continue
            Seat.objects.create(
                library=branch.library, branch=branch, number=number, section=section or 'General'
            )
            created.append(number)

        if not created:
            raise ValidationFailed("All seats in this range already exist")

        logger.info(
            f"Bulk created {len(created)} seat(s) in branch {branch.pk}, skipped {len(skipped)}"
        )
        return {'created': created, 'skipped': skipped}

    @staticmethod
    @transaction.atomic
    def delete_seat(library, seat_id):
        seat = get_for_library(Seat, library, seat_id)
        if holding_subscriptions(library).filter(seat=seat).exists():
            raise ValidationFailed(f"Seat {seat.display_number} is occupied")
        seat.delete()
        logger.info(f"Seat {seat_id} deleted")
        return True

    @staticmethod
    def get_seat_history(library, seat_id, limit=10):
        seat = get_for_library(Seat, library, seat_id)
        return list(
            seat.subscriptions.select_related('student', 'plan').order_by('-end_date')[:limit]
        )

    @staticmethod
    def get_seat_grid(branch, on_date=None):
        """
        Every seat of ``branch`` with its occupant on ``on_date``.

        Returns:
            list of dicts: id, number, section, is_active, is_occupied,
            subscription_id, student_name, end_date
        """
        on_date = on_date or get_library_today(branch.library)
        holders = {
            sub.seat_id: sub
            for sub in running_subscriptions(branch.library, on_date)
            .filter(branch=branch, seat__isnull=False)
            .select_related('student')
            .order_by('end_date')
        }
        return [
            _grid_cell(seat, holders.get(seat.pk), number=seat.display_number, section=seat.section)
            for seat in branch.seats.all().order_by('number')
        ]


# =============================================================================
# LOCKER SERVICE
# =============================================================================

class LockerService:

    @staticmethod
    def create_locker(branch, number, notes=''):
        number = str(number).strip()
        if not number:
            raise ValidationFailed("Locker number is required")
        if Locker.objects.filter(branch=branch, number=number).exists():
            raise ValidationFailed(f"Locker {number} already exists in {branch.name}")

        locker = Locker.objects.create(
            library=branch.library, branch=branch, number=number, notes=notes or ''
        )
        logger.info(f"Locker {number} created in branch {branch.pk}")
        return locker

    @staticmethod
    @transaction.atomic
    def delete_locker(library, locker_id):
        locker = get_for_library(Locker, library, locker_id)
        if holding_subscriptions(library).filter(locker=locker).exists():
            raise ValidationFailed(f"Locker {locker.number} is occupied")
        locker.delete()
        logger.info(f"Locker {locker_id} deleted")
        return True

    @staticmethod
    def get_locker_grid(branch, on_date=None):
        on_date = on_date or get_library_today(branch.library)
        holders = {
            sub.locker_id: sub
            for sub in running_subscriptions(branch.library, on_date)
            .filter(branch=branch, locker__isnull=False)
            .select_related('student')
            .order_by('end_date')
        }
        return [
            _grid_cell(locker, holders.get(locker.pk), number=locker.number, notes=locker.notes)
            for locker in branch.lockers.all().order_by('number')
        ]


def _grid_cell(unit, subscription, **extra):
    cell = {
        'id': str(unit.pk),
        'is_active': unit.is_active,
        'is_occupied': subscription is not None,
        'subscription_id': str(subscription.pk) if subscription else None,
        'student_name': subscription.student.name if subscription else None,
        'end_date': subscription.end_date if subscription else None,
    }
    cell.update(extra)
    return cell
