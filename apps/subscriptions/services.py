# subscriptions/services.py
"""
Business logic services for subscriptions.
Handles the plan catalogue, plan periods, seat/locker occupancy, expiry
and reminders.

Subscription dates are inclusive: a subscription covers every day from
``start_date`` through ``end_date``.
"""

from calendar import monthrange
from datetime import date, timedelta
from smtplib import SMTPException
from django.conf import settings
from django.core.mail import send_mail
from decimal import Decimal, InvalidOperation
from django.db import transaction
from django.db.models import ProtectedError, Q
from django.utils import timezone
import logging

from branches.models import Branch, Seat, Locker
from core.utils import get_library_today, get_setting, format_money
from utils.exceptions import NotFound, ValidationFailed
from utils.utils import get_for_library
from .models import Plan, Subscription

logger = logging.getLogger(__name__)


# =============================================================================
# PERIOD CALCULATION
# =============================================================================

def add_months(start, months):
    """
    Add calendar months, clamping to the last day of the target month.

    Example:
        >>> add_months(date(2025, 1, 31), 1)
        datetime.date(2025, 2, 28)
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, monthrange(year, month)[1])
    return date(year, month, day)


def calculate_end_date(start, plan):
    """
    Last covered day of a ``plan`` period starting on ``start``.

    Example:
        30 DAYS from 2025-01-01   -> 2025-01-30
        1 MONTHS from 2025-01-15  -> 2025-02-14
        1 MONTHS from 2025-01-31  -> 2025-02-27
    """
    if plan.duration_unit == 'DAYS':
        following = start + timedelta(days=plan.duration)
    elif plan.duration_unit == 'WEEKS':
        following = start + timedelta(weeks=plan.duration)
    elif plan.duration_unit == 'MONTHS':
        following = add_months(start, plan.duration)
    else:
        raise ValidationFailed(f"Unknown duration unit: {plan.duration_unit}")
    return following - timedelta(days=1)


def occupying_subscriptions(start, end):
    """Seat/locker holders whose period overlaps ``[start, end]``"""
    return Subscription.objects.filter(
        status__in=Subscription.OCCUPYING_STATUSES,
        start_date__lte=end,
        end_date__gte=start,
    )


# =============================================================================
# PLAN SERVICE
# =============================================================================

PLAN_FIELDS = [
    'name', 'description', 'price', 'duration', 'duration_unit',
    'hours_per_day', 'includes_seat', 'includes_locker', 'is_active',
]


def _parse_price(value):
    try:
        price = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationFailed("Please enter a valid price")
    if not price.is_finite() or price < 0:
        raise ValidationFailed("Please enter a valid price")
    return price


def _parse_duration(value):
    try:
        duration = int(value)
    except (TypeError, ValueError):
        raise ValidationFailed("Please enter a valid duration")
    if duration <= 0:
        raise ValidationFailed("Please enter a valid duration")
    return duration


class PlanService:
    """Owner plan catalogue. Plans feed payment collection and subscriptions."""

    @staticmethod
    def get_owner_plans(library, branch_id=None, active_only=False):
        """
        Plans of ``library``, newest first.

        With ``branch_id`` only plans offered at that branch are returned:
        its own plans and the library-wide ones.
        """
        plans = Plan.objects.for_library(library).select_related('branch')
        if branch_id:
            plans = plans.filter(Q(branch_id=branch_id) | Q(branch__isnull=True))
        if active_only:
            plans = plans.filter(is_active=True)
        return plans.order_by('-created_at')

    @staticmethod
    def _apply(library, plan, data):
        for field in PLAN_FIELDS:
            if field in data:
                setattr(plan, field, data[field])

        if 'price' in data:
            plan.price = _parse_price(data['price'])
        if 'duration' in data:
            plan.duration = _parse_duration(data['duration'])
        if 'branch_id' in data or 'branch' in data:
            branch_id = data.get('branch_id', data.get('branch'))
            if hasattr(branch_id, 'pk'):
                branch_id = branch_id.pk
            # "all" or empty offers the plan at every branch
            if branch_id and branch_id != 'all':
                plan.branch = get_for_library(Branch, library, branch_id, label='Branch')
            else:
                plan.branch = None

        plan.name = (plan.name or '').strip()
        if not plan.name:
            raise ValidationFailed("Plan name is required")
        plan.full_clean()
        plan.save()
        return plan

    @staticmethod
    @transaction.atomic
    def create_plan(library, data):
        if data.get('price') in (None, '') or data.get('duration') in (None, ''):
            raise ValidationFailed("All required fields must be provided")
        plan = PlanService._apply(library, Plan(library=library), data)
        logger.info(f"Plan created: {plan.name} ({plan.pk}) for library {library.pk}")
        return plan

    @staticmethod
    @transaction.atomic
    def update_plan(library, plan_id, data):
        plan = get_for_library(Plan, library, plan_id, label='Plan')
        plan = PlanService._apply(library, plan, data)
        logger.info(f"Plan updated: {plan.name} ({plan.pk})")
        return plan

    @staticmethod
    @transaction.atomic
    def delete_plan(library, plan_id):
        """Delete a plan; refused once subscriptions were sold on it"""
        plan = get_for_library(Plan, library, plan_id, label='Plan')
        name = plan.name
        try:
            plan.delete()
        except ProtectedError:
            raise ValidationFailed(
                f"Cannot delete {name}: it has subscriptions. Deactivate it instead."
            )
        logger.info(f"Plan deleted: {name} ({plan_id})")
        return True


def plan_to_dict(plan):
    return {
        'id': str(plan.pk),
        'name': plan.name,
        'description': plan.description,
        'price': plan.price,
        'duration': plan.duration,
        'duration_unit': plan.duration_unit,
        'duration_display': plan.duration_display,
        'hours_per_day': plan.hours_per_day,
        'includes_seat': plan.includes_seat,
        'includes_locker': plan.includes_locker,
        'branch_id': str(plan.branch_id) if plan.branch_id else None,
        'branch_name': plan.branch.name if plan.branch_id else None,
        'is_active': plan.is_active,
    }


# =============================================================================
# SUBSCRIPTION SERVICE
# =============================================================================

class SubscriptionService:
    """Creation, occupancy and assignment of subscriptions"""

    @staticmethod
    def get_chain_start(student, branch, today=None):
        """
        First free day for a new subscription of ``student`` at ``branch``.

        Follows on from the latest ACTIVE/PENDING subscription still
        running, otherwise today.
        """
        today = today or get_library_today(branch.library)
        latest = (
            Subscription.objects.for_library(branch.library)
            .filter(
                student=student,
                branch=branch,
                status__in=Subscription.OCCUPYING_STATUSES,
                end_date__gte=today,
            )
            .order_by('-end_date')
            .first()
        )
        if latest is not None:
            return latest.end_date + timedelta(days=1)
        return today

    @staticmethod
    def is_seat_available(seat, start, end, exclude=None):
        conflicts = occupying_subscriptions(start, end).filter(seat=seat)
        if exclude is not None:
            conflicts = conflicts.exclude(pk=exclude.pk)
        return not conflicts.exists()

    @staticmethod
    def is_locker_available(locker, start, end, exclude=None):
        conflicts = occupying_subscriptions(start, end).filter(locker=locker)
        if exclude is not None:
            conflicts = conflicts.exclude(pk=exclude.pk)
        return not conflicts.exists()

    @staticmethod
    @transaction.atomic
    def create_subscription(
        library,
        student,
        branch,
        plan,
        seat=None,
        locker=None,
        amount=None,
        start_date=None,
        status='ACTIVE',
    ):
        """
        Create a subscription period for ``student`` at ``branch``.

        Args:
            start_date: explicit start; by default the period is chained
                after the student's running subscription in this branch
            amount: defaults to the plan price
            status: ACTIVE for collected payments, PENDING while a payment
                awaits verification

        Returns:
            Subscription

        Raises:
            ValidationFailed: plan, seat or locker unusable or occupied
        """
        if branch.library_id != library.pk:
            raise NotFound("Branch not found")
        if plan.library_id != library.pk or not plan.is_active:
            raise ValidationFailed("Plan is not available")
        if plan.branch_id and plan.branch_id != branch.pk:
            raise ValidationFailed(f"Plan '{plan.name}' is not offered at {branch.name}")
        if status not in dict(Subscription.STATUS_CHOICES):
            raise ValidationFailed(f"Unknown subscription status: {status}")

        start = start_date or SubscriptionService.get_chain_start(student, branch)
        end = calculate_end_date(start, plan)

        if seat is not None:
            seat = Seat.objects.select_for_update().get(pk=seat.pk)
            if seat.branch_id != branch.pk or not seat.is_active:
                raise ValidationFailed("Seat is not available at this branch")
            if not SubscriptionService.is_seat_available(seat, start, end):
                raise ValidationFailed("Seat is already occupied for the selected dates")

        if locker is not None:
            locker = Locker.objects.select_for_update().get(pk=locker.pk)
            if locker.branch_id != branch.pk or not locker.is_active:
                raise ValidationFailed("Locker is not available at this branch")
            if not SubscriptionService.is_locker_available(locker, start, end):
                raise ValidationFailed("Locker is already occupied for the selected dates")

        subscription = Subscription.objects.create(
            library=library,
            student=student,
            branch=branch,
            plan=plan,
            seat=seat,
            locker=locker,
            start_date=start,
            end_date=end,
            amount=plan.price if amount is None else amount,
            status=status,
        )

        logger.info(
            f"Subscription created: {student.name} -> {plan.name} at {branch.name} "
            f"({start} to {end}, {status})"
        )
        return subscription

    # -------------------------------------------------------------------------
    # SEAT & LOCKER ASSIGNMENT
    # -------------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def assign_seat(library, subscription_id, seat_id):
        """
        Put a subscription on a seat.

        The seat row is locked while availability is checked so two
        assignments of the same seat cannot both pass.

        Returns:
            the updated Subscription, re-read from the database
        """
        subscription = get_for_library(Subscription, library, subscription_id)
        seat = get_for_library(Seat, library, seat_id)
        seat = Seat.objects.select_for_update().get(pk=seat.pk)

        if seat.branch_id != subscription.branch_id:
            raise ValidationFailed("Seat belongs to another branch")
        if not seat.is_active:
            raise ValidationFailed("Seat is inactive")
        if not SubscriptionService.is_seat_available(
            seat, subscription.start_date, subscription.end_date, exclude=subscription
        ):
            raise ValidationFailed("Seat is already occupied for the selected dates")

        subscription.seat = seat
        subscription.save()
        logger.info(f"Seat {seat.number} assigned to subscription {subscription.pk}")

        return Subscription.objects.select_related(
            'student', 'plan', 'branch', 'seat', 'locker'
        ).get(pk=subscription.pk)

    @staticmethod
    @transaction.atomic
    def unassign_seat(library, subscription_id):
        subscription = get_for_library(Subscription, library, subscription_id)
        subscription.seat = None
        subscription.save()
        logger.info(f"Seat released from subscription {subscription.pk}")
        return Subscription.objects.select_related('student', 'plan', 'branch').get(pk=subscription.pk)

    @staticmethod
    @transaction.atomic
    def assign_locker(library, subscription_id, locker_id):
        subscription = get_for_library(Subscription, library, subscription_id)
        locker = get_for_library(Locker, library, locker_id)
        locker = Locker.objects.select_for_update().get(pk=locker.pk)

        if locker.branch_id != subscription.branch_id:
            raise ValidationFailed("Locker belongs to another branch")
        if not locker.is_active:
            raise ValidationFailed("Locker is inactive")
        if not SubscriptionService.is_locker_available(
            locker, subscription.start_date, subscription.end_date, exclude=subscription
        ):
            raise ValidationFailed("Locker is already occupied for the selected dates")

        subscription.locker = locker
        subscription.save()
        logger.info(f"Locker {locker.number} assigned to subscription {subscription.pk}")

        return Subscription.objects.select_related(
            'student', 'plan', 'branch', 'seat', 'locker'
        ).get(pk=subscription.pk)

    @staticmethod
    @transaction.atomic
    def unassign_locker(library, subscription_id):
        subscription = get_for_library(Subscription, library, subscription_id)
        subscription.locker = None
        subscription.save()
        logger.info(f"Locker released from subscription {subscription.pk}")
        return Subscription.objects.select_related('student', 'plan', 'branch').get(pk=subscription.pk)

    @staticmethod
    def get_eligible_subscriptions(library, branch_id, today=None):
        """Running ACTIVE subscriptions at a branch that have no seat yet"""
        today = today or get_library_today(library)
        return list(
            Subscription.objects.for_library(library)
            .filter(branch_id=branch_id, status='ACTIVE', end_date__gte=today, seat__isnull=True)
            .select_related('student', 'plan')
            .order_by('student__name')
        )


# =============================================================================
# EXPIRY & REMINDERS
# =============================================================================

class SubscriptionExpiryService:
    """Expiry sweep and reminder mail, run from management commands"""

    @staticmethod
    @transaction.atomic
    def expire_lapsed_subscriptions(today=None, library=None):
        """
        Flip ACTIVE/PENDING subscriptions that ended before ``today`` to EXPIRED.

        Returns:
            int: number of subscriptions expired
        """
        today = today or timezone.localdate()
        lapsed = Subscription.objects.filter(
            status__in=Subscription.OCCUPYING_STATUSES, end_date__lt=today
        )
        if library is not None:
            lapsed = lapsed.for_library(library)

        count = 0
        # Saved one by one so each change reaches the audit log
        for subscription in lapsed.select_related('student', 'plan'):
            subscription.status = 'EXPIRED'
            subscription.set_change_reason('Subscription period ended')
            subscription.save()
            count += 1

        logger.info(f"Expired {count} lapsed subscription(s) before {today}")
        return count

    @staticmethod
    def get_expiring_subscriptions(library, days, branch_id=None, today=None):
        """ACTIVE subscriptions ending within the next ``days`` days, soonest first"""
        today = today or get_library_today(library)
        queryset = (
            Subscription.objects.for_library(library)
            .filter(status='ACTIVE', end_date__gte=today, end_date__lte=today + timedelta(days=days))
            .select_related('student', 'plan', 'branch', 'seat')
            .order_by('end_date')
        )
        if branch_id:
            queryset = queryset.filter(branch_id=branch_id)
        return list(queryset)

    @staticmethod
    def get_recently_expired_subscriptions(library, days, branch_id=None, today=None):
        """Subscriptions that ended within the last ``days`` days with no renewal in that branch"""
        today = today or get_library_today(library)
        renewed = Subscription.objects.for_library(library).filter(
            status='ACTIVE', end_date__gte=today
        )
        queryset = (
            Subscription.objects.for_library(library)
            .filter(end_date__lt=today, end_date__gte=today - timedelta(days=days))
            .exclude(status='CANCELLED')
            .select_related('student', 'plan', 'branch')
            .order_by('-end_date')
        )
        if branch_id:
            queryset = queryset.filter(branch_id=branch_id)
        renewed_pairs = set(renewed.values_list('student_id', 'branch_id'))
        return [sub for sub in queryset if (sub.student_id, sub.branch_id) not in renewed_pairs]

    @staticmethod
    def send_expiry_reminders(days=None, today=None):
        """
        Mail students whose subscription ends exactly ``days`` days from today.

        Returns:
            dict: {'total': n, 'sent': n, 'errors': n, 'skipped': n}
        """
        days = get_setting('EXPIRY_REMINDER_DAYS') if days is None else days
        today = today or timezone.localdate()
        target = today + timedelta(days=days)

        expiring = (
            Subscription.objects.filter(status='ACTIVE', end_date=target, reminder_sent_at__isnull=True)
            .select_related('student', 'plan', 'branch', 'library')
        )

        counts = {'total': 0, 'sent': 0, 'errors': 0, 'skipped': 0}
        for subscription in expiring:
            counts['total'] += 1
            student = subscription.student
            if not student.email:
                counts['skipped'] += 1
                continue

            try:
                send_mail(
                    subject=f"Your {subscription.plan.name} plan expires in {days} day(s)",
                    message=(
                        f"Hi {student.name},\n\n"
                        f"Your {subscription.plan.name} plan at {subscription.branch.name} "
                        f"ends on {subscription.end_date:%d %b %Y}. Renew for "
                        f"{format_money(subscription.plan.price, subscription.library)} "
                        f"to keep your seat.\n\n{subscription.library.display_name}"
                    ),
                    from_email=settings.DEFAULT_FROM_EMAIL,
                    recipient_list=[student.email],
                )
            except (SMTPException, OSError) as e:
                counts['errors'] += 1
                logger.error(f"Failed to send expiry reminder to {student.email}: {e}")
                continue

            Subscription.objects.filter(pk=subscription.pk).update(reminder_sent_at=timezone.now())
            counts['sent'] += 1

        logger.info(
            f"Expiry reminders for {target}: {counts['sent']} sent, "
            f"{counts['errors']} errors, {counts['skipped']} skipped"
        )
        return counts


def subscription_to_dict(subscription, today=None):
    """JSON shape of a subscription"""
    data = {
        'id': str(subscription.pk),
        'student_id': str(subscription.student_id),
        'student_name': subscription.student.name,
        'branch_id': str(subscription.branch_id),
        'branch_name': subscription.branch.name,
        'plan_name': subscription.plan.name,
        'seat_number': subscription.seat.display_number if subscription.seat_id else None,
        'locker_number': subscription.locker.number if subscription.locker_id else None,
        'status': subscription.status,
        'start_date': subscription.start_date,
        'end_date': subscription.end_date,
        'amount': subscription.amount,
    }
    if today is not None:
        data['days_remaining'] = subscription.days_remaining(today)
    return data
