# fees/services.py

"""
Core Payment Operations

Handles payment collection by staff, owner-recorded payments, payment
verification and the finance figures shown on the dashboard.

Invoice numbers are assigned by the pre_save signal in fees/signals.py.
For the invoice PDF, see fees/invoices.py.
"""

from decimal import Decimal, InvalidOperation
from datetime import datetime, time, timedelta
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
import logging

from branches.models import Branch, Seat, Locker
from core.utils import (
    get_library_timezone, get_library_today, get_month_bounds, localize_datetime,
)
from students.services import get_student_for_library
from subscriptions.models import Plan, Subscription
from subscriptions.services import SubscriptionService
from utils.exceptions import InvalidTransition, NotFound, Unauthorized, ValidationFailed
from utils.utils import get_for_library
from .models import AdditionalFee, Payment

logger = logging.getLogger(__name__)

PENDING_STATUSES = ['PENDING', 'PENDING_VERIFICATION']


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def parse_amount(value, label='Amount', allow_zero=False):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationFailed(f"Enter a valid {label.lower()}")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationFailed(f"{label} must be greater than zero")
    return amount


def _check_choice(value, choices, label):
    if value not in dict(choices):
        raise ValidationFailed(f"Unknown {label}: {value}")


def _student_in_branch(library, student, branch):
    if student.branch_id == branch.pk:
        return True
    return Subscription.objects.for_library(library).filter(student=student, branch=branch).exists()


# =============================================================================
# PAYMENT SERVICE
# =============================================================================

class PaymentService:
    """
    Payment recording and verification.

    ``SUBSCRIPTION`` payments create the subscription period they pay
    for; ``ADDITIONAL_FEE`` payments reference the fee they settle.
    """

    @staticmethod
    def _resolve_target(library, student, branch, payment_type, amount, plan_id, fee_id,
                        seat_id, locker_id, subscription_status):
        """Subscription or additional fee a new payment is for"""
        subscription = None
        fee = None

        if payment_type == 'SUBSCRIPTION':
            if not plan_id:
                raise ValidationFailed("Select a plan for a subscription payment")
            plan = get_for_library(Plan, library, plan_id, label='Plan')
            seat = get_for_library(Seat, library, seat_id, label='Seat') if seat_id else None
            locker = get_for_library(Locker, library, locker_id, label='Locker') if locker_id else None
            subscription = SubscriptionService.create_subscription(
                library, student, branch, plan,
                seat=seat, locker=locker, amount=amount, status=subscription_status,
            )
        elif payment_type == 'ADDITIONAL_FEE':
            if not fee_id:
                raise ValidationFailed("Select the fee being paid")
            fee = get_for_library(AdditionalFee, library, fee_id, label='Fee')
            if not fee.is_active or (fee.branch_id and fee.branch_id != branch.pk):
                raise ValidationFailed(f"Fee '{fee.name}' is not charged at {branch.name}")

        return subscription, fee

    @staticmethod
    @transaction.atomic
    def collect_payment(
        staff,
        student_id,
        amount,
        method,
        payment_type,
        plan_id=None,
        fee_id=None,
        seat_id=None,
        locker_id=None,
        discount=0,
        remarks='',
    ):
        """
        Record money a staff member collected at their branch.

        The payment is COMPLETED at once and the money stays in the staff
        member's custody (khatabook) until handed over.

        Args:
            staff: acting UserProfile with role STAFF and a home branch
            student_id: student registered at, or subscribed to, the branch
            payment_type: SUBSCRIPTION, ADDITIONAL_FEE or OTHER

        Returns:
            Payment

        Raises:
            Unauthorized: not an active staff member with a branch
            NotFound: student not in the staff member's branch
            ValidationFailed: bad amount, method, plan, fee or occupied seat
        """
        if staff is None or not staff.is_staff_member or not staff.is_active or not staff.branch_id:
            raise Unauthorized()

        library = staff.library
        branch = staff.branch
        amount = parse_amount(amount)
        discount = parse_amount(discount or 0, 'Discount', allow_zero=True)
        _check_choice(method, Payment.PAYMENT_METHOD_CHOICES, 'payment method')
        _check_choice(payment_type, Payment.PAYMENT_TYPE_CHOICES, 'payment type')

        student = get_student_for_library(library, student_id)
        if not _student_in_branch(library, student, branch):
            raise NotFound("Student not found in your branch")
        if student.is_blocked:
            raise ValidationFailed(f"{student.name} is blocked")

        subscription, fee = PaymentService._resolve_target(
            library, student, branch, payment_type, amount, plan_id, fee_id,
            seat_id, locker_id, subscription_status='ACTIVE',
        )

        payment = Payment.objects.create(
            library=library,
            student=student,
            branch=branch,
            subscription=subscription,
            additional_fee=fee,
            amount=amount,
            discount=discount,
            method=method,
            status='COMPLETED',
            payment_type=payment_type,
            payment_date=timezone.now(),
            remarks=remarks or '',
            collected_by=staff,
        )

        logger.info(
            f"Payment {payment.invoice_number} collected by staff {staff.pk}: "
            f"{amount} {method} from {student.name}"
        )
        return payment

    @staticmethod
    @transaction.atomic
    def create_manual_payment(
        owner,
        student_id,
        amount,
        method,
        payment_type,
        plan_id=None,
        fee_id=None,
        seat_id=None,
        locker_id=None,
        branch_id=None,
        discount=0,
        remarks='',
        transaction_id='',
        status='COMPLETED',
    ):
        """
        Owner-recorded payment.

        ``status`` is COMPLETED for money the owner received, or
        PENDING_VERIFICATION for a transfer still to be confirmed; the
        subscription it creates is ACTIVE or PENDING accordingly.
        """
        if owner is None or not owner.is_owner or not owner.is_active:
            raise Unauthorized()
        if status not in ('COMPLETED', 'PENDING_VERIFICATION'):
            raise ValidationFailed(f"Unknown payment status: {status}")

        library = owner.library
        amount = parse_amount(amount)
        discount = parse_amount(discount or 0, 'Discount', allow_zero=True)
        _check_choice(method, Payment.PAYMENT_METHOD_CHOICES, 'payment method')
        _check_choice(payment_type, Payment.PAYMENT_TYPE_CHOICES, 'payment type')

        student = get_student_for_library(library, student_id)
        if branch_id:
            branch = get_for_library(Branch, library, branch_id, label='Branch')
        elif student.branch_id and student.library_id == library.pk:
            branch = student.branch
        else:
            raise ValidationFailed("Student does not belong to a branch")

        subscription, fee = PaymentService._resolve_target(
            library, student, branch, payment_type, amount, plan_id, fee_id,
            seat_id, locker_id,
            subscription_status='ACTIVE' if status == 'COMPLETED' else 'PENDING',
        )

        now = timezone.now()
        payment = Payment.objects.create(
            library=library,
            student=student,
            branch=branch,
            subscription=subscription,
            additional_fee=fee,
            amount=amount,
            discount=discount,
            method=method,
            status=status,
            payment_type=payment_type,
            payment_date=now,
            transaction_id=transaction_id or '',
            remarks=remarks or '',
            verified_by=owner if status == 'COMPLETED' else None,
            verified_at=now if status == 'COMPLETED' else None,
        )

        logger.info(
            f"Manual payment {payment.invoice_number} recorded by owner {owner.pk}: "
            f"{amount} {method} ({status})"
        )
        return payment

    @staticmethod
    @transaction.atomic
    def verify_payment(verifier, payment_id, approve):
        """
        Settle a payment awaiting verification.

        Approval marks it COMPLETED and activates its PENDING subscription;
        rejection marks it FAILED and cancels that subscription so the
        seat is released. Staff may only verify payments of their branch.
        """
        if verifier is None or not verifier.is_active:
            raise Unauthorized()

        try:
            payment = (
                Payment.objects.select_for_update()
                .for_library(verifier.library)
                .get(pk=payment_id)
            )
        except (Payment.DoesNotExist, ValueError, ValidationError):
            raise NotFound("Payment not found")

        if verifier.is_staff_member and payment.branch_id != verifier.branch_id:
            raise NotFound("Payment not found")

        if payment.status not in PENDING_STATUSES:
            raise InvalidTransition(
                f"Payment is already {payment.get_status_display().lower()}"
            )

        payment.status = 'COMPLETED' if approve else 'FAILED'
        payment.verified_by = verifier
        payment.verified_at = timezone.now()
        payment.save()

        subscription = payment.subscription
        if subscription is not None and subscription.status == 'PENDING':
            subscription.status = 'ACTIVE' if approve else 'CANCELLED'
            subscription.set_change_reason(
                f"Payment {payment.invoice_number} {'approved' if approve else 'rejected'}"
            )
            subscription.save()

        logger.info(
            f"Payment {payment.invoice_number} {'approved' if approve else 'rejected'} "
            f"by {verifier.pk}"
        )
        return payment

    # -------------------------------------------------------------------------
    # QUERIES
    # -------------------------------------------------------------------------

    @staticmethod
    def get_pending_payments(library, branch_id=None):
        payments = (
            Payment.objects.for_library(library)
            .filter(status__in=PENDING_STATUSES)
            .select_related('student', 'branch', 'subscription__plan', 'additional_fee')
            .order_by('-payment_date')
        )
        if branch_id:
            payments = payments.filter(branch_id=branch_id)
        return list(payments)

    @staticmethod
    def get_transactions(library, filters=None, limit=None):
        """
        Payments for the finance list.

        Args:
            filters (dict): optional start_date, end_date (dates, inclusive),
                status, method, branch, search
        """
        filters = filters or {}
        payments = (
            Payment.objects.for_library(library)
            .select_related('student', 'branch', 'subscription__plan', 'additional_fee', 'collected_by__user')
            .order_by('-payment_date')
        )

        if filters.get('status'):
            payments = payments.filter(status=filters['status'])
        if filters.get('method'):
            payments = payments.filter(method=filters['method'])
        if filters.get('branch'):
            payments = payments.filter(branch_id=filters['branch'])
        if filters.get('start_date'):
            payments = payments.filter(payment_date__gte=_day_start(filters['start_date'], library))
        if filters.get('end_date'):
            payments = payments.filter(payment_date__lt=_day_start(filters['end_date'], library, 1))
        if filters.get('search'):
            term = filters['search'].strip()
            payments = payments.filter(
                Q(student__name__icontains=term)
                | Q(invoice_number__icontains=term)
                | Q(transaction_id__icontains=term)
            )

        if limit:
            payments = payments[:limit]
        return payments


def _day_start(day, library, offset_days=0):
    """Aware midnight of ``day`` (+ offset) in the library's timezone"""
    return datetime.combine(day + timedelta(days=offset_days), time.min, tzinfo=get_library_timezone(library))


# =============================================================================
# FINANCE STATISTICS
# =============================================================================

def _completed_total(payments):
    return payments.filter(status='COMPLETED').aggregate(
        total=Coalesce(Sum('amount'), Decimal('0.00'))
    )['total']


def get_finance_stats(library, branch_id=None):
    """
    Headline revenue figures.

    Returns:
        dict: total_revenue, monthly_revenue, last_month_revenue,
        monthly_trend (percent), pending_amount, pending_count
    """
    payments = Payment.objects.for_library(library)
    if branch_id:
        payments = payments.filter(branch_id=branch_id)

    month_start, month_end = get_month_bounds(library=library)
    last_month_start, _ = get_month_bounds(month_start.date() - timedelta(days=1), library)

    current = _completed_total(payments.filter(payment_date__gte=month_start, payment_date__lt=month_end))
    last = _completed_total(payments.filter(payment_date__gte=last_month_start, payment_date__lt=month_start))

    if last > 0:
        trend = round(float((current - last) / last * 100), 2)
    elif current > 0:
        trend = 100.0
    else:
        trend = 0.0

    pending = payments.filter(status__in=PENDING_STATUSES).aggregate(
        amount=Coalesce(Sum('amount'), Decimal('0.00')),
        count=Count('id'),
    )

    return {
        'total_revenue': _completed_total(payments),
        'monthly_revenue': current,
        'last_month_revenue': last,
        'monthly_trend': trend,
        'pending_amount': pending['amount'],
        'pending_count': pending['count'],
    }


def get_revenue_by_month(library, months=6, branch_id=None):
    """
    Completed revenue per calendar month, oldest first.

    Returns:
        list of {'name': 'Jan 2025', 'month': date, 'value': Decimal};
        months without payments are included with 0.
    """
    months = max(int(months), 1)
    today = get_library_today(library)

    buckets = []
    cursor = today.replace(day=1)
    for _ in range(months):
        buckets.append(cursor)
        cursor = (cursor - timedelta(days=1)).replace(day=1)
    buckets.reverse()

    start, _ = get_month_bounds(buckets[0], library)
    payments = Payment.objects.for_library(library).filter(status='COMPLETED', payment_date__gte=start)
    if branch_id:
        payments = payments.filter(branch_id=branch_id)

    totals = {month: Decimal('0.00') for month in buckets}
    for amount, paid_at in payments.values_list('amount', 'payment_date'):
        key = localize_datetime(paid_at, library).date().replace(day=1)
        if key in totals:
            totals[key] += amount

    return [
        {'name': month.strftime('%b %Y'), 'month': month, 'value': totals[month]}
        for month in buckets
    ]


def get_revenue_by_method(library, branch_id=None):
    """Completed revenue of the current month split by payment method"""
    month_start, month_end = get_month_bounds(library=library)
    payments = Payment.objects.for_library(library).filter(
        status='COMPLETED', payment_date__gte=month_start, payment_date__lt=month_end
    )
    if branch_id:
        payments = payments.filter(branch_id=branch_id)

    rows = payments.values('method').annotate(total=Sum('amount'), count=Count('id')).order_by('-total')
    labels = dict(Payment.PAYMENT_METHOD_CHOICES)
    return [
        {'method': row['method'], 'label': labels.get(row['method'], row['method']),
         'total': row['total'], 'count': row['count']}
        for row in rows
    ]
