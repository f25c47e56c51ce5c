# khatabook/services.py

"""
Staff cash ledger (khatabook) operations.

Staff collect cash/UPI payments into their custody and hand the money
over to the owner. Submitting a handover only reserves the amount; the
owner's verification is what takes it out of cash in hand. Rejection
releases the reservation and unlinks the claimed payments.
"""

from decimal import Decimal, InvalidOperation
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
import logging

from accounts.models import UserProfile
from core.utils import get_setting, get_month_bounds, format_money
from fees.models import Payment
from khatabook.ledger import (
    PENDING, VERIFIED, REJECTED, apply_transition, compute_cash_summary,
)
from khatabook.models import CashHandover
from utils.exceptions import (
    InsufficientBalance, NotFound, Unauthorized, ValidationFailed,
)

logger = logging.getLogger(__name__)

# Custody label of a collected payment, keyed by its handover status
CUSTODY_LABELS = {
    None: 'In Hand',
    PENDING: 'Pending',
    VERIFIED: 'Handed Over',
    REJECTED: 'In Hand',
}

LEDGER_COLUMNS = ['Date', 'Type', 'Description', 'Method', 'Amount', 'Status']


def _require_owner(owner):
    if owner is None or not owner.is_owner or not owner.is_active:
        raise Unauthorized()


def _require_staff(staff):
    if staff is None or not staff.is_active:
        raise Unauthorized()


# =============================================================================
# QUERIES
# =============================================================================

def collected_payments(staff):
    """Completed payments the staff member holds the money for"""
    queryset = Payment.objects.for_library(staff.library).filter(
        collected_by=staff,
        status='COMPLETED',
        method__in=get_setting('CASH_IN_HAND_METHODS'),
    )
    if staff.branch_id:
        queryset = queryset.filter(branch_id=staff.branch_id)
    return queryset


def staff_handovers(staff):
    queryset = CashHandover.objects.for_library(staff.library).filter(staff=staff)
    if staff.branch_id:
        queryset = queryset.filter(branch_id=staff.branch_id)
    return queryset


# =============================================================================
# CASH LEDGER SERVICE
# =============================================================================

class CashLedgerService:
    """Balances, handover lifecycle and ledger listings"""

    @staticmethod
    def get_staff_cash_summary(staff, month=None):
        """
        Balance of ``staff`` for ``month`` (date or 'YYYY-MM', default current).

        Returns:
            CashSummary
        """
        _require_staff(staff)
        month_start, month_end = get_month_bounds(month, staff.library)

        collected = collected_payments(staff).only('amount', 'payment_date')
        handovers = staff_handovers(staff).only('amount', 'status', 'created_at')

        return compute_cash_summary(collected, handovers, month_start, month_end)

    # -------------------------------------------------------------------------
    # HANDOVER LIFECYCLE
    # -------------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def submit_handover(staff, amount, method, notes=None, attachment_url=None, payment_ids=None):
        """
        Declare ``amount`` as handed over to the owner.

        The staff profile row is locked so concurrent submissions by the
        same person are serialised against one balance.

        Raises:
            ValidationFailed: amount missing, not positive or bad method
            InsufficientBalance: amount exceeds the available balance
        """
        _require_staff(staff)

        try:
            amount = Decimal(str(amount))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationFailed("Enter a valid amount")
        if amount <= 0:
            raise ValidationFailed("Amount must be greater than zero")

        valid_methods = dict(CashHandover.METHOD_CHOICES)
        if method not in valid_methods:
            raise ValidationFailed(f"Unknown handover method: {method}")

        UserProfile.objects.select_for_update().get(pk=staff.pk)

        summary = CashLedgerService.get_staff_cash_summary(staff)
        if amount > summary.available_balance:
            logger.warning(
                f"Handover of {amount} refused for staff {staff.pk}: "
                f"available {summary.available_balance}"
            )
            raise InsufficientBalance(
                f"Amount exceeds available balance of "
                f"{format_money(summary.available_balance, staff.library)}"
            )

        handover = CashHandover.objects.create(
            library=staff.library,
            branch=staff.branch,
            staff=staff,
            amount=amount,
            method=method,
            notes=notes or '',
            attachment_url=attachment_url or '',
            status=PENDING,
        )

        linked = 0
        if payment_ids:
            linked = collected_payments(staff).filter(
                pk__in=payment_ids, handover__isnull=True
            ).update(handover=handover)

        logger.info(
            f"Handover {handover.pk} submitted by staff {staff.pk}: "
            f"{amount} via {method}, {linked} payment(s) linked"
        )
        return handover

    @staticmethod
    def _get_handover_for_update(owner, handover_id):
        try:
            return CashHandover.objects.select_for_update().for_library(owner.library).get(pk=handover_id)
        except (CashHandover.DoesNotExist, ValueError, ValidationError):
            raise NotFound("Handover not found")

    @staticmethod
    @transaction.atomic
    def verify_handover(owner, handover_id):
        """PENDING -> VERIFIED; the amount leaves the staff member's cash in hand"""
        _require_owner(owner)
        handover = CashLedgerService._get_handover_for_update(owner, handover_id)

        apply_transition(handover, VERIFIED)
        handover.verified_by = owner
        handover.verified_at = timezone.now()
        handover.save()

        logger.info(f"Handover {handover.pk} verified by owner {owner.pk}")
        return handover

    @staticmethod
    @transaction.atomic
    def reject_handover(owner, handover_id):
        """PENDING -> REJECTED; claimed payments are released"""
        _require_owner(owner)
        handover = CashLedgerService._get_handover_for_update(owner, handover_id)

        apply_transition(handover, REJECTED)
        handover.verified_by = owner
        handover.verified_at = timezone.now()
        handover.save()

        released = handover.payments.update(handover=None)

        logger.info(
            f"Handover {handover.pk} rejected by owner {owner.pk}, "
            f"{released} payment(s) released"
        )
        return handover

    # -------------------------------------------------------------------------
    # OWNER VIEWS
    # -------------------------------------------------------------------------

    @staticmethod
    def get_pending_handovers(owner):
        _require_owner(owner)
        return list(
            CashHandover.objects.for_library(owner.library)
            .filter(status=PENDING)
            .select_related('staff__user', 'branch')
            .order_by('-created_at')
        )

    @staticmethod
    def get_staff_balances(owner):
        """
        Cash held by every active staff member, highest first.

        Returns:
            list of dicts with staff, branch_name, summary fields,
            pending_handover_count and last_handover_at
        """
        _require_owner(owner)

        staff_members = (
            UserProfile.objects.filter(library=owner.library, role='STAFF', is_active=True)
            .select_related('user', 'branch', 'library')
        )

        balances = []
        for staff in staff_members:
            summary = CashLedgerService.get_staff_cash_summary(staff)
            handovers = staff_handovers(staff)
            last_handover = handovers.order_by('-created_at').first()

            balances.append({
                'staff': staff,
                'staff_id': str(staff.pk),
                'name': staff.full_name,
                'branch_name': staff.branch.name if staff.branch_id else None,
                'cash_in_hand': summary.cash_in_hand,
                'pending_handover_amount': summary.pending_handover_amount,
                'available_balance': summary.available_balance,
                'pending_handover_count': handovers.filter(status=PENDING).count(),
                'last_handover_at': last_handover.created_at if last_handover else None,
            })

        balances.sort(key=lambda row: row['cash_in_hand'], reverse=True)
        return balances

    @staticmethod
    def get_staff_ledger_for_owner(owner, staff_id, limit=50):
        _require_owner(owner)
        try:
            staff = UserProfile.objects.select_related('user', 'branch', 'library').get(
                library=owner.library, role='STAFF', pk=staff_id
            )
        except (UserProfile.DoesNotExist, ValueError, ValidationError):
            raise NotFound("Staff member not found")

        return {
            'staff': staff,
            'summary': CashLedgerService.get_staff_cash_summary(staff),
            'transactions': CashLedgerService.get_staff_khatabook(staff, limit),
        }

    # -------------------------------------------------------------------------
    # STAFF VIEWS
    # -------------------------------------------------------------------------

    @staticmethod
    def get_pending_cash_payments(staff):
        """Collected payments not yet claimed by a handover"""
        _require_staff(staff)
        return list(
            collected_payments(staff)
            .filter(handover__isnull=True)
            .select_related('student', 'subscription__plan')
            .order_by('-payment_date')
        )

    @staticmethod
    def get_staff_khatabook(staff, limit=50):
        """
        Money in (collections) and money out (handovers), newest first.

        Each row: id, date, type ('IN' | 'OUT'), description, method,
        amount, status. Collections carry their custody label as status.
        """
        _require_staff(staff)

        collections = (
            collected_payments(staff)
            .select_related('student', 'subscription__plan', 'handover')
            .order_by('-payment_date')[:limit]
        )
        handovers = (
            staff_handovers(staff)
            .prefetch_related('payments')
            .order_by('-created_at')[:limit]
        )

        rows = []
        for payment in collections:
            handover_status = payment.handover.status if payment.handover_id else None
            rows.append({
                'id': str(payment.pk),
                'date': payment.payment_date,
                'type': 'IN',
                'description': payment.student.name if payment.student_id else 'Unknown Student',
                'method': payment.method,
                'amount': payment.amount,
                'status': CUSTODY_LABELS[handover_status],
                'plan_name': payment.subscription.plan.name if payment.subscription_id else None,
            })

        for handover in handovers:
            rows.append({
                'id': str(handover.pk),
                'date': handover.created_at,
                'type': 'OUT',
                'description': 'Handover to Owner',
                'method': handover.method,
                'amount': handover.amount,
                'status': handover.get_status_display(),
                'linked_payments': len(handover.payments.all()),
                'notes': handover.notes,
            })

        rows.sort(key=lambda row: row['date'], reverse=True)
        return rows[:limit]
