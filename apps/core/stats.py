# core/stats.py

"""
Dashboard statistics for a library, optionally narrowed to one branch.
"""

from django.utils import timezone
import logging

from core.utils import calculate_percentage, get_library_today

logger = logging.getLogger(__name__)

EXPIRING_WINDOW_DAYS = 7


# =============================================================================
# SECTIONS
# =============================================================================

def get_student_counts(library, branch_id=None, now=None):
    """Counts per derived status, computed by the student list predicates"""
    from students.filters import count_students_by_status

    return count_students_by_status(library, branch_id=branch_id, now=now)


def get_seat_occupancy(library, branch_id=None, today=None):
    from branches.models import Seat
    from branches.services import running_subscriptions

    today = today or get_library_today(library)
    seats = Seat.objects.for_library(library).filter(is_active=True)
    running = running_subscriptions(library, today).filter(seat__isnull=False)
    if branch_id:
        seats = seats.filter(branch_id=branch_id)
        running = running.filter(branch_id=branch_id)

    total = seats.count()
    occupied = running.values('seat_id').distinct().count()
    return {
        'total_seats': total,
        'occupied_seats': occupied,
        'available_seats': max(total - occupied, 0),
        'occupancy_rate': calculate_percentage(occupied, total),
    }


def get_expiring_soon(library, branch_id=None, today=None):
    from subscriptions.services import SubscriptionExpiryService, subscription_to_dict

    today = today or get_library_today(library)
    subscriptions = SubscriptionExpiryService.get_expiring_subscriptions(
        library, EXPIRING_WINDOW_DAYS, branch_id=branch_id, today=today
    )
    return [subscription_to_dict(subscription, today) for subscription in subscriptions]


def get_pending_handover_summary(library, branch_id=None):
    from django.db.models import Count, Sum
    from khatabook.models import CashHandover

    handovers = CashHandover.objects.for_library(library).filter(status='PENDING')
    if branch_id:
        handovers = handovers.filter(branch_id=branch_id)
    totals = handovers.aggregate(count=Count('id'), amount=Sum('amount'))
    return {'count': totals['count'], 'amount': totals['amount'] or 0}


# =============================================================================
# DASHBOARD
# =============================================================================

def get_dashboard_stats(library, branch_id=None, now=None):
    """
    Everything the owner dashboard shows.

    Returns:
        dict: students, seats, revenue, pending_payments,
        expiring_soon and pending_handovers
    """
    from fees.services import get_finance_stats, get_revenue_by_month

    now = now or timezone.now()
    today = get_library_today(library)
    finance = get_finance_stats(library, branch_id)

    return {
        'students': get_student_counts(library, branch_id, now),
        'seats': get_seat_occupancy(library, branch_id, today),
        'revenue': {
            'this_month': finance['monthly_revenue'],
            'last_month': finance['last_month_revenue'],
            'trend': finance['monthly_trend'],
            'total': finance['total_revenue'],
            'by_month': get_revenue_by_month(library, 6, branch_id),
        },
        'pending_payments': {
            'count': finance['pending_count'],
            'amount': finance['pending_amount'],
        },
        'expiring_soon': get_expiring_soon(library, branch_id, today),
        'pending_handovers': get_pending_handover_summary(library, branch_id),
    }
