# khatabook/ledger.py

"""
Cash handover state machine and balance arithmetic.

A handover moves PENDING -> VERIFIED or PENDING -> REJECTED; both end
states are final. How each state moves a staff member's balances is
kept in BALANCE_EFFECTS so the summary below never special-cases a
status:

    PENDING   reserves the amount (pending_handover_amount)
    VERIFIED  takes the amount out of cash_in_hand
    REJECTED  no effect, the amount is available again

Nothing in this module touches the database.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal

from utils.exceptions import InvalidTransition

PENDING = 'PENDING'
VERIFIED = 'VERIFIED'
REJECTED = 'REJECTED'

TRANSITIONS = {
    PENDING: {VERIFIED, REJECTED},
    VERIFIED: set(),
    REJECTED: set(),
}

# (cash_in_hand multiplier, pending multiplier)
BALANCE_EFFECTS = {
    PENDING: (0, 1),
    VERIFIED: (-1, 0),
    REJECTED: (0, 0),
}

ZERO = Decimal('0.00')


def can_transition(current, target):
    return target in TRANSITIONS.get(current, set())


def check_transition(current, target):
    """Raise InvalidTransition unless ``current -> target`` is allowed"""
    if not can_transition(current, target):
        if current in (VERIFIED, REJECTED):
            raise InvalidTransition(f"Handover is already {current.lower()}")
        raise InvalidTransition(f"Cannot move handover from {current} to {target}")


def apply_transition(handover, target):
    check_transition(handover.status, target)
    handover.status = target
    return handover


@dataclass
class CashSummary:
    carried_forward: Decimal = ZERO
    collected_this_month: Decimal = ZERO
    handed_over_this_month: Decimal = ZERO
    cash_in_hand: Decimal = ZERO
    pending_handover_amount: Decimal = ZERO
    available_balance: Decimal = ZERO

    def as_dict(self):
        return asdict(self)


def compute_cash_summary(collected, handovers, month_start, month_end):
    """
    Staff balance for the month ``[month_start, month_end)``.

    Args:
        collected: rows with ``amount`` and ``payment_date``; the money the
            staff member took into custody
        handovers: rows with ``amount``, ``status`` and ``created_at``
        month_start, month_end: aware datetimes, end exclusive

    Returns:
        CashSummary where
            carried_forward = collected before the month
                              - verified handovers before the month
            cash_in_hand    = carried_forward + collected this month
                              - verified handovers this month
            available       = cash_in_hand - every pending handover
    """
    collected_before = ZERO
    collected_this_month = ZERO
    for payment in collected:
        if payment.payment_date < month_start:
            collected_before += payment.amount
        elif payment.payment_date < month_end:
            collected_this_month += payment.amount

    handed_over_before = ZERO
    handed_over_this_month = ZERO
    pending = ZERO
    for handover in handovers:
        cash_effect, pending_effect = BALANCE_EFFECTS[handover.status]
        pending += handover.amount * pending_effect

        if handover.created_at < month_start:
            handed_over_before -= handover.amount * cash_effect
        elif handover.created_at < month_end:
            handed_over_this_month -= handover.amount * cash_effect

    carried_forward = collected_before - handed_over_before
    cash_in_hand = carried_forward + collected_this_month - handed_over_this_month

    return CashSummary(
        carried_forward=carried_forward,
        collected_this_month=collected_this_month,
        handed_over_this_month=handed_over_this_month,
        cash_in_hand=cash_in_hand,
        pending_handover_amount=pending,
        available_balance=cash_in_hand - pending,
    )
