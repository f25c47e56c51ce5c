"""
Cash handover state machine and balance arithmetic.
"""

from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from khatabook.ledger import (
    PENDING, VERIFIED, REJECTED, apply_transition, can_transition, compute_cash_summary,
)
from utils.exceptions import InvalidTransition

MONTH_START = datetime(2025, 6, 1, tzinfo=dt_timezone.utc)
MONTH_END = datetime(2025, 7, 1, tzinfo=dt_timezone.utc)
BEFORE = datetime(2025, 5, 20, tzinfo=dt_timezone.utc)
DURING = datetime(2025, 6, 10, tzinfo=dt_timezone.utc)
AFTER = datetime(2025, 7, 2, tzinfo=dt_timezone.utc)


def payment(amount, when):
    return SimpleNamespace(amount=Decimal(amount), payment_date=when)


def handover(amount, status, when):
    return SimpleNamespace(amount=Decimal(amount), status=status, created_at=when)


@pytest.mark.parametrize('current, target, allowed', [
    (PENDING, VERIFIED, True),
    (PENDING, REJECTED, True),
    (VERIFIED, REJECTED, False),
    (REJECTED, VERIFIED, False),
    (VERIFIED, PENDING, False),
])
def test_transitions(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_final_states_cannot_move():
    row = SimpleNamespace(status=VERIFIED)
    with pytest.raises(InvalidTransition):
        apply_transition(row, REJECTED)
    assert row.status == VERIFIED


def test_empty_ledger_is_zero():
    summary = compute_cash_summary([], [], MONTH_START, MONTH_END)
    assert summary.cash_in_hand == 0
    assert summary.available_balance == 0


def test_summary_splits_months():
    collected = [payment('500', BEFORE), payment('300', DURING), payment('50', AFTER)]
    handovers = [
        handover('200', VERIFIED, BEFORE),
        handover('100', VERIFIED, DURING),
        handover('150', PENDING, DURING),
        handover('999', REJECTED, DURING),
    ]

    summary = compute_cash_summary(collected, handovers, MONTH_START, MONTH_END)

    assert summary.carried_forward == Decimal('300')
    assert summary.collected_this_month == Decimal('300')
    assert summary.handed_over_this_month == Decimal('100')
    assert summary.cash_in_hand == Decimal('500')
    assert summary.pending_handover_amount == Decimal('150')
    assert summary.available_balance == Decimal('350')


def test_rejected_handover_has_no_effect():
    collected = [payment('400', DURING)]
    with_rejected = compute_cash_summary(
        collected, [handover('400', REJECTED, DURING)], MONTH_START, MONTH_END
    )
    without = compute_cash_summary(collected, [], MONTH_START, MONTH_END)
    assert with_rejected == without


def test_as_dict_has_every_field():
    data = compute_cash_summary([payment('10', DURING)], [], MONTH_START, MONTH_END).as_dict()
    assert set(data) == {
        'carried_forward', 'collected_this_month', 'handed_over_this_month',
        'cash_in_hand', 'pending_handover_amount', 'available_balance',
    }
