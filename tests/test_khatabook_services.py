"""
Staff cash ledger: balances, handover submission and owner review.
"""

from decimal import Decimal

import pytest
from django.utils import timezone

from fees.models import Payment
from khatabook.exports import export_ledger_pdf, ledger_rows_to_csv
from khatabook.models import CashHandover
from khatabook.services import CashLedgerService
from utils.exceptions import InsufficientBalance, InvalidTransition, NotFound, Unauthorized, ValidationFailed


@pytest.fixture
def collect(library, branch, student):
    def make(staff, amount, method='CASH', status='COMPLETED'):
        return Payment.objects.create(
            library=library, student=student, branch=branch, amount=Decimal(amount),
            method=method, status=status, payment_type='OTHER',
            payment_date=timezone.now(), collected_by=staff,
        )
    return make


def test_summary_counts_cash_and_upi_only(staff, collect):
    collect(staff, '500', 'CASH')
    collect(staff, '300', 'UPI')
    collect(staff, '700', 'CARD')
    collect(staff, '900', 'CASH', status='PENDING_VERIFICATION')

    summary = CashLedgerService.get_staff_cash_summary(staff)

    assert summary.collected_this_month == Decimal('800')
    assert summary.cash_in_hand == Decimal('800')
    assert summary.available_balance == Decimal('800')


def test_submit_handover_reserves_balance(staff, collect):
    first = collect(staff, '500')
    collect(staff, '200')

    handover = CashLedgerService.submit_handover(staff, '300', 'CASH', payment_ids=[str(first.pk)])

    assert handover.status == 'PENDING'
    assert handover.branch_id == staff.branch_id
    first.refresh_from_db()
    assert first.handover_id == handover.pk

    summary = CashLedgerService.get_staff_cash_summary(staff)
    assert summary.cash_in_hand == Decimal('700')
    assert summary.pending_handover_amount == Decimal('300')
    assert summary.available_balance == Decimal('400')


def test_handover_cannot_exceed_available_balance(staff, collect):
    collect(staff, '500')
    CashLedgerService.submit_handover(staff, '400', 'CASH')

    with pytest.raises(InsufficientBalance):
        CashLedgerService.submit_handover(staff, '200', 'CASH')
    assert CashHandover.objects.count() == 1


@pytest.mark.parametrize('amount', ['0', '-10', 'abc', None])
def test_handover_amount_must_be_positive(staff, collect, amount):
    collect(staff, '500')
    with pytest.raises(ValidationFailed):
        CashLedgerService.submit_handover(staff, amount, 'CASH')


def test_handover_method_must_be_known(staff, collect):
    collect(staff, '500')
    with pytest.raises(ValidationFailed):
        CashLedgerService.submit_handover(staff, '100', 'CHEQUE')


def test_payments_of_other_staff_are_not_linked(staff, staff_b, collect):
    collect(staff, '500')
    theirs = collect(staff_b, '100')

    CashLedgerService.submit_handover(staff, '100', 'CASH', payment_ids=[str(theirs.pk)])

    theirs.refresh_from_db()
    assert theirs.handover_id is None


def test_verify_moves_money_out_of_hand(owner, staff, collect):
    collect(staff, '500')
    handover = CashLedgerService.submit_handover(staff, '300', 'CASH')

    CashLedgerService.verify_handover(owner, handover.pk)

    handover.refresh_from_db()
    assert handover.status == 'VERIFIED'
    assert handover.verified_by == owner
    summary = CashLedgerService.get_staff_cash_summary(staff)
    assert summary.cash_in_hand == Decimal('200')
    assert summary.handed_over_this_month == Decimal('300')
    assert summary.pending_handover_amount == 0


def test_reject_releases_reservation_and_payments(owner, staff, collect):
    payment = collect(staff, '500')
    handover = CashLedgerService.submit_handover(staff, '500', 'CASH', payment_ids=[str(payment.pk)])

    CashLedgerService.reject_handover(owner, handover.pk)

    payment.refresh_from_db()
    assert payment.handover_id is None
    summary = CashLedgerService.get_staff_cash_summary(staff)
    assert summary.available_balance == Decimal('500')


def test_reviewed_handover_is_final(owner, staff, collect):
    collect(staff, '500')
    handover = CashLedgerService.submit_handover(staff, '100', 'CASH')
    CashLedgerService.verify_handover(owner, handover.pk)

    with pytest.raises(InvalidTransition):
        CashLedgerService.reject_handover(owner, handover.pk)


def test_only_owners_review_handovers(staff, collect):
    collect(staff, '500')
    handover = CashLedgerService.submit_handover(staff, '100', 'CASH')
    with pytest.raises(Unauthorized):
        CashLedgerService.verify_handover(staff, handover.pk)


def test_other_library_cannot_see_handover(other_owner, staff, collect):
    collect(staff, '500')
    handover = CashLedgerService.submit_handover(staff, '100', 'CASH')
    with pytest.raises(NotFound):
        CashLedgerService.verify_handover(other_owner, handover.pk)


def test_staff_balances_and_khatabook(owner, staff, staff_b, collect):
    collect(staff, '500')
    collect(staff_b, '900')
    CashLedgerService.submit_handover(staff, '100', 'UPI')

    balances = CashLedgerService.get_staff_balances(owner)
    assert [row['name'] for row in balances] == [staff_b.full_name, staff.full_name]
    assert balances[1]['pending_handover_count'] == 1

    rows = CashLedgerService.get_staff_khatabook(staff)
    assert {row['type'] for row in rows} == {'IN', 'OUT'}
    assert rows[0]['date'] >= rows[-1]['date']


def test_ledger_exports(library, staff, collect):
    collect(staff, '500')
    CashLedgerService.submit_handover(staff, '200', 'CASH', notes="Evening drop")
    rows = CashLedgerService.get_staff_khatabook(staff)

    response = ledger_rows_to_csv(rows, filename='ledger.csv', library=library)
    lines = response.content.decode().splitlines()
    assert lines[0] == 'Date,Type,Description,Method,Amount,Status'
    assert len(lines) == 3

    pdf = export_ledger_pdf(rows, library=library, summary=CashLedgerService.get_staff_cash_summary(staff))
    assert pdf.content.startswith(b'%PDF')


def test_full_balance_handover_leaves_nothing_to_submit(staff, collect):
    collect(staff, '500')

    CashLedgerService.submit_handover(staff, '500', 'CASH')
    assert CashLedgerService.get_staff_cash_summary(staff).available_balance == 0

    with pytest.raises(InsufficientBalance):
        CashLedgerService.submit_handover(staff, '1', 'CASH')


def test_available_balance_never_negative(owner, staff, collect):
    """Mixed submit, verify and reject steps keep the staff balance consistent"""
    collect(staff, '500')
    collect(staff, '250', 'UPI')

    def balance():
        summary = CashLedgerService.get_staff_cash_summary(staff)
        assert summary.available_balance >= 0
        assert summary.cash_in_hand >= 0
        assert summary.available_balance == summary.cash_in_hand - summary.pending_handover_amount
        return summary.available_balance

    first = CashLedgerService.submit_handover(staff, '300', 'CASH')
    assert balance() == Decimal('450')
    second = CashLedgerService.submit_handover(staff, '450', 'UPI')
    assert balance() == 0

    CashLedgerService.reject_handover(owner, first.pk)
    assert balance() == Decimal('300')
    CashLedgerService.verify_handover(owner, second.pk)
    assert balance() == Decimal('300')

    with pytest.raises(InsufficientBalance):
        CashLedgerService.submit_handover(staff, '301', 'CASH')
    third = CashLedgerService.submit_handover(staff, '300', 'CASH')
    assert balance() == 0
    CashLedgerService.verify_handover(owner, third.pk)
    assert balance() == 0
    assert CashLedgerService.get_staff_cash_summary(staff).cash_in_hand == 0
