"""
Payment collection, owner-recorded payments, verification and exports.
"""

from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import load_workbook

from fees.exports import export_payments_csv, export_payments_excel
from fees.invoices import generate_invoice_pdf
from fees.models import AdditionalFee, Payment
from fees.services import PaymentService, get_finance_stats, get_revenue_by_month, parse_amount
from subscriptions.models import Subscription
from utils.exceptions import InvalidTransition, NotFound, Unauthorized, ValidationFailed


@pytest.fixture
def fee(library):
    return AdditionalFee.objects.create(library=library, name="Locker Key", amount=Decimal('200'))


@pytest.fixture
def pending_payment(owner, student, plan):
    return PaymentService.create_manual_payment(
        owner, student.pk, '1000', 'BANK_TRANSFER', 'SUBSCRIPTION',
        plan_id=plan.pk, transaction_id='UTR123', status='PENDING_VERIFICATION',
    )


@pytest.mark.parametrize('value', ['0', '-5', 'abc', None, ''])
def test_parse_amount_rejects(value):
    with pytest.raises(ValidationFailed):
        parse_amount(value)


def test_collect_subscription_payment(staff, student, plan, seat, today):
    payment = PaymentService.collect_payment(
        staff, student.pk, '1000', 'CASH', 'SUBSCRIPTION', plan_id=plan.pk, seat_id=seat.pk,
    )

    assert payment.status == 'COMPLETED'
    assert payment.collected_by == staff
    assert payment.branch == staff.branch
    assert payment.invoice_number.startswith("INV-")
    assert payment.invoice_number.endswith("-000001")
    subscription = payment.subscription
    assert subscription.status == 'ACTIVE'
    assert subscription.seat == seat
    assert subscription.start_date == today
    assert subscription.amount == Decimal('1000')


def test_invoice_numbers_are_sequential(staff, student, fee):
    first = PaymentService.collect_payment(staff, student.pk, '200', 'UPI', 'ADDITIONAL_FEE', fee_id=fee.pk)
    second = PaymentService.collect_payment(staff, student.pk, '200', 'UPI', 'ADDITIONAL_FEE', fee_id=fee.pk)

    assert int(second.invoice_number.rsplit('-', 1)[-1]) == int(first.invoice_number.rsplit('-', 1)[-1]) + 1
    assert second.additional_fee == fee


def test_collect_requires_staff(owner, student):
    with pytest.raises(Unauthorized):
        PaymentService.collect_payment(owner, student.pk, '100', 'CASH', 'OTHER')
    with pytest.raises(Unauthorized):
        PaymentService.collect_payment(None, student.pk, '100', 'CASH', 'OTHER')


def test_collect_student_of_other_branch(staff, make_student, branch_b):
    elsewhere = make_student(branch=branch_b)
    with pytest.raises(NotFound):
        PaymentService.collect_payment(staff, elsewhere.pk, '100', 'CASH', 'OTHER')


def test_collect_from_blocked_student(staff, make_student):
    blocked = make_student(is_blocked=True)
    with pytest.raises(ValidationFailed):
        PaymentService.collect_payment(staff, blocked.pk, '100', 'CASH', 'OTHER')


def test_collect_rejects_unknown_method(staff, student):
    with pytest.raises(ValidationFailed):
        PaymentService.collect_payment(staff, student.pk, '100', 'BARTER', 'OTHER')
    assert not Payment.objects.exists()


def test_occupied_seat_rolls_back_payment(staff, make_student, plan, seat):
    PaymentService.collect_payment(
        staff, make_student().pk, '1000', 'CASH', 'SUBSCRIPTION', plan_id=plan.pk, seat_id=seat.pk,
    )
    with pytest.raises(ValidationFailed):
        PaymentService.collect_payment(
            staff, make_student().pk, '1000', 'CASH', 'SUBSCRIPTION', plan_id=plan.pk, seat_id=seat.pk,
        )
    assert Payment.objects.count() == 1
    assert Subscription.objects.count() == 1


def test_fee_limited_to_other_branch(staff, student, fee, branch_b):
    fee.branch = branch_b
    fee.save()
    with pytest.raises(ValidationFailed):
        PaymentService.collect_payment(staff, student.pk, '200', 'CASH', 'ADDITIONAL_FEE', fee_id=fee.pk)


def test_manual_completed_payment(owner, student, plan):
    payment = PaymentService.create_manual_payment(
        owner, student.pk, '1000', 'CARD', 'SUBSCRIPTION', plan_id=plan.pk,
    )
    assert payment.status == 'COMPLETED'
    assert payment.verified_by == owner
    assert payment.collected_by is None
    assert payment.subscription.status == 'ACTIVE'


def test_manual_pending_payment(pending_payment):
    assert pending_payment.status == 'PENDING_VERIFICATION'
    assert pending_payment.verified_by is None
    assert pending_payment.subscription.status == 'PENDING'


def test_manual_payment_requires_owner(staff, student):
    with pytest.raises(Unauthorized):
        PaymentService.create_manual_payment(staff, student.pk, '100', 'CASH', 'OTHER')


def test_approve_payment(owner, pending_payment):
    payment = PaymentService.verify_payment(owner, pending_payment.pk, approve=True)

    assert payment.status == 'COMPLETED'
    assert payment.verified_by == owner
    payment.subscription.refresh_from_db()
    assert payment.subscription.status == 'ACTIVE'


def test_reject_payment_cancels_subscription(owner, pending_payment):
    payment = PaymentService.verify_payment(owner, pending_payment.pk, approve=False)

    assert payment.status == 'FAILED'
    payment.subscription.refresh_from_db()
    assert payment.subscription.status == 'CANCELLED'


def test_payment_verified_only_once(owner, pending_payment):
    PaymentService.verify_payment(owner, pending_payment.pk, approve=True)
    with pytest.raises(InvalidTransition):
        PaymentService.verify_payment(owner, pending_payment.pk, approve=False)


def test_staff_verifies_own_branch_only(staff, staff_b, pending_payment):
    with pytest.raises(NotFound):
        PaymentService.verify_payment(staff_b, pending_payment.pk, approve=True)
    assert PaymentService.verify_payment(staff, pending_payment.pk, approve=True).status == 'COMPLETED'


def test_other_library_cannot_verify(other_owner, pending_payment):
    with pytest.raises(NotFound):
        PaymentService.verify_payment(other_owner, pending_payment.pk, approve=True)


def test_pending_payments_listing(library, pending_payment, branch_b):
    assert PaymentService.get_pending_payments(library) == [pending_payment]
    assert PaymentService.get_pending_payments(library, branch_id=branch_b.pk) == []


def test_finance_stats(library, staff, owner, student, pending_payment):
    PaymentService.collect_payment(staff, student.pk, '300', 'CASH', 'OTHER')
    PaymentService.collect_payment(staff, student.pk, '200', 'UPI', 'OTHER')

    stats = get_finance_stats(library)

    assert stats['total_revenue'] == Decimal('500')
    assert stats['monthly_revenue'] == Decimal('500')
    assert stats['last_month_revenue'] == Decimal('0')
    assert stats['monthly_trend'] == 100.0
    assert stats['pending_count'] == 1
    assert stats['pending_amount'] == Decimal('1000')

    months = get_revenue_by_month(library, months=3)
    assert len(months) == 3
    assert months[-1]['value'] == Decimal('500')


def test_transactions_search(library, staff, student, pending_payment):
    PaymentService.collect_payment(staff, student.pk, '300', 'CASH', 'OTHER')

    found = PaymentService.get_transactions(library, {'search': 'UTR123'})
    assert list(found) == [pending_payment]
    assert PaymentService.get_transactions(library, {'method': 'CASH'}).count() == 1


def test_invoice_pdf(staff, student, plan):
    payment = PaymentService.collect_payment(staff, student.pk, '1000', 'CASH', 'SUBSCRIPTION', plan_id=plan.pk)
    assert generate_invoice_pdf(payment).startswith(b'%PDF')


def test_excel_and_csv_exports(library, staff, student):
    PaymentService.collect_payment(staff, student.pk, '300', 'CASH', 'OTHER', remarks="Printing")
    payments = PaymentService.get_transactions(library)

    workbook = load_workbook(BytesIO(export_payments_excel(payments, library=library).content))
    sheet = workbook.active
    assert sheet['A1'].value == 'Invoice'
    assert sheet['C2'].value == "Asha Rao"
    assert sheet['H2'].value == 300

    response = export_payments_csv(payments, filename='payments.csv', library=library)
    assert response['Content-Type'] == 'text/csv'
    lines = response.content.decode().splitlines()
    assert lines[0].startswith('Invoice,Date,Student')
    assert len(lines) == 2
