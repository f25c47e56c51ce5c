"""
Student registration, ownership rules, notes and support tickets.
"""

from datetime import date
from decimal import Decimal

import pytest
from django.utils import timezone

from fees.models import Payment
from fees.services import PaymentService
from khatabook.services import CashLedgerService
from students.models import Student
from students.services import StudentService, SupportTicketService, get_student_for_library
from subscriptions.models import Subscription
from utils.exceptions import InvalidTransition, NotFound, ValidationFailed


def registration(branch, **overrides):
    data = {
        'name': "  Nikhil Verma ",
        'branch_id': str(branch.pk),
        'email': "Nikhil@Example.com",
        'phone': "9123456780",
        'password': "reading-room",
    }
    data.update(overrides)
    return data


def test_register_student(library, branch):
    student = StudentService.register_student(library, registration(branch))

    assert student.name == "Nikhil Verma"
    assert student.email == "nikhil@example.com"
    assert student.library == library
    assert student.branch == branch
    assert student.check_password("reading-room")
    assert not student.check_password("wrong")


def test_date_of_birth_is_the_default_password(library, branch):
    data = registration(branch, password='', date_of_birth='2001-03-07')
    student = StudentService.register_student(library, data)

    assert student.date_of_birth == date(2001, 3, 7)
    assert student.check_password("07032001")


@pytest.mark.parametrize('overrides', [
    {'name': ''},
    {'branch_id': ''},
    {'email': '', 'phone': ''},
    {'password': '', 'date_of_birth': ''},
    {'phone': '12345'},
    {'date_of_birth': 'not-a-date', 'password': ''},
])
def test_registration_rejects_bad_input(library, branch, overrides):
    with pytest.raises(ValidationFailed):
        StudentService.register_student(library, registration(branch, **overrides))
    assert not Student.objects.exists()


def test_duplicate_email_or_phone_within_library(library, branch):
    StudentService.register_student(library, registration(branch))

    with pytest.raises(ValidationFailed, match="Email"):
        StudentService.register_student(library, registration(branch, phone="9000011111"))
    with pytest.raises(ValidationFailed, match="Phone"):
        StudentService.register_student(library, registration(branch, email="other@example.com"))


def test_same_contact_allowed_in_another_library(library, branch, other_library, other_branch):
    StudentService.register_student(library, registration(branch))
    student = StudentService.register_student(other_library, registration(other_branch))
    assert student.library == other_library


def test_branch_of_another_library_is_not_found(library, other_branch):
    with pytest.raises(NotFound):
        StudentService.register_student(library, registration(other_branch))


def test_subscribed_student_is_visible_but_not_editable(
    library, other_library, other_branch, make_student, make_subscription
):
    visitor = make_student("Visitor", library=other_library, branch=other_branch)
    make_subscription(visitor)

    assert get_student_for_library(library, visitor.pk) == visitor
    with pytest.raises(NotFound):
        StudentService.update_student(library, visitor.pk, {'name': "Renamed"})
    with pytest.raises(NotFound):
        StudentService.delete_student(library, visitor.pk)


def test_unrelated_student_is_invisible(library, other_library, other_branch, make_student):
    stranger = make_student("Stranger", library=other_library, branch=other_branch)
    with pytest.raises(NotFound):
        get_student_for_library(library, stranger.pk)


def test_update_student_checks_duplicates(library, make_student):
    first = make_student(phone="9000000001")
    second = make_student(phone="9000000002")

    with pytest.raises(ValidationFailed):
        StudentService.update_student(library, second.pk, {'phone': first.phone})

    updated = StudentService.update_student(library, second.pk, {'city': "Nashik"})
    assert updated.city == "Nashik"


def test_block_and_unblock(library, student):
    assert StudentService.set_student_blocked(library, student.pk, True).is_blocked
    assert not StudentService.set_student_blocked(library, student.pk, False).is_blocked


def test_govt_id_verification_needs_upload(library, student):
    with pytest.raises(ValidationFailed):
        StudentService.verify_student_govt_id(library, student.pk, 'VERIFIED')
    with pytest.raises(ValidationFailed):
        StudentService.verify_student_govt_id(library, student.pk, 'MAYBE')


def test_notes(library, student):
    note = StudentService.add_student_note(library, student.pk, " Prefers window seat ", "Owner")
    assert note.content == "Prefers window seat"
    assert note.created_by == "Owner"

    with pytest.raises(ValidationFailed):
        StudentService.add_student_note(library, student.pk, "   ", "Owner")

    StudentService.delete_student_note(library, note.pk)
    assert not student.notes.exists()


def test_ticket_lifecycle(library, student):
    ticket = SupportTicketService.open_ticket(library, student.pk, "Fan broken", "Row 3 fan is off")
    assert ticket.status == 'OPEN'

    ticket = SupportTicketService.update_ticket_status(library, ticket.pk, 'IN_PROGRESS')
    assert ticket.resolved_at is None

    ticket = SupportTicketService.update_ticket_status(library, ticket.pk, 'RESOLVED')
    assert ticket.resolved_at is not None

    ticket = SupportTicketService.update_ticket_status(library, ticket.pk, 'OPEN')
    assert ticket.resolved_at is None


def test_closed_ticket_is_terminal(library, student):
    ticket = SupportTicketService.open_ticket(library, student.pk, "Wifi", "Slow in the evening")
    SupportTicketService.update_ticket_status(library, ticket.pk, 'CLOSED')

    with pytest.raises(InvalidTransition):
        SupportTicketService.update_ticket_status(library, ticket.pk, 'OPEN')


def test_ticket_needs_subject_and_known_category(library, student):
    with pytest.raises(ValidationFailed):
        SupportTicketService.open_ticket(library, student.pk, "", "Text")
    with pytest.raises(ValidationFailed):
        SupportTicketService.open_ticket(library, student.pk, "Subject", "Text", category='RANDOM')


def test_student_details(library, student, make_subscription, plan):
    make_subscription(student)
    StudentService.add_student_note(library, student.pk, "Paid in cash", "Staff")

    details = StudentService.get_student_details(library, student.pk)

    assert details['status'] == 'active'
    assert len(details['subscriptions']) == 1
    assert len(details['notes']) == 1
    assert details['stats']['active_plan'] == plan.name
    assert details['stats']['total_attendance'] == 0
    assert details['stats']['last_active'] is None


def test_student_details_include_change_history(library, other_library, other_branch, student,
                                                make_student, make_subscription):
    StudentService.set_student_blocked(library, student.pk, True)

    actions = {entry.action for entry in StudentService.get_student_details(library, student.pk)['history']}
    assert {'CREATE', 'UPDATE'} <= actions

    visitor = make_student("Visitor", library=other_library, branch=other_branch)
    make_subscription(visitor)
    assert StudentService.get_student_details(library, visitor.pk)['history'] == []


# -------------------------------------------------------------------------
# DELETION
# -------------------------------------------------------------------------

def test_delete_student_with_owner_recorded_history(library, owner, student, plan):
    PaymentService.create_manual_payment(owner, student.pk, '1000', 'UPI', 'SUBSCRIPTION', plan_id=plan.pk)
    StudentService.add_student_note(library, student.pk, "Moving away", "Owner")

    assert StudentService.delete_student(library, student.pk) is True

    assert not Student.objects.filter(pk=student.pk).exists()
    assert not Payment.objects.exists()
    assert not Subscription.objects.exists()


def test_delete_refused_while_staff_collected_payments_exist(library, staff, student):
    PaymentService.collect_payment(staff, student.pk, '300', 'CASH', 'OTHER')

    with pytest.raises(ValidationFailed, match="collected by staff"):
        StudentService.delete_student(library, student.pk)
    assert Payment.objects.count() == 1


def test_delete_keeps_other_library_ledger_intact(
    library, branch, staff, owner, other_library, other_branch, make_student, make_subscription
):
    """A library cannot remove cash another library's staff already handed over"""
    visitor = make_student("Visitor", library=other_library, branch=other_branch)
    subscription = make_subscription(visitor)
    Payment.objects.create(
        library=library, student=visitor, branch=branch, subscription=subscription,
        amount=Decimal('500'), method='CASH', status='COMPLETED', payment_type='SUBSCRIPTION',
        payment_date=timezone.now(), collected_by=staff,
    )
    handover = CashLedgerService.submit_handover(staff, '500', 'CASH')
    CashLedgerService.verify_handover(owner, handover.pk)

    with pytest.raises(ValidationFailed, match="another library"):
        StudentService.delete_student(other_library, visitor.pk)

    assert Student.objects.filter(pk=visitor.pk).exists()
    assert Subscription.objects.filter(pk=subscription.pk).exists()
    summary = CashLedgerService.get_staff_cash_summary(staff)
    assert summary.cash_in_hand == 0
    assert summary.available_balance == 0
