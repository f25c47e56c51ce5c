# students/services.py
"""
Business logic services for student management.
Handles registration, profile changes, notes and support tickets.

A student is visible to a library when the library registered them or
when they hold a subscription there. Only the registering library may
change or delete the student record itself.
"""

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Exists, OuterRef, ProtectedError, Q, Sum
from django.utils import timezone
from django.utils.dateparse import parse_date
import re
import logging

from attendance.models import Attendance
from branches.models import Branch
from fees.models import Payment
from subscriptions.models import Subscription
from utils.exceptions import InvalidTransition, NotFound, ValidationFailed
from utils.forms import PHONE_PATTERN
from utils.utils import get_for_library
from .models import Student, StudentNote, SupportTicket
from .status import derive_student_status, reference_date

logger = logging.getLogger(__name__)

PROFILE_FIELDS = [
    'name', 'email', 'phone', 'date_of_birth', 'gender',
    'address', 'area', 'city', 'state', 'pincode',
    'guardian_name', 'guardian_phone',
]

# Rows another library may hold for a student it did not register
STUDENT_HISTORY = [
    ('subscriptions', Subscription),
    ('payments', Payment),
    ('attendance', Attendance),
    ('notes', StudentNote),
    ('tickets', SupportTicket),
]


# =============================================================================
# LOOKUPS
# =============================================================================

def tenant_students(library):
    """Students registered by ``library`` or subscribed at one of its branches"""
    subscribed_here = Subscription.objects.filter(student=OuterRef('pk'), library=library)
    return Student.objects.filter(Q(library=library) | Q(Exists(subscribed_here)))


def get_student_for_library(library, student_id):
    if library is None or not student_id:
        raise NotFound("Student not found")
    try:
        return tenant_students(library).get(pk=student_id)
    except (Student.DoesNotExist, ValidationError, ValueError):
        raise NotFound("Student not found")


def get_owned_student(library, student_id):
    """Student registered by ``library``; others are reported as missing"""
    return get_for_library(Student, library, student_id, label='Student')


# =============================================================================
# VALIDATION
# =============================================================================

def _clean_text(value):
    return value.strip() if isinstance(value, str) else value


def _validate_phone(value, label='Phone number'):
    if value and not re.match(PHONE_PATTERN, value):
        raise ValidationFailed(f"{label} must be exactly 10 digits")


def _parse_dob(value):
    if not value:
        return None
    if isinstance(value, str):
        parsed = parse_date(value)
        if parsed is None:
            raise ValidationFailed("Enter a valid date of birth")
        return parsed
    return value


def _check_duplicates(library, email=None, phone=None, exclude=None):
    students = Student.objects.for_library(library)
    if exclude is not None:
        students = students.exclude(pk=exclude.pk)
    if email and students.filter(email__iexact=email).exists():
        raise ValidationFailed("Email already exists")
    if phone and students.filter(phone=phone).exists():
        raise ValidationFailed("Phone number already exists")


# =============================================================================
# STUDENT SERVICE
# =============================================================================

class StudentService:

    @staticmethod
    @transaction.atomic
    def register_student(library, data, files=None):
        """
        Register a student for ``library``.

        Args:
            data: dict with name, branch_id, email and/or phone, password
                and/or date_of_birth, plus optional profile fields
            files: optional dict with ``photo`` and ``govt_id`` uploads

        Returns:
            Student

        Raises:
            ValidationFailed: missing fields, malformed phone, duplicate
                email or phone
        """
        files = files or {}
        cleaned = {field: _clean_text(data.get(field)) for field in PROFILE_FIELDS}
        cleaned['email'] = (cleaned['email'] or '').lower() or None
        cleaned['phone'] = cleaned['phone'] or None
        password = data.get('password') or ''
        cleaned['date_of_birth'] = _parse_dob(cleaned['date_of_birth'])

        branch_id = data.get('branch_id') or data.get('branch')
        if hasattr(branch_id, 'pk'):
            branch_id = branch_id.pk

        if not cleaned['name'] or not branch_id:
            raise ValidationFailed("Name and branch are required")
        if not cleaned['email'] and not cleaned['phone']:
            raise ValidationFailed("Either email or phone number is required")
        if not password and not cleaned['date_of_birth']:
            raise ValidationFailed("Password or Date of Birth is required")

        _validate_phone(cleaned['phone'])
        _validate_phone(cleaned['guardian_phone'], 'Guardian phone number')

        branch = get_for_library(Branch, library, branch_id, label='Branch')
        _check_duplicates(library, cleaned['email'], cleaned['phone'])

        student = Student(library=library, branch=branch)
        for field, value in cleaned.items():
            if value is not None:
                setattr(student, field, value)

        # Without a password the date of birth (DDMMYYYY) is the first login secret
        student.set_password(password or cleaned['date_of_birth'].strftime('%d%m%Y'))

        if files.get('photo'):
            student.photo = files['photo']
        if files.get('govt_id'):
            student.govt_id = files['govt_id']
            student.govt_id_status = 'VERIFIED'

        student.full_clean(exclude=['password'])
        student.save()

        logger.info(f"Student registered: {student.name} ({student.pk}) at branch {branch.pk}")
        return student

    @staticmethod
    @transaction.atomic
    def update_student(library, student_id, data):
        student = get_owned_student(library, student_id)

        updates = {field: _clean_text(data[field]) for field in PROFILE_FIELDS if field in data}
        if 'email' in updates:
            updates['email'] = (updates['email'] or '').lower() or None
        if 'phone' in updates:
            updates['phone'] = updates['phone'] or None
        if 'date_of_birth' in updates:
            updates['date_of_birth'] = _parse_dob(updates['date_of_birth'])

        _validate_phone(updates.get('phone'))
        _validate_phone(updates.get('guardian_phone'), 'Guardian phone number')
        _check_duplicates(library, updates.get('email'), updates.get('phone'), exclude=student)

        for field, value in updates.items():
            if value is None and field not in ('email', 'phone', 'date_of_birth'):
                value = ''
            setattr(student, field, value)

        if 'branch_id' in data and data['branch_id']:
            student.branch = get_for_library(Branch, library, data['branch_id'], label='Branch')

        student.full_clean(exclude=['password'])
        student.save()
        logger.info(f"Student updated: {student.name} ({student.pk})")
        return student

    @staticmethod
    @transaction.atomic
    def set_student_blocked(library, student_id, is_blocked):
        student = get_owned_student(library, student_id)
        student.is_blocked = bool(is_blocked)
        student.save()
        logger.info(f"Student {student.pk} {'blocked' if student.is_blocked else 'unblocked'}")
        return student

    @staticmethod
    @transaction.atomic
    def verify_student_govt_id(library, student_id, status):
        if status not in ('VERIFIED', 'REJECTED'):
            raise ValidationFailed("Status must be VERIFIED or REJECTED")

        student = get_owned_student(library, student_id)
        if not student.govt_id:
            raise ValidationFailed("No government ID uploaded")

        student.govt_id_status = status
        student.save()
        logger.info(f"Government ID of student {student.pk} marked {status}")
        return student

    @staticmethod
    @transaction.atomic
    def delete_student(library, student_id):
        """
        Delete a student registered by ``library`` together with its
        history in ``library``.

        Refused while another library holds any history for the student,
        and while staff-collected payments still back a cash ledger.
        """
        student = get_owned_student(library, student_id)
        name = student.name

        elsewhere = [
            label for label, model in STUDENT_HISTORY
            if model.objects.filter(student=student).exclude(library=library).exists()
        ]
        if elsewhere:
            raise ValidationFailed(
                f"Cannot delete {name}: another library holds their {', '.join(elsewhere)}"
            )

        collected = Payment.objects.filter(student=student, collected_by__isnull=False).count()
        if collected:
            raise ValidationFailed(
                f"Cannot delete {name}: {collected} payment(s) were collected by staff. "
                f"Block the student instead."
            )

        for payment in Payment.objects.for_library(library).filter(student=student):
            payment.delete()
        try:
            student.delete()
        except ProtectedError:
            raise ValidationFailed(f"Cannot delete {name}: it has payment records")

        logger.info(f"Student deleted: {name} ({student_id})")
        return True

    # -------------------------------------------------------------------------
    # NOTES
    # -------------------------------------------------------------------------

    @staticmethod
    def add_student_note(library, student_id, content, author):
        content = (content or '').strip()
        if not content:
            raise ValidationFailed("Note cannot be empty")

        student = get_student_for_library(library, student_id)
        note = StudentNote.objects.create(
            library=library, student=student, content=content, created_by=author or ''
        )
        logger.info(f"Note added to student {student.pk}")
        return note

    @staticmethod
    def delete_student_note(library, note_id):
        note = get_for_library(StudentNote, library, note_id, label='Note')
        note.delete()
        return True

    # -------------------------------------------------------------------------
    # DETAILS
    # -------------------------------------------------------------------------

    @staticmethod
    def get_student_details(library, student_id, now=None):
        """
        Profile bundle: subscriptions, last 50 attendance records,
        payments, notes, tickets and the record's change history, all
        scoped to ``library``.
        """
        now = now or timezone.now()
        student = get_student_for_library(library, student_id)

        subscriptions = list(
            Subscription.objects.for_library(library)
            .filter(student=student)
            .select_related('plan', 'branch', 'seat', 'locker')
            .order_by('-start_date')
        )
        attendance = list(
            Attendance.objects.for_library(library)
            .filter(student=student)
            .select_related('branch')
            .order_by('-date', '-check_in')[:50]
        )
        payments = list(
            Payment.objects.for_library(library)
            .filter(student=student)
            .select_related('subscription__plan', 'additional_fee', 'branch')
            .order_by('-payment_date')
        )
        notes = list(StudentNote.objects.for_library(library).filter(student=student).order_by('-created_at'))
        tickets = list(SupportTicket.objects.for_library(library).filter(student=student).order_by('-created_at'))
        # The record's own trail belongs to the registering library
        history = list(student.get_history(limit=10)) if student.library_id == library.pk else []

        total_spent = (
            Payment.objects.for_library(library)
            .filter(student=student, status='COMPLETED')
            .aggregate(total=Sum('amount'))['total']
        ) or 0
        total_attendance = Attendance.objects.for_library(library).filter(student=student).count()

        today = reference_date(now, library)
        result = derive_student_status(student, subscriptions, now=now, today=today)
        active = next(
            (sub for sub in subscriptions if sub.status == 'ACTIVE' and sub.end_date >= today),
            None,
        )

        return {
            'student': student,
            'status': result.status,
            'subscriptions': subscriptions,
            'attendance': attendance,
            'payments': payments,
            'notes': notes,
            'tickets': tickets,
            'history': history,
            'stats': {
                'total_attendance': total_attendance,
                'total_spent': total_spent,
                'active_plan': active.plan.name if active else 'None',
                'last_active': attendance[0].date if attendance else None,
            },
        }


# =============================================================================
# SUPPORT TICKET SERVICE
# =============================================================================

class SupportTicketService:

    TRANSITIONS = {
        'OPEN': {'IN_PROGRESS', 'RESOLVED', 'CLOSED'},
        'IN_PROGRESS': {'OPEN', 'RESOLVED', 'CLOSED'},
        'RESOLVED': {'OPEN', 'CLOSED'},
        'CLOSED': set(),
    }

    @staticmethod
    def open_ticket(library, student_id, subject, description, category='GENERAL'):
        subject = (subject or '').strip()
        description = (description or '').strip()
        if not subject or not description:
            raise ValidationFailed("Subject and description are required")
        if category not in dict(SupportTicket.CATEGORY_CHOICES):
            raise ValidationFailed(f"Unknown category: {category}")

        student = get_student_for_library(library, student_id)
        ticket = SupportTicket.objects.create(
            library=library,
            student=student,
            subject=subject,
            description=description,
            category=category,
        )
        logger.info(f"Support ticket {ticket.pk} opened for student {student.pk}")
        return ticket

    @staticmethod
    @transaction.atomic
    def update_ticket_status(library, ticket_id, status):
        ticket = get_for_library(SupportTicket, library, ticket_id, label='Ticket')
        if status == ticket.status:
            return ticket
        if status not in SupportTicketService.TRANSITIONS.get(ticket.status, set()):
            raise InvalidTransition(
                f"Cannot move ticket from {ticket.get_status_display()} to {status}"
            )

        ticket.status = status
        ticket.resolved_at = timezone.now() if status in ('RESOLVED', 'CLOSED') else None
        ticket.save()
        logger.info(f"Ticket {ticket.pk} moved to {status}")
        return ticket

    @staticmethod
    def get_open_tickets(library, branch_id=None):
        tickets = (
            SupportTicket.objects.for_library(library)
            .filter(status__in=['OPEN', 'IN_PROGRESS'])
            .select_related('student')
            .order_by('created_at')
        )
        if branch_id:
            tickets = tickets.filter(student__branch_id=branch_id)
        return list(tickets)
