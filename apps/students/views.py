# students/views.py

"""
Student Management Views

- Student list page and its JSON endpoint
- Registration (using Wizard) and profile edits
- Profile with subscriptions, attendance, payments, notes and tickets
- Block / unblock, ID verification, deletion
- Excel / PDF export of the filtered list

All views delegate business logic to services.py.
Staff members only ever see the students of their own branch.
"""

from django.shortcuts import render, redirect
from django.contrib import messages
from django.http import HttpResponse
from django.core.files.storage import FileSystemStorage
from django.utils import timezone
from django.utils.decorators import method_decorator
from django.views.decorators.http import require_POST, require_GET
from formtools.wizard.views import SessionWizardView
from io import BytesIO
import os
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER

from accounts.decorators import owner_required, member_required
from utils.exceptions import LibraryDeskError
from utils.forms import get_form_errors_as_string
from utils.utils import run_service, json_result, parse_request_data

from .filters import (
    StudentFilter,
    list_students,
    all_status_rows,
    count_students_by_status,
    student_row_to_dict,
)
from .forms import (
    STUDENT_WIZARD_FORMS,
    STUDENT_WIZARD_STEP_NAMES,
    StudentFilterForm,
    StudentForm,
    StudentNoteForm,
    SupportTicketForm,
)
from .services import StudentService, SupportTicketService, get_student_for_library

logger = logging.getLogger(__name__)

EXPORT_HEADERS = ['Name', 'Phone', 'Email', 'Status', 'Plan', 'Branch', 'Seat', 'Joined']


# =============================================================================
# HELPERS
# =============================================================================

def scoped_filter(request):
    """List filter from the query string; staff are pinned to their branch"""
    filters = StudentFilter.from_request(request)
    profile = request.profile
    if profile.is_staff_member and profile.branch_id:
        filters.branch_id = str(profile.branch_id)
    return filters


def note_author(profile):
    return f"{profile.get_role_display()}: {profile.full_name}"


def _visible_student(request, pk):
    """Tenant student, or None when a staff member looks outside their branch"""
    try:
        student = get_student_for_library(request.library, pk)
    except LibraryDeskError:
        return None

    profile = request.profile
    if profile.is_staff_member and profile.branch_id:
        in_branch = (
            student.branch_id == profile.branch_id
            or student.subscriptions.filter(library=request.library, branch_id=profile.branch_id).exists()
        )
        if not in_branch:
            return None
    return student


def _student_not_found(request):
    messages.error(request, "Student not found.")
    return redirect('students:student_list')


def _export_row(student):
    return [
        student.name,
        student.phone or '',
        student.email or '',
        student.status.replace('_', ' ').title(),
        student.current_plan or '',
        student.current_branch or '',
        student.seat_number,
        timezone.localtime(student.created_at).strftime('%Y-%m-%d'),
    ]


# =============================================================================
# STUDENT LIST
# =============================================================================

@member_required
def student_list(request):
    try:
        filters = scoped_filter(request)
    except LibraryDeskError as e:
        messages.error(request, e.message)
        filters = StudentFilter()

    page = list_students(request.library, filters)
    context = {
        'filter_form': StudentFilterForm(request.GET or None, library=request.library),
        'students': page['students'],
        'total': page['total'],
        'pages': page['pages'],
        'page': filters.page,
        'counts': count_students_by_status(request.library, filters.branch_id),
        'title': 'Students',
    }
    return render(request, 'students/student_list.html', context)


@member_required
@require_GET
def student_list_json(request):
    """GET ?search=&branch=&status=&page=&limit="""
    try:
        filters = scoped_filter(request)
    except LibraryDeskError as e:
        return json_result(e.as_dict())

    result = run_service(list_students, request.library, filters)
    if result['success']:
        page = result['data']
        result['data'] = {
            'students': [student_row_to_dict(student) for student in page['students']],
            'total': page['total'],
            'pages': page['pages'],
            'page': filters.page,
        }
    return json_result(result)


# =============================================================================
# STUDENT WIZARD FOR CREATION
# =============================================================================

class StudentWizardFileStorage(FileSystemStorage):
    """Custom storage for handling file uploads in wizard"""
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.location = os.path.join(self.location, 'wizard_temp')


@method_decorator(member_required, name='dispatch')
class StudentCreateWizard(SessionWizardView):
    """
    Multi-step wizard for registering a student.

    Steps:
    1. Basic Information - name, home branch, date of birth, password
    2. Contact Information - phone, email, address and guardian
    3. Documents - photo, government ID and confirmation
    """

    form_list = STUDENT_WIZARD_FORMS
    template_name = 'students/wizard.html'
    file_storage = StudentWizardFileStorage()

    def get_template_names(self):
        return [self.template_name]

    def get_context_data(self, form, **kwargs):
        """Add step names and progress tracking"""
        context = super().get_context_data(form=form, **kwargs)

        total_steps = len(self.form_list)
        current_step_index = list(self.form_list).index(self.steps.current)

        context.update({
            'step_names': STUDENT_WIZARD_STEP_NAMES,
            'current_step_name': STUDENT_WIZARD_STEP_NAMES.get(self.steps.current, 'Step'),
            'progress_percentage': (current_step_index / (total_steps - 1)) * 100 if total_steps > 1 else 100,
        })

        if self.steps.current == 'documents':
            context['basic_data'] = self.get_cleaned_data_for_step('basic_info')
            context['contact_data'] = self.get_cleaned_data_for_step('contact_info')

        return context

    def get_form_kwargs(self, step=None):
        kwargs = super().get_form_kwargs(step)
        if step == 'basic_info':
            kwargs['library'] = self.request.library
        return kwargs

    def done(self, form_list, **kwargs):
        form_data = {}
        for form in form_list:
            form_data.update(form.cleaned_data)

        branch = form_data.pop('branch', None)
        form_data['branch_id'] = branch.pk if branch else None
        files = {
            'photo': form_data.pop('photo', None),
            'govt_id': form_data.pop('govt_id', None),
        }
        form_data.pop('confirm_creation', None)

        result = run_service(StudentService.register_student, self.request.library, form_data, files)
        if not result['success']:
            messages.error(self.request, result['error'])
            return redirect('students:student_create')

        student = result['data']
        messages.success(self.request, f"Student '{student.name}' registered successfully.")
        return redirect('students:student_profile', pk=student.pk)


student_create = StudentCreateWizard.as_view()


# =============================================================================
# PROFILE
# =============================================================================

@member_required
def student_profile(request, pk):
    student = _visible_student(request, pk)
    if student is None:
        return _student_not_found(request)

    details = StudentService.get_student_details(request.library, pk)
    details.update({
        'note_form': StudentNoteForm(),
        'ticket_form': SupportTicketForm(),
        'title': student.name,
    })
    return render(request, 'students/student_profile.html', details)


@owner_required
def student_edit(request, pk):
    student = _visible_student(request, pk)
    if student is None or student.library_id != request.library.pk:
        return _student_not_found(request)

    if request.method == 'POST':
        form = StudentForm(request.POST, instance=student, library=request.library)
        if form.is_valid():
            data = dict(form.cleaned_data)
            branch = data.pop('branch')
            data['branch_id'] = branch.pk
            result = run_service(StudentService.update_student, request.library, pk, data)
            if result['success']:
                messages.success(request, f"Student '{result['data'].name}' updated.")
                return redirect('students:student_profile', pk=pk)
            messages.error(request, result['error'])
        else:
            messages.error(request, get_form_errors_as_string(form))
    else:
        form = StudentForm(instance=student, library=request.library)

    context = {'form': form, 'student': student, 'title': f'Edit {student.name}'}
    return render(request, 'students/student_form.html', context)


# =============================================================================
# ACTIONS
# =============================================================================

@owner_required
@require_POST
def student_block(request, pk):
    """Body: is_blocked (true/false); toggles when omitted"""
    try:
        data = parse_request_data(request)
        student = get_student_for_library(request.library, pk)
    except LibraryDeskError as e:
        return json_result(e.as_dict())

    value = data.get('is_blocked')
    if value is None:
        is_blocked = not student.is_blocked
    else:
        is_blocked = value is True or str(value).lower() in ('true', '1', 'on')

    result = run_service(StudentService.set_student_blocked, request.library, pk, is_blocked)
    if result['success']:
        result['data'] = {'id': str(pk), 'is_blocked': result['data'].is_blocked}
        result['message'] = 'Student blocked' if is_blocked else 'Student unblocked'
    return json_result(result)


@owner_required
@require_POST
def student_verify_id(request, pk):
    try:
        data = parse_request_data(request)
    except LibraryDeskError as e:
        return json_result(e.as_dict())

    result = run_service(
        StudentService.verify_student_govt_id, request.library, pk, (data.get('status') or '').upper()
    )
    if result['success']:
        result['data'] = {'id': str(pk), 'govt_id_status': result['data'].govt_id_status}
    return json_result(result)


@owner_required
@require_POST
def student_delete(request, pk):
    result = run_service(StudentService.delete_student, request.library, pk)
    if result['success']:
        result['message'] = 'Student deleted'
    return json_result(result)


# =============================================================================
# NOTES & TICKETS
# =============================================================================

@member_required
@require_POST
def student_add_note(request, pk):
    if _visible_student(request, pk) is None:
        return json_result({'success': False, 'error': 'Student not found', 'code': 'not_found'})

    try:
        data = parse_request_data(request)
    except LibraryDeskError as e:
        return json_result(e.as_dict())

    result = run_service(
        StudentService.add_student_note,
        request.library,
        pk,
        data.get('content'),
        note_author(request.profile),
    )
    if result['success']:
        note = result['data']
        result['data'] = {
            'id': str(note.pk),
            'content': note.content,
            'created_by': note.created_by,
            'created_at': note.created_at,
        }
    return json_result(result)


@owner_required
@require_POST
def student_delete_note(request, note_pk):
    return json_result(run_service(StudentService.delete_student_note, request.library, note_pk))


@member_required
@require_POST
def ticket_create(request, pk):
    if _visible_student(request, pk) is None:
        return json_result({'success': False, 'error': 'Student not found', 'code': 'not_found'})

    try:
        data = parse_request_data(request)
    except LibraryDeskError as e:
        return json_result(e.as_dict())

    result = run_service(
        SupportTicketService.open_ticket,
        request.library,
        pk,
        data.get('subject'),
        data.get('description'),
        data.get('category') or 'GENERAL',
    )
    if result['success']:
        result['data'] = {'id': str(result['data'].pk), 'status': result['data'].status}
    return json_result(result)


@member_required
@require_POST
def ticket_update_status(request, ticket_pk):
    try:
        data = parse_request_data(request)
    except LibraryDeskError as e:
        return json_result(e.as_dict())

    result = run_service(
        SupportTicketService.update_ticket_status,
        request.library,
        ticket_pk,
        (data.get('status') or '').upper(),
    )
    if result['success']:
        result['data'] = {'id': str(result['data'].pk), 'status': result['data'].status}
    return json_result(result)


@member_required
def ticket_list(request):
    branch_id = request.profile.branch_id if request.profile.is_staff_member else None
    context = {
        'tickets': SupportTicketService.get_open_tickets(request.library, branch_id),
        'title': 'Support Tickets',
    }
    return render(request, 'students/ticket_list.html', context)


# =============================================================================
# EXPORT FUNCTIONS
# =============================================================================

@member_required
def export_students_excel(request):
    """Export the filtered student list to Excel"""
    try:
        filters = scoped_filter(request)
    except LibraryDeskError as e:
        return json_result(e.as_dict())

    students = all_status_rows(request.library, filters)

    wb = Workbook()
    ws = wb.active
    ws.title = "Students"
    ws.append(EXPORT_HEADERS)

    for cell in ws[1]:
        cell.fill = PatternFill(start_color='4472C4', end_color='4472C4', fill_type='solid')
        cell.font = Font(bold=True, color='FFFFFF')

    for student in students:
        ws.append(_export_row(student))

    response = HttpResponse(
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
    response['Content-Disposition'] = f'attachment; filename="students_{timezone.now().strftime("%Y%m%d")}.xlsx"'

    wb.save(response)
    logger.info(f"Exported {len(students)} students to Excel for library {request.library.pk}")
    return response


@member_required
def export_students_pdf(request):
    """Export the filtered student list to PDF"""
    try:
        filters = scoped_filter(request)
    except LibraryDeskError as e:
        return json_result(e.as_dict())

    students = all_status_rows(request.library, filters)

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=landscape(A4))
    elements = []

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'CustomTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor('#1a1a1a'),
        spaceAfter=20,
        alignment=TA_CENTER
    )

    elements.append(Paragraph(f'{request.library.display_name} - Students', title_style))
    elements.append(Spacer(1, 12))

    data = [EXPORT_HEADERS]
    for student in students:
        row = _export_row(student)
        row[0] = row[0][:30]
        row[2] = row[2][:30]
        data.append(row)

    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#4472C4')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
        ('BACKGROUND', (0, 1), (-1, -1), colors.beige),
        ('GRID', (0, 0), (-1, -1), 1, colors.black)
    ]))

    elements.append(table)
    doc.build(elements)

    buffer.seek(0)
    response = HttpResponse(buffer, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="students_{timezone.now().strftime("%Y%m%d")}.pdf"'
    return response
