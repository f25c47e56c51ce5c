# branches/views.py

"""
Branch Management Views

- Branch list, create, edit, delete and QR rotation (owner)
- Seat and locker grids (owner, staff for their branch)
- Seat and locker creation / deletion
"""

from django.shortcuts import render, redirect
from django.contrib import messages
from django.views.decorators.http import require_POST, require_GET
import logging

from accounts.decorators import owner_required, member_required
from utils.exceptions import LibraryDeskError
from utils.forms import get_form_errors_as_dict, get_form_errors_as_string
from utils.utils import run_service, json_result, get_for_library, parse_int
from .forms import BranchForm, SeatForm, BulkSeatForm, LockerForm
from .models import Branch
from .services import BranchService, SeatService, LockerService

logger = logging.getLogger(__name__)


def _form_error(form):
    return json_result({
        'success': False,
        'error': get_form_errors_as_string(form),
        'errors': get_form_errors_as_dict(form),
        'code': 'validation_error',
    })


def _scoped_branch(request, pk):
    """Tenant branch; staff may only open their own"""
    profile = request.profile
    if profile.is_staff_member and profile.branch_id and str(profile.branch_id) != str(pk):
        return None
    try:
        return get_for_library(Branch, request.library, pk)
    except LibraryDeskError:
        return None


# =============================================================================
# BRANCHES
# =============================================================================

@owner_required
def branch_list(request):
    context = {
        'branches': BranchService.get_branch_overview(request.library),
        'title': 'Branches',
    }
    return render(request, 'branches/branch_list.html', context)


@owner_required
def branch_create(request):
    if request.method == 'POST':
        form = BranchForm(request.POST)
        if form.is_valid():
            seat_count = max(parse_int(request.POST.get('seat_count'), 0), 0)
            result = run_service(BranchService.create_branch, request.library, form.cleaned_data, seat_count)
            if result['success']:
                messages.success(request, f"Branch '{result['data'].name}' created.")
                return redirect('branches:branch_list')
            messages.error(request, result['error'])
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        form = BranchForm()

    return render(request, 'branches/branch_form.html', {'form': form, 'title': 'Add Branch'})


@owner_required
def branch_edit(request, pk):
    branch = _scoped_branch(request, pk)
    if branch is None:
        messages.error(request, "Branch not found.")
        return redirect('branches:branch_list')

    if request.method == 'POST':
        form = BranchForm(request.POST, instance=branch)
        if form.is_valid():
            result = run_service(BranchService.update_branch, request.library, pk, form.cleaned_data)
            if result['success']:
                messages.success(request, f"Branch '{result['data'].name}' updated.")
                return redirect('branches:branch_list')
            messages.error(request, result['error'])
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        form = BranchForm(instance=branch)

    context = {'form': form, 'branch': branch, 'title': f'Edit {branch.name}'}
    return render(request, 'branches/branch_form.html', context)


@owner_required
@require_POST
def branch_delete(request, pk):
    result = run_service(BranchService.delete_branch, request.library, pk)
    if result['success']:
        result['message'] = 'Branch deleted'
    return json_result(result)


@owner_required
@require_POST
def regenerate_qr(request, pk):
    result = run_service(BranchService.regenerate_qr_code, request.library, pk)
    if result['success']:
        branch = result['data']
        result['data'] = {'id': str(branch.pk), 'qr_code': branch.qr_code, 'payload': branch.get_qr_payload()}
        result['message'] = 'QR code regenerated. Print the new poster.'
    return json_result(result)


# =============================================================================
# SEATS
# =============================================================================

@member_required
@require_GET
def seat_grid(request, pk):
    branch = _scoped_branch(request, pk)
    if branch is None:
        return json_result({'success': False, 'error': 'Branch not found', 'code': 'not_found'})
    return json_result({'success': True, 'data': SeatService.get_seat_grid(branch)})


@owner_required
@require_POST
def seat_create(request, pk):
    branch = _scoped_branch(request, pk)
    if branch is None:
        return json_result({'success': False, 'error': 'Branch not found', 'code': 'not_found'})

    form = SeatForm(request.POST)
    if not form.is_valid():
        return _form_error(form)

    result = run_service(
        SeatService.create_seat, branch, form.cleaned_data['number'], form.cleaned_data.get('section')
    )
    if result['success']:
        result['data'] = {'id': str(result['data'].pk), 'number': result['data'].display_number}
    return json_result(result)


@owner_required
@require_POST
def seat_bulk_create(request, pk):
    branch = _scoped_branch(request, pk)
    if branch is None:
        return json_result({'success': False, 'error': 'Branch not found', 'code': 'not_found'})

    form = BulkSeatForm(request.POST)
    if not form.is_valid():
        return _form_error(form)

    data = form.cleaned_data
    result = run_service(
        SeatService.bulk_create_seats,
        branch,
        data['count'],
        start=data['start'] if data.get('start') is not None else 1,
        section=data.get('section') or '',
        prefix=data.get('prefix') or '',
    )
    if result['success']:
        result['message'] = f"{len(result['data']['created'])} seat(s) created"
    return json_result(result)


@owner_required
@require_POST
def seat_delete(request, seat_id):
    return json_result(run_service(SeatService.delete_seat, request.library, seat_id))


@member_required
@require_GET
def seat_history(request, seat_id):
    result = run_service(SeatService.get_seat_history, request.library, seat_id)
    if result['success']:
        result['data'] = [
            {
                'subscription_id': str(sub.pk),
                'student_name': sub.student.name,
                'plan_name': sub.plan.name,
                'status': sub.status,
                'start_date': sub.start_date,
                'end_date': sub.end_date,
            }
            for sub in result['data']
        ]
    return json_result(result)


# =============================================================================
# LOCKERS
# =============================================================================

@member_required
@require_GET
def locker_grid(request, pk):
    branch = _scoped_branch(request, pk)
    if branch is None:
        return json_result({'success': False, 'error': 'Branch not found', 'code': 'not_found'})
    return json_result({'success': True, 'data': LockerService.get_locker_grid(branch)})


@owner_required
@require_POST
def locker_create(request, pk):
    branch = _scoped_branch(request, pk)
    if branch is None:
        return json_result({'success': False, 'error': 'Branch not found', 'code': 'not_found'})

    form = LockerForm(request.POST)
    if not form.is_valid():
        return _form_error(form)

    result = run_service(
        LockerService.create_locker, branch, form.cleaned_data['number'], form.cleaned_data.get('notes')
    )
    if result['success']:
        result['data'] = {'id': str(result['data'].pk), 'number': result['data'].number}
    return json_result(result)


@owner_required
@require_POST
def locker_delete(request, locker_id):
    return json_result(run_service(LockerService.delete_locker, request.library, locker_id))
