# subscriptions/views.py

"""
Subscription endpoints: plan catalogue, seat/locker assignment and expiry
lists.

Assignment calls answer with the updated subscription so the caller can
refresh its row in place.
"""

from django.shortcuts import render, redirect
from django.contrib import messages
from django.views.decorators.http import require_POST, require_GET
import logging

from accounts.decorators import member_required, owner_required
from core.utils import get_library_today
from utils.exceptions import LibraryDeskError
from utils.utils import run_service, json_result, get_for_library, parse_request_data, parse_int
from .forms import PlanForm
from .models import Plan
from .services import (
    PlanService, SubscriptionService, SubscriptionExpiryService, plan_to_dict, subscription_to_dict,
)

logger = logging.getLogger(__name__)


def _branch_scope(request):
    """Staff are limited to their own branch"""
    profile = request.profile
    if profile.is_staff_member and profile.branch_id:
        return str(profile.branch_id)
    return request.GET.get('branch') or None


def _subscription_result(result, message):
    if result['success']:
        result['data'] = subscription_to_dict(result['data'])
        result['message'] = message
    return json_result(result)


# =============================================================================
# SEAT & LOCKER ASSIGNMENT
# =============================================================================

@member_required
@require_POST
def assign_seat(request, pk):
    try:
        data = parse_request_data(request)
    except LibraryDeskError as e:
        return json_result(e.as_dict())
    result = run_service(SubscriptionService.assign_seat, request.library, pk, data.get('seat_id'))
    return _subscription_result(result, 'Seat assigned')


@member_required
@require_POST
def unassign_seat(request, pk):
    result = run_service(SubscriptionService.unassign_seat, request.library, pk)
    return _subscription_result(result, 'Seat released')


@member_required
@require_POST
def assign_locker(request, pk):
    try:
        data = parse_request_data(request)
    except LibraryDeskError as e:
        return json_result(e.as_dict())
    result = run_service(SubscriptionService.assign_locker, request.library, pk, data.get('locker_id'))
    return _subscription_result(result, 'Locker assigned')


@member_required
@require_POST
def unassign_locker(request, pk):
    result = run_service(SubscriptionService.unassign_locker, request.library, pk)
    return _subscription_result(result, 'Locker released')


@member_required
@require_GET
def eligible_subscriptions(request):
    """Running subscriptions without a seat, for the seat picker"""
    branch_id = _branch_scope(request)
    if not branch_id:
        return json_result({'success': False, 'error': 'Branch is required', 'code': 'validation_error'})
    result = run_service(SubscriptionService.get_eligible_subscriptions, request.library, branch_id)
    if result['success']:
        result['data'] = [subscription_to_dict(sub) for sub in result['data']]
    return json_result(result)


# =============================================================================
# EXPIRY LISTS
# =============================================================================

@member_required
def expiring_subscriptions(request):
    """Expiring soon and recently expired, ``?days=`` window (default 7)"""
    library = request.library
    days = min(max(parse_int(request.GET.get('days'), 7), 1), 90)
    branch_id = _branch_scope(request)
    today = get_library_today(library)

    expiring = SubscriptionExpiryService.get_expiring_subscriptions(library, days, branch_id, today)
    expired = SubscriptionExpiryService.get_recently_expired_subscriptions(library, days, branch_id, today)

    if request.GET.get('format') == 'json':
        return json_result({
            'success': True,
            'data': {
                'expiring': [subscription_to_dict(sub, today) for sub in expiring],
                'expired': [subscription_to_dict(sub) for sub in expired],
            },
        })

    context = {
        'expiring': expiring,
        'expired': expired,
        'days': days,
        'today': today,
        'title': 'Expiring Subscriptions',
    }
    return render(request, 'subscriptions/expiring.html', context)


# =============================================================================
# PLANS
# =============================================================================

@owner_required
def plan_list(request):
    """Plan catalogue, ``?format=json`` for pickers"""
    plans = PlanService.get_owner_plans(request.library, request.GET.get('branch') or None)

    if request.GET.get('format') == 'json':
        return json_result({'success': True, 'data': [plan_to_dict(plan) for plan in plans]})

    return render(request, 'subscriptions/plan_list.html', {'plans': plans, 'title': 'Plans'})


@owner_required
def plan_create(request):
    if request.method == 'POST':
        form = PlanForm(request.POST, library=request.library)
        if form.is_valid():
            result = run_service(PlanService.create_plan, request.library, form.cleaned_data)
            if result['success']:
                messages.success(request, f"Plan '{result['data'].name}' created.")
                return redirect('subscriptions:plan_list')
            messages.error(request, result['error'])
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        form = PlanForm(library=request.library)

    return render(request, 'subscriptions/plan_form.html', {'form': form, 'title': 'Add Plan'})


@owner_required
def plan_edit(request, pk):
    try:
        plan = get_for_library(Plan, request.library, pk, label='Plan')
    except LibraryDeskError as e:
        messages.error(request, e.message)
        return redirect('subscriptions:plan_list')

    if request.method == 'POST':
        form = PlanForm(request.POST, instance=plan, library=request.library)
        if form.is_valid():
            result = run_service(PlanService.update_plan, request.library, pk, form.cleaned_data)
            if result['success']:
                messages.success(request, f"Plan '{result['data'].name}' updated.")
                return redirect('subscriptions:plan_list')
            messages.error(request, result['error'])
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        form = PlanForm(instance=plan, library=request.library)

    context = {'form': form, 'plan': plan, 'title': f'Edit {plan.name}'}
    return render(request, 'subscriptions/plan_form.html', context)


@owner_required
@require_POST
def plan_delete(request, pk):
    result = run_service(PlanService.delete_plan, request.library, pk)
    if result['success']:
        result['message'] = 'Plan deleted'
    return json_result(result)
