# fees/views.py

"""
Fee Management Views

- Payment list with filters, Excel / CSV export (owner)
- Payment collection at the desk (staff)
- Manual payments and payment verification (owner; staff verify for their branch)
- Invoice PDF
- Additional fees
- Finance statistics JSON for the dashboard charts
"""

from django.shortcuts import render, redirect
from django.contrib import messages
from django.views.decorators.http import require_POST, require_GET
import logging

from accounts.decorators import owner_required, staff_required, member_required
from utils.exceptions import LibraryDeskError
from utils.forms import get_form_errors_as_dict, get_form_errors_as_string
from utils.utils import (
    get_for_library, json_result, paginate_queryset, parse_int, parse_request_data, run_service,
)

from .exports import export_payments_csv, export_payments_excel
from .forms import AdditionalFeeForm, ManualPaymentForm, PaymentCollectionForm, PaymentFilterForm
from .invoices import invoice_response
from .models import AdditionalFee, Payment
from .services import PaymentService, get_finance_stats, get_revenue_by_month, get_revenue_by_method

logger = logging.getLogger(__name__)


def payment_to_dict(payment):
    return {
        'id': str(payment.pk),
        'invoice_number': payment.invoice_number,
        'student_id': str(payment.student_id),
        'student_name': payment.student.name,
        'branch_name': payment.branch.name,
        'description': payment.description,
        'amount': payment.amount,
        'discount': payment.discount,
        'method': payment.method,
        'status': payment.status,
        'payment_type': payment.payment_type,
        'payment_date': payment.payment_date,
        'subscription_id': str(payment.subscription_id) if payment.subscription_id else None,
    }


def _form_error(form):
    return json_result({
        'success': False,
        'error': get_form_errors_as_string(form),
        'errors': get_form_errors_as_dict(form),
        'code': 'validation_error',
    })


def _payment_filters(request):
    form = PaymentFilterForm(request.GET or None, library=request.library)
    filters = form.service_filters() if form.is_bound and form.is_valid() else {}
    return form, filters


# =============================================================================
# PAYMENT LIST & EXPORTS
# =============================================================================

@owner_required
def payment_list(request):
    form, filters = _payment_filters(request)
    payments = PaymentService.get_transactions(request.library, filters)
    page_obj, paginator = paginate_queryset(request, payments, per_page=25)

    context = {
        'filter_form': form,
        'page_obj': page_obj,
        'payments': page_obj.object_list,
        'stats': get_finance_stats(request.library),
        'title': 'Payments',
    }
    return render(request, 'fees/payment_list.html', context)


@owner_required
def export_payments(request):
    """?format=excel (default) or csv, with the payment list filters"""
    _, filters = _payment_filters(request)
    payments = PaymentService.get_transactions(request.library, filters)
    if request.GET.get('format') == 'csv':
        return export_payments_csv(payments, library=request.library)
    return export_payments_excel(payments, library=request.library)


# =============================================================================
# COLLECTION & MANUAL PAYMENTS
# =============================================================================

@staff_required
@require_POST
def collect_payment(request):
    form = PaymentCollectionForm(request.POST, library=request.library, branch=request.profile.branch)
    if not form.is_valid():
        return _form_error(form)

    result = run_service(PaymentService.collect_payment, request.profile, **form.service_kwargs())
    if result['success']:
        result['data'] = payment_to_dict(result['data'])
        result['message'] = f"Payment {result['data']['invoice_number']} recorded"
    return json_result(result)


@owner_required
def manual_payment(request):
    if request.method == 'POST':
        form = ManualPaymentForm(request.POST, library=request.library)
        if form.is_valid():
            result = run_service(PaymentService.create_manual_payment, request.profile, **form.service_kwargs())
            if result['success']:
                messages.success(request, f"Payment {result['data'].invoice_number} recorded.")
                return redirect('fees:payment_list')
            messages.error(request, result['error'])
        else:
            messages.error(request, get_form_errors_as_string(form))
    else:
        form = ManualPaymentForm(library=request.library, initial={'student': request.GET.get('student')})

    return render(request, 'fees/payment_form.html', {'form': form, 'title': 'Record Payment'})


# =============================================================================
# VERIFICATION
# =============================================================================

@member_required
@require_GET
def pending_payments(request):
    branch_id = request.profile.branch_id if request.profile.is_staff_member else request.GET.get('branch')
    payments = PaymentService.get_pending_payments(request.library, branch_id or None)
    return json_result({'success': True, 'data': [payment_to_dict(payment) for payment in payments]})


@member_required
@require_POST
def verify_payment(request, pk):
    """Body: action = approve | reject"""
    try:
        data = parse_request_data(request)
    except LibraryDeskError as e:
        return json_result(e.as_dict())

    action = (data.get('action') or '').lower()
    if action not in ('approve', 'reject'):
        return json_result({'success': False, 'error': 'Action must be approve or reject', 'code': 'validation_error'})

    result = run_service(PaymentService.verify_payment, request.profile, pk, action == 'approve')
    if result['success']:
        result['data'] = payment_to_dict(result['data'])
        result['message'] = 'Payment approved' if action == 'approve' else 'Payment rejected'
    return json_result(result)


# =============================================================================
# INVOICE
# =============================================================================

@member_required
def payment_invoice(request, pk):
    try:
        payment = get_for_library(Payment, request.library, pk, label='Payment')
    except LibraryDeskError as e:
        messages.error(request, e.message)
        return redirect('core:dashboard')

    if request.profile.is_staff_member and payment.branch_id != request.profile.branch_id:
        messages.error(request, "Payment not found")
        return redirect('core:dashboard')

    return invoice_response(payment, inline=request.GET.get('inline') == '1')


# =============================================================================
# ADDITIONAL FEES
# =============================================================================

@owner_required
def fee_list(request):
    if request.method == 'POST':
        form = AdditionalFeeForm(request.POST, library=request.library)
        if form.is_valid():
            fee = form.save(commit=False)
            fee.library = request.library
            fee.save()
            messages.success(request, f"Fee '{fee.name}' added.")
            return redirect('fees:fee_list')
        messages.error(request, get_form_errors_as_string(form))
    else:
        form = AdditionalFeeForm(library=request.library)

    context = {
        'fees': AdditionalFee.objects.for_library(request.library).select_related('branch'),
        'form': form,
        'title': 'Additional Fees',
    }
    return render(request, 'fees/fee_list.html', context)


@owner_required
@require_POST
def fee_toggle(request, pk):
    try:
        fee = get_for_library(AdditionalFee, request.library, pk, label='Fee')
    except LibraryDeskError as e:
        return json_result(e.as_dict())

    fee.is_active = not fee.is_active
    fee.save()
    return json_result({'success': True, 'data': {'id': str(fee.pk), 'is_active': fee.is_active}})


# =============================================================================
# STATISTICS
# =============================================================================

@owner_required
@require_GET
def finance_stats(request):
    branch_id = request.GET.get('branch') or None
    months = min(max(parse_int(request.GET.get('months'), 6), 1), 12)
    return json_result({
        'success': True,
        'data': {
            'stats': get_finance_stats(request.library, branch_id),
            'revenue_by_month': get_revenue_by_month(request.library, months, branch_id),
            'revenue_by_method': get_revenue_by_method(request.library, branch_id),
        },
    })
