# khatabook/views.py

"""
Khatabook Views

Staff:
- Ledger page, balance summary and unclaimed cash payments
- Handover submission
- CSV / PDF export of the ledger

Owner:
- Pending handovers and staff balances
- Verify / reject handovers
- Any staff member's ledger and its exports

JSON endpoints answer with the {success, data|error, code} envelope.
"""

from django.shortcuts import render
from django.contrib import messages
from django.views.decorators.http import require_POST, require_GET
import logging

from accounts.decorators import owner_required, staff_required
from utils.exceptions import LibraryDeskError
from utils.utils import run_service, json_result, parse_request_data, parse_int
from .exports import ledger_rows_to_csv, export_ledger_pdf
from .services import CashLedgerService

logger = logging.getLogger(__name__)


# =============================================================================
# SERIALIZATION
# =============================================================================

def handover_to_dict(handover):
    return {
        'id': str(handover.pk),
        'staff_id': str(handover.staff_id),
        'staff_name': handover.staff.full_name,
        'branch_name': handover.branch.name if handover.branch_id else None,
        'amount': handover.amount,
        'method': handover.method,
        'status': handover.status,
        'notes': handover.notes,
        'attachment_url': handover.attachment_url,
        'created_at': handover.created_at,
        'verified_at': handover.verified_at,
    }


def payment_to_ledger_dict(payment):
    return {
        'id': str(payment.pk),
        'student_name': payment.student.name,
        'amount': payment.amount,
        'method': payment.method,
        'payment_date': payment.payment_date,
        'invoice_number': payment.invoice_number,
        'plan_name': payment.subscription.plan.name if payment.subscription_id else None,
    }


def balance_to_dict(row):
    return {key: value for key, value in row.items() if key != 'staff'}


# =============================================================================
# STAFF
# =============================================================================

@staff_required
def staff_khatabook(request):
    """Staff ledger page"""
    staff = request.profile
    result = run_service(CashLedgerService.get_staff_cash_summary, staff, request.GET.get('month'))
    if not result['success']:
        messages.error(request, result['error'])
        result = run_service(CashLedgerService.get_staff_cash_summary, staff)
    context = {
        'summary': result['data'],
        'transactions': CashLedgerService.get_staff_khatabook(staff),
        'pending_payments': CashLedgerService.get_pending_cash_payments(staff),
        'title': 'Khatabook',
    }
    return render(request, 'khatabook/staff_khatabook.html', context)


@staff_required
@require_GET
def cash_summary(request):
    result = run_service(
        CashLedgerService.get_staff_cash_summary, request.profile, request.GET.get('month')
    )
    if result['success']:
        result['data'] = result['data'].as_dict()
    return json_result(result)


@staff_required
@require_GET
def transactions(request):
    limit = min(max(parse_int(request.GET.get('limit'), 50), 1), 500)
    return json_result(run_service(CashLedgerService.get_staff_khatabook, request.profile, limit))


@staff_required
@require_GET
def pending_cash_payments(request):
    result = run_service(CashLedgerService.get_pending_cash_payments, request.profile)
    if result['success']:
        result['data'] = [payment_to_ledger_dict(payment) for payment in result['data']]
    return json_result(result)


@staff_required
@require_POST
def submit_handover(request):
    """
    Declare a handover to the owner.

    Body: amount, method, notes?, attachment_url?, payment_ids[]
    """
    try:
        data = parse_request_data(request)
    except LibraryDeskError as e:
        return json_result(e.as_dict())

    result = run_service(
        CashLedgerService.submit_handover,
        request.profile,
        data.get('amount'),
        data.get('method', 'CASH'),
        notes=data.get('notes'),
        attachment_url=data.get('attachment_url'),
        payment_ids=data.get('payment_ids') or [],
    )
    if result['success']:
        result['data'] = handover_to_dict(result['data'])
        result['message'] = 'Handover submitted for verification'
    return json_result(result)


@staff_required
def export_khatabook_csv(request):
    staff = request.profile
    rows = CashLedgerService.get_staff_khatabook(staff, limit=None)
    return ledger_rows_to_csv(rows, library=staff.library)


@staff_required
def export_khatabook_pdf(request):
    staff = request.profile
    rows = CashLedgerService.get_staff_khatabook(staff, limit=None)
    return export_ledger_pdf(
        rows,
        title=f"Khatabook - {staff.full_name}",
        library=staff.library,
        summary=CashLedgerService.get_staff_cash_summary(staff),
    )


# =============================================================================
# OWNER
# =============================================================================

@owner_required
def handover_dashboard(request):
    """Pending handovers and staff balances"""
    owner = request.profile
    context = {
        'pending_handovers': CashLedgerService.get_pending_handovers(owner),
        'balances': CashLedgerService.get_staff_balances(owner),
        'title': 'Cash Handovers',
    }
    return render(request, 'khatabook/handover_dashboard.html', context)


@owner_required
@require_GET
def pending_handovers(request):
    result = run_service(CashLedgerService.get_pending_handovers, request.profile)
    if result['success']:
        result['data'] = [handover_to_dict(handover) for handover in result['data']]
    return json_result(result)


@owner_required
@require_GET
def staff_balances(request):
    result = run_service(CashLedgerService.get_staff_balances, request.profile)
    if result['success']:
        result['data'] = [balance_to_dict(row) for row in result['data']]
    return json_result(result)


@owner_required
@require_POST
def verify_handover(request, pk):
    result = run_service(CashLedgerService.verify_handover, request.profile, pk)
    if result['success']:
        result['data'] = handover_to_dict(result['data'])
        result['message'] = 'Handover verified'
    return json_result(result)


@owner_required
@require_POST
def reject_handover(request, pk):
    result = run_service(CashLedgerService.reject_handover, request.profile, pk)
    if result['success']:
        result['data'] = handover_to_dict(result['data'])
        result['message'] = 'Handover rejected'
    return json_result(result)


@owner_required
@require_GET
def staff_ledger(request, staff_id):
    result = run_service(CashLedgerService.get_staff_ledger_for_owner, request.profile, staff_id)
    if result['success']:
        ledger = result['data']
        result['data'] = {
            'staff_id': str(ledger['staff'].pk),
            'staff_name': ledger['staff'].full_name,
            'summary': ledger['summary'].as_dict(),
            'transactions': ledger['transactions'],
        }
    return json_result(result)


@owner_required
def export_staff_ledger(request, staff_id):
    """Owner export of one staff ledger, ``?format=pdf`` or CSV by default"""
    result = run_service(
        CashLedgerService.get_staff_ledger_for_owner, request.profile, staff_id, None
    )
    if not result['success']:
        return json_result(result)

    ledger = result['data']
    library = request.profile.library
    if request.GET.get('format') == 'pdf':
        return export_ledger_pdf(
            ledger['transactions'],
            title=f"Khatabook - {ledger['staff'].full_name}",
            library=library,
            summary=ledger['summary'],
        )
    return ledger_rows_to_csv(ledger['transactions'], library=library)
